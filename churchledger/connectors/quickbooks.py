"""QuickBooks Online connector: OAuth 2.0 and donation sales receipts."""
from typing import Any, Optional

from churchledger.config import settings
from churchledger.connectors.base import LedgerProvider, transaction_date

AUTH_URL = "https://appcenter.intuit.com/connect/oauth2"
TOKEN_URL = "https://oauth.platform.intuit.com/oauth2/v1/tokens/bearer"
PRODUCTION_BASE = "https://quickbooks.api.intuit.com"
SANDBOX_BASE = "https://sandbox-quickbooks.api.intuit.com"


def api_base() -> str:
    if settings.quickbooks_api_url:
        return settings.quickbooks_api_url.rstrip("/")
    return PRODUCTION_BASE if settings.quickbooks_environment == "production" else SANDBOX_BASE


class QuickBooksProvider(LedgerProvider):
    name = "quickbooks"
    label = "QuickBooks"

    account_id_key = "quickbooksRealmId"
    access_token_key = "quickbooksAccessToken"
    refresh_token_key = "quickbooksRefreshToken"
    expiry_key = "quickbooksTokenExpiry"

    authorize_url = AUTH_URL
    token_url = TOKEN_URL
    scope = "com.intuit.quickbooks.accounting"
    anonymous_label = "Anonymous"
    requires_account_id = True

    def client_config(self) -> tuple[str, str, str]:
        return (
            settings.quickbooks_client_id,
            settings.quickbooks_client_secret,
            settings.quickbooks_redirect_uri,
        )

    def transaction_url(self, account_id: str) -> str:
        return f"{api_base()}/v3/company/{account_id}/salesreceipt"

    def build_payload(self, donation) -> dict[str, Any]:
        fund_name = donation.fund.name if donation.fund is not None else None
        return {
            "Line": [
                {
                    "Amount": float(donation.amount),
                    "DetailType": "SalesItemLineDetail",
                    "SalesItemLineDetail": {
                        "ItemRef": {"name": fund_name or "Donation"},
                    },
                },
            ],
            "CustomerRef": {"name": donation.payer_name or self.anonymous_label},
            "TxnDate": transaction_date(donation.donated_at),
            "PrivateNote": f"ChurchFlow Donation ID: {donation.id}",
        }

    def extract_external_id(self, body: Any) -> Optional[str]:
        if not isinstance(body, dict):
            return None
        receipt = body.get("SalesReceipt") or {}
        ext_id = receipt.get("Id")
        return str(ext_id) if ext_id is not None else None
