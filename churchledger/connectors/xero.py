"""Xero connector: OAuth 2.0, tenant discovery and RECEIVE bank transactions."""
import logging
from typing import Any, Optional

import requests

from churchledger.config import settings
from churchledger.connectors.base import LedgerProvider, transaction_date
from churchledger.errors import ProviderError

logger = logging.getLogger(__name__)

AUTH_URL = "https://login.xero.com/identity/connect/authorize"
TOKEN_URL = "https://identity.xero.com/connect/token"


class XeroProvider(LedgerProvider):
    name = "xero"
    label = "Xero"

    account_id_key = "xeroTenantId"
    access_token_key = "xeroAccessToken"
    refresh_token_key = "xeroRefreshToken"
    expiry_key = "xeroTokenExpiry"

    authorize_url = AUTH_URL
    token_url = TOKEN_URL
    scope = "offline_access accounting.transactions"
    anonymous_label = "Anonymous Donor"

    def client_config(self) -> tuple[str, str, str]:
        return (
            settings.xero_client_id,
            settings.xero_client_secret,
            settings.xero_redirect_uri,
        )

    def _base(self) -> str:
        return settings.xero_api_url.rstrip("/")

    def fetch_connections(self, access_token: str) -> list[dict[str, Any]]:
        """Organisations (tenants) the token has been granted access to."""
        r = requests.get(
            f"{self._base()}/connections",
            headers={"Authorization": f"Bearer {access_token}", "Content-Type": "application/json"},
            timeout=settings.http_timeout_seconds,
        )
        r.raise_for_status()
        data = r.json()
        return data if isinstance(data, list) else []

    def discover_account(self, access_token: str, requested_id: Optional[str]) -> str:
        try:
            connections = self.fetch_connections(access_token)
        except (requests.RequestException, ValueError) as exc:
            logger.warning("Xero connections lookup failed: %s", exc)
            raise ProviderError("Failed to look up Xero connections") from exc
        tenant_ids = [str(c["tenantId"]) for c in connections if c.get("tenantId")]
        if not tenant_ids:
            raise ProviderError("Xero authorization did not grant access to any organisation")
        if requested_id and requested_id in tenant_ids:
            return requested_id
        return tenant_ids[0]

    def _headers(self, access_token: str, account_id: str) -> dict[str, str]:
        headers = super()._headers(access_token, account_id)
        headers["Xero-Tenant-Id"] = account_id
        return headers

    def transaction_url(self, account_id: str) -> str:
        return f"{self._base()}/api.xro/2.0/BankTransactions"

    def build_payload(self, donation) -> dict[str, Any]:
        fund_name = donation.fund.name if donation.fund is not None else None
        bank_transaction = {
            "Type": "RECEIVE",
            "Contact": {"Name": donation.payer_name or self.anonymous_label},
            "LineItems": [
                {
                    "Description": f"Donation - {fund_name or 'General'}",
                    "Quantity": 1,
                    "UnitAmount": float(donation.amount),
                    "AccountCode": settings.xero_income_account_code,
                },
            ],
            "BankAccount": {"Code": settings.xero_bank_account_code},
            "Date": transaction_date(donation.donated_at),
            "Reference": f"ChurchFlow-{donation.id}",
        }
        return {"BankTransactions": [bank_transaction]}

    def extract_external_id(self, body: Any) -> Optional[str]:
        if not isinstance(body, dict):
            return None
        created = body.get("BankTransactions") or []
        if not created or not isinstance(created[0], dict):
            return None
        ext_id = created[0].get("BankTransactionID")
        return str(ext_id) if ext_id is not None else None
