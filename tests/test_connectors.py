"""Tests for the QuickBooks and Xero connectors with mocked HTTP."""
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from unittest.mock import MagicMock, patch

import pytest
import requests
from authlib.integrations.base_client import OAuthError

from churchledger.config import settings
from churchledger.connectors.base import TokenGrant, transaction_date
from churchledger.connectors.quickbooks import QuickBooksProvider, api_base
from churchledger.connectors.registry import get_provider
from churchledger.connectors.xero import XeroProvider
from churchledger.errors import ProviderConfigError, ProviderError
from churchledger.models import Donation, DonationFund, Member


@pytest.fixture
def quickbooks(provider_config) -> QuickBooksProvider:
    return QuickBooksProvider()


@pytest.fixture
def xero(provider_config) -> XeroProvider:
    return XeroProvider()


def _donation(member=True, fund=True, **kwargs) -> Donation:
    values = dict(
        id=42,
        amount=Decimal("125.50"),
        donated_at=datetime(2026, 3, 1, 23, 45),
        is_anonymous=False,
    )
    values.update(kwargs)
    donation = Donation(**values)
    if member:
        donation.member = Member(first_name="Ruth", last_name="Miller")
    if fund:
        donation.fund = DonationFund(name="Missions")
    return donation


# ---------------------------------------------------------------------------
# Payloads
# ---------------------------------------------------------------------------


class TestQuickBooksPayload:
    def test_sales_receipt_shape(self, quickbooks):
        payload = quickbooks.build_payload(_donation())
        assert payload == {
            "Line": [
                {
                    "Amount": 125.5,
                    "DetailType": "SalesItemLineDetail",
                    "SalesItemLineDetail": {"ItemRef": {"name": "Missions"}},
                },
            ],
            "CustomerRef": {"name": "Ruth Miller"},
            "TxnDate": "2026-03-01",
            "PrivateNote": "ChurchFlow Donation ID: 42",
        }

    def test_no_payer_uses_anonymous_label(self, quickbooks):
        payload = quickbooks.build_payload(_donation(member=False))
        assert payload["CustomerRef"]["name"] == "Anonymous"

    def test_anonymous_flag_hides_member(self, quickbooks):
        payload = quickbooks.build_payload(_donation(is_anonymous=True))
        assert payload["CustomerRef"]["name"] == "Anonymous"

    def test_donor_name_used_without_member(self, quickbooks):
        payload = quickbooks.build_payload(_donation(member=False, donor_name="Visiting Family"))
        assert payload["CustomerRef"]["name"] == "Visiting Family"

    def test_no_fund_falls_back_to_donation_item(self, quickbooks):
        payload = quickbooks.build_payload(_donation(fund=False))
        assert payload["Line"][0]["SalesItemLineDetail"]["ItemRef"]["name"] == "Donation"

    def test_transaction_url(self, quickbooks):
        assert quickbooks.transaction_url("r1") == "https://qbo.test/v3/company/r1/salesreceipt"

    def test_extract_external_id(self, quickbooks):
        assert quickbooks.extract_external_id({"SalesReceipt": {"Id": 118}}) == "118"
        assert quickbooks.extract_external_id({"Fault": {}}) is None
        assert quickbooks.extract_external_id(None) is None


class TestQuickBooksBaseUrl:
    def test_environment_defaults(self, monkeypatch):
        monkeypatch.setattr(settings, "quickbooks_api_url", None)
        monkeypatch.setattr(settings, "quickbooks_environment", "sandbox")
        assert api_base() == "https://sandbox-quickbooks.api.intuit.com"
        monkeypatch.setattr(settings, "quickbooks_environment", "production")
        assert api_base() == "https://quickbooks.api.intuit.com"

    def test_override_wins(self, monkeypatch):
        monkeypatch.setattr(settings, "quickbooks_api_url", "https://proxy.example.org/")
        assert api_base() == "https://proxy.example.org"


class TestXeroPayload:
    def test_bank_transaction_shape(self, xero):
        payload = xero.build_payload(_donation())
        assert payload == {
            "BankTransactions": [
                {
                    "Type": "RECEIVE",
                    "Contact": {"Name": "Ruth Miller"},
                    "LineItems": [
                        {
                            "Description": "Donation - Missions",
                            "Quantity": 1,
                            "UnitAmount": 125.5,
                            "AccountCode": "200",
                        },
                    ],
                    "BankAccount": {"Code": "090"},
                    "Date": "2026-03-01",
                    "Reference": "ChurchFlow-42",
                },
            ],
        }

    def test_no_payer_uses_anonymous_donor(self, xero):
        payload = xero.build_payload(_donation(member=False))
        assert payload["BankTransactions"][0]["Contact"]["Name"] == "Anonymous Donor"

    def test_no_fund_is_general(self, xero):
        payload = xero.build_payload(_donation(fund=False))
        assert payload["BankTransactions"][0]["LineItems"][0]["Description"] == "Donation - General"

    def test_account_codes_configurable(self, xero, monkeypatch):
        monkeypatch.setattr(settings, "xero_income_account_code", "4000")
        monkeypatch.setattr(settings, "xero_bank_account_code", "1010")
        tx = xero.build_payload(_donation())["BankTransactions"][0]
        assert tx["LineItems"][0]["AccountCode"] == "4000"
        assert tx["BankAccount"]["Code"] == "1010"

    def test_headers_carry_tenant_id(self, xero):
        headers = xero._headers("tok", "tenant-1")
        assert headers["Authorization"] == "Bearer tok"
        assert headers["Xero-Tenant-Id"] == "tenant-1"

    def test_extract_external_id(self, xero):
        body = {"BankTransactions": [{"BankTransactionID": "bt-9"}]}
        assert xero.extract_external_id(body) == "bt-9"
        assert xero.extract_external_id({"BankTransactions": []}) is None


def test_transaction_date_truncates_to_utc_day():
    aware = datetime(2026, 3, 1, 23, 30, tzinfo=timezone(timedelta(hours=-6)))
    assert transaction_date(aware) == "2026-03-02"
    assert transaction_date(datetime(2026, 3, 1, 23, 30)) == "2026-03-01"


def test_registry():
    assert isinstance(get_provider("quickbooks"), QuickBooksProvider)
    assert isinstance(get_provider("Xero"), XeroProvider)
    assert get_provider("sage") is None


# ---------------------------------------------------------------------------
# OAuth
# ---------------------------------------------------------------------------


class TestTokenExchange:
    def test_exchange_code_uses_basic_auth_client(self, quickbooks):
        with patch("churchledger.connectors.base.OAuth2Session") as session_cls:
            session_cls.return_value.fetch_token.return_value = {
                "access_token": "tok", "refresh_token": "ref", "expires_in": 3600,
            }
            before = datetime.now(timezone.utc)
            grant = quickbooks.exchange_code("abc")

        session_cls.assert_called_once_with(
            client_id="qb-client",
            client_secret="qb-secret",
            redirect_uri="https://app.example.org/qb/callback",
            scope="com.intuit.quickbooks.accounting",
            token_endpoint_auth_method="client_secret_basic",
        )
        session_cls.return_value.fetch_token.assert_called_once_with(
            "https://oauth.platform.intuit.com/oauth2/v1/tokens/bearer",
            code="abc",
            grant_type="authorization_code",
        )
        assert grant.access_token == "tok"
        assert grant.refresh_token == "ref"
        assert before + timedelta(seconds=3590) <= grant.expires_at <= datetime.now(timezone.utc) + timedelta(seconds=3600)

    @pytest.mark.parametrize("missing", ["quickbooks_client_id", "quickbooks_client_secret", "quickbooks_redirect_uri"])
    def test_missing_configuration(self, quickbooks, monkeypatch, missing):
        monkeypatch.setattr(settings, missing, "")
        with patch("churchledger.connectors.base.OAuth2Session") as session_cls:
            with pytest.raises(ProviderConfigError, match="QuickBooks configuration missing"):
                quickbooks.exchange_code("abc")
        session_cls.assert_not_called()

    def test_provider_rejection_is_provider_error(self, xero):
        with patch("churchledger.connectors.base.OAuth2Session") as session_cls:
            session_cls.return_value.fetch_token.side_effect = OAuthError(error="invalid_grant")
            with pytest.raises(ProviderError, match="Failed to exchange Xero authorization code"):
                xero.exchange_code("bad")

    def test_transport_failure_is_provider_error(self, xero):
        with patch("churchledger.connectors.base.OAuth2Session") as session_cls:
            session_cls.return_value.fetch_token.side_effect = requests.ConnectionError("down")
            with pytest.raises(ProviderError):
                xero.exchange_code("abc")

    def test_response_without_access_token(self, quickbooks):
        with patch("churchledger.connectors.base.OAuth2Session") as session_cls:
            session_cls.return_value.fetch_token.return_value = {"token_type": "bearer"}
            with pytest.raises(ProviderError):
                quickbooks.exchange_code("abc")

    def test_refresh_keeps_previous_refresh_token_when_not_rotated(self, quickbooks):
        with patch("churchledger.connectors.base.OAuth2Session") as session_cls:
            session_cls.return_value.refresh_token.return_value = {"access_token": "new", "expires_in": 3600}
            grant = quickbooks.refresh("old-ref")
        session_cls.return_value.refresh_token.assert_called_once_with(
            "https://oauth.platform.intuit.com/oauth2/v1/tokens/bearer", refresh_token="old-ref",
        )
        assert grant.access_token == "new"
        assert grant.refresh_token == "old-ref"

    def test_authorization_url(self, xero):
        url = xero.get_authorization_url(state="xero_state123")
        assert url.startswith("https://login.xero.com/identity/connect/authorize?")
        assert "client_id=xero-client" in url
        assert "state=xero_state123" in url


def test_token_grant_from_response_defaults():
    grant = TokenGrant.from_token_response({"access_token": "tok"}, previous_refresh_token="keep")
    assert grant.refresh_token == "keep"


# ---------------------------------------------------------------------------
# Account discovery
# ---------------------------------------------------------------------------


def _json_response(payload, status=200) -> MagicMock:
    response = MagicMock()
    response.status_code = status
    response.ok = 200 <= status < 300
    response.json.return_value = payload
    if status >= 400:
        response.raise_for_status.side_effect = requests.HTTPError(f"HTTP {status}")
    return response


class TestAccountDiscovery:
    def test_quickbooks_requires_realm(self, quickbooks):
        with pytest.raises(ProviderConfigError):
            quickbooks.discover_account("tok", None)
        assert quickbooks.discover_account("tok", "r1") == "r1"

    def test_xero_picks_first_connection(self, xero):
        connections = [{"tenantId": "t-1"}, {"tenantId": "t-2"}]
        with patch("churchledger.connectors.xero.requests.get", return_value=_json_response(connections)) as get:
            assert xero.discover_account("tok", None) == "t-1"
        get.assert_called_once()
        assert get.call_args.args[0] == "https://xero.test/connections"
        assert get.call_args.kwargs["headers"]["Authorization"] == "Bearer tok"

    def test_xero_honours_requested_tenant(self, xero):
        connections = [{"tenantId": "t-1"}, {"tenantId": "t-2"}]
        with patch("churchledger.connectors.xero.requests.get", return_value=_json_response(connections)):
            assert xero.discover_account("tok", "t-2") == "t-2"

    def test_xero_ignores_unknown_requested_tenant(self, xero):
        with patch("churchledger.connectors.xero.requests.get", return_value=_json_response([{"tenantId": "t-1"}])):
            assert xero.discover_account("tok", "t-9") == "t-1"

    def test_xero_no_connections(self, xero):
        with patch("churchledger.connectors.xero.requests.get", return_value=_json_response([])):
            with pytest.raises(ProviderError):
                xero.discover_account("tok", None)

    def test_xero_lookup_failure(self, xero):
        with patch("churchledger.connectors.xero.requests.get", return_value=_json_response({}, status=401)):
            with pytest.raises(ProviderError, match="connections"):
                xero.discover_account("tok", None)
