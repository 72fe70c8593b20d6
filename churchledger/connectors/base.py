"""Shared OAuth 2.0 + transaction plumbing for accounting ledger providers.

A provider subclass supplies endpoints, settings key names and the payload
shape; everything else (token exchange, refresh, the transaction POST) lives
here so the sync engine can treat QuickBooks and Xero the same way.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

import requests
from authlib.integrations.base_client import OAuthError
from authlib.integrations.requests_client import OAuth2Session

from churchledger.config import settings
from churchledger.errors import ProviderConfigError, ProviderError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TokenGrant:
    """Result of an authorization-code or refresh-token grant."""

    access_token: str
    refresh_token: Optional[str]
    expires_at: datetime

    @classmethod
    def from_token_response(cls, token: dict[str, Any], previous_refresh_token: Optional[str] = None) -> "TokenGrant":
        if not token.get("access_token"):
            raise ProviderError("Token response did not include an access token")
        expires_in = int(token.get("expires_in") or 0)
        return cls(
            access_token=token["access_token"],
            refresh_token=token.get("refresh_token") or previous_refresh_token,
            expires_at=datetime.now(timezone.utc) + timedelta(seconds=expires_in),
        )


def transaction_date(value: datetime) -> str:
    """Calendar day (UTC) of a donation timestamp, as YYYY-MM-DD."""
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc)
    return value.date().isoformat()


class LedgerProvider:
    """Base class for an external accounting system receiving donations."""

    name: str = ""
    label: str = ""

    # Namespaced keys inside Church.settings
    account_id_key: str = ""
    access_token_key: str = ""
    refresh_token_key: str = ""
    expiry_key: str = ""

    authorize_url: str = ""
    token_url: str = ""
    scope: str = ""
    anonymous_label: str = "Anonymous"

    # QuickBooks cannot discover the realm from the token; the client must send it
    requires_account_id: bool = False

    @property
    def settings_keys(self) -> tuple[str, str, str, str]:
        return (self.account_id_key, self.access_token_key, self.refresh_token_key, self.expiry_key)

    def client_config(self) -> tuple[str, str, str]:
        """(client_id, client_secret, redirect_uri) from process settings."""
        raise NotImplementedError

    def get_oauth_client(self) -> OAuth2Session:
        """Build OAuth2 client; client id:secret are sent with HTTP Basic auth."""
        client_id, client_secret, redirect_uri = self.client_config()
        if not (client_id and client_secret and redirect_uri):
            raise ProviderConfigError(f"{self.label} configuration missing")
        return OAuth2Session(
            client_id=client_id,
            client_secret=client_secret,
            redirect_uri=redirect_uri,
            scope=self.scope,
            token_endpoint_auth_method="client_secret_basic",
        )

    def get_authorization_url(self, state: str) -> str:
        """Consent URL the user is redirected to before connect."""
        client = self.get_oauth_client()
        url, _ = client.create_authorization_url(self.authorize_url, state=state, response_type="code")
        return url

    def exchange_code(self, code: str) -> TokenGrant:
        """Exchange a one-time authorization code for an access/refresh token pair."""
        client = self.get_oauth_client()
        try:
            token = client.fetch_token(self.token_url, code=code, grant_type="authorization_code")
        except (OAuthError, requests.RequestException, ValueError) as exc:
            logger.warning("%s authorization code exchange failed: %s", self.label, exc)
            raise ProviderError(f"Failed to exchange {self.label} authorization code") from exc
        return TokenGrant.from_token_response(token)

    def refresh(self, refresh_token: str) -> TokenGrant:
        """Obtain a new access token with the stored refresh token."""
        client = self.get_oauth_client()
        try:
            token = client.refresh_token(self.token_url, refresh_token=refresh_token)
        except (OAuthError, requests.RequestException, ValueError) as exc:
            logger.warning("%s token refresh failed: %s", self.label, exc)
            raise ProviderError(f"Failed to refresh {self.label} access token") from exc
        return TokenGrant.from_token_response(token, previous_refresh_token=refresh_token)

    def discover_account(self, access_token: str, requested_id: Optional[str]) -> str:
        """Return the external account id the token grants access to."""
        if not requested_id:
            raise ProviderConfigError(f"{self.label} account id is required")
        return requested_id

    def _headers(self, access_token: str, account_id: str) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {access_token}",
            "Accept": "application/json",
            "Content-Type": "application/json",
        }

    def transaction_url(self, account_id: str) -> str:
        raise NotImplementedError

    def build_payload(self, donation) -> dict[str, Any]:
        """Provider-shaped transaction body for one donation."""
        raise NotImplementedError

    def extract_external_id(self, body: Any) -> Optional[str]:
        """Id the provider assigned to the created transaction, if the response carries one."""
        return None

    def post_transaction(self, access_token: str, account_id: str, donation) -> requests.Response:
        """Submit one donation. Raises requests.RequestException on transport failure."""
        return requests.post(
            self.transaction_url(account_id),
            json=self.build_payload(donation),
            headers=self._headers(access_token, account_id),
            timeout=settings.http_timeout_seconds,
        )
