"""Connect a church to a ledger provider and keep its access token fresh."""
import logging
from typing import Optional

from sqlalchemy.orm import Session

from churchledger.config import settings
from churchledger.connectors.base import LedgerProvider
from churchledger.errors import ProviderConfigError
from churchledger.services.credentials import ProviderCredential, store_credential

logger = logging.getLogger(__name__)


def connect_provider(
    db: Session,
    church_id: int,
    provider: LedgerProvider,
    code: str,
    requested_account_id: Optional[str] = None,
) -> ProviderCredential:
    """
    Exchange an authorization code and persist the resulting credential.

    Nothing is written unless the token exchange and account discovery both
    succeed.
    """
    if provider.requires_account_id and not requested_account_id:
        raise ProviderConfigError(f"{provider.label} account id is required")

    grant = provider.exchange_code(code)
    account_id = provider.discover_account(grant.access_token, requested_account_id)
    credential = ProviderCredential.from_grant(account_id, grant)
    store_credential(db, church_id, provider, credential)
    logger.info("Church %s connected to %s account %s", church_id, provider.label, account_id)
    return credential


def ensure_fresh_credential(
    db: Session,
    church_id: int,
    provider: LedgerProvider,
    credential: ProviderCredential,
) -> ProviderCredential:
    """Refresh the access token before it expires; returns the credential to use."""
    if not credential.expires_within(settings.token_refresh_margin_seconds):
        return credential
    if not credential.refresh_token:
        logger.warning(
            "%s token for church %s is expiring and no refresh token is stored", provider.label, church_id,
        )
        return credential

    logger.info("Refreshing %s access token for church %s", provider.label, church_id)
    grant = provider.refresh(credential.refresh_token)
    refreshed = ProviderCredential.from_grant(credential.external_account_id, grant)
    store_credential(db, church_id, provider, refreshed)
    return refreshed
