"""API routes for ledger integrations and church settings."""
import logging
import secrets

from fastapi import APIRouter, Depends, HTTPException, Path
from fastapi.responses import RedirectResponse
from sqlalchemy.orm import Session

from churchledger.api.auth import get_current_church, get_current_membership
from churchledger.connectors.base import LedgerProvider
from churchledger.connectors.registry import PROVIDERS, get_provider
from churchledger.database import get_db
from churchledger.errors import LedgerSyncError
from churchledger.models import Church, ChurchUser
from churchledger.pipeline.sync import sync_donations
from churchledger.schemas import (
    ChurchSettingsOut,
    ChurchSettingsPatch,
    ConnectAction,
    ConnectResult,
    DisconnectResult,
    IntegrationAction,
    IntegrationStatus,
    SyncResult,
)
from churchledger.services.connections import connect_provider
from churchledger.services.credentials import clear_credential, patch_settings, read_credential

router = APIRouter()
logger = logging.getLogger(__name__)

ProviderPath = Path(..., min_length=1, max_length=32, description="Ledger provider: quickbooks or xero")

SETTINGS_ADMIN_ROLES = ("OWNER", "ADMIN")
REDACTED = "********"


def get_ledger_provider(provider: str = ProviderPath) -> LedgerProvider:
    ledger = get_provider(provider)
    if not ledger:
        raise HTTPException(404, "Unknown integration")
    return ledger


def _credential_keys() -> set[str]:
    return {key for p in PROVIDERS.values() for key in p.settings_keys}


def _secret_keys() -> set[str]:
    return {key for p in PROVIDERS.values() for key in (p.access_token_key, p.refresh_token_key)}


@router.get("/integrations/{provider}", response_model=IntegrationStatus)
def integration_status(
    provider: LedgerProvider = Depends(get_ledger_provider),
    church: Church = Depends(get_current_church),
):
    """Connection status for one provider."""
    credential = read_credential(church, provider)
    return IntegrationStatus(
        connected=credential is not None,
        external_account_id=credential.external_account_id if credential else None,
    )


@router.get("/integrations/{provider}/authorize")
def integration_authorize(
    provider: LedgerProvider = Depends(get_ledger_provider),
    church: Church = Depends(get_current_church),
):
    """Redirect the user to the provider's OAuth consent screen."""
    try:
        url = provider.get_authorization_url(state=f"{provider.name}_{secrets.token_urlsafe(16)}")
    except LedgerSyncError as e:
        raise HTTPException(e.status_code, str(e))
    logger.info("Church %s starting %s authorization", church.id, provider.label)
    return RedirectResponse(url=url)


@router.post("/integrations/{provider}", response_model=None)
def integration_action(
    body: IntegrationAction,
    provider: LedgerProvider = Depends(get_ledger_provider),
    church: Church = Depends(get_current_church),
    db: Session = Depends(get_db),
) -> dict:
    """Connect the provider (`action: connect`) or push donations to it (`action: sync`)."""
    try:
        if isinstance(body, ConnectAction):
            credential = connect_provider(db, church.id, provider, body.code, body.external_account_id)
            return ConnectResult(external_account_id=credential.external_account_id).model_dump(by_alias=True)
        outcome = sync_donations(church, provider, db)
        return SyncResult(synced=outcome.synced, total=outcome.total).model_dump()
    except LedgerSyncError as e:
        raise HTTPException(e.status_code, str(e))
    except Exception as e:
        logger.error("%s %s failed for church %s: %s", provider.label, body.action, church.id, e)
        raise HTTPException(500, f"{provider.label} operation failed")


@router.delete("/integrations/{provider}", response_model=DisconnectResult)
def integration_disconnect(
    provider: LedgerProvider = Depends(get_ledger_provider),
    church: Church = Depends(get_current_church),
    db: Session = Depends(get_db),
):
    """Remove this provider's credential; other settings are left untouched."""
    try:
        clear_credential(db, church.id, provider)
    except LedgerSyncError as e:
        raise HTTPException(e.status_code, str(e))
    except Exception as e:
        logger.error("Disconnecting %s failed for church %s: %s", provider.label, church.id, e)
        raise HTTPException(500, f"Failed to disconnect {provider.label}")
    logger.info("Church %s disconnected from %s", church.id, provider.label)
    return DisconnectResult()


@router.get("/church/settings", response_model=ChurchSettingsOut)
def get_church_settings(church: Church = Depends(get_current_church)):
    """Settings document with OAuth tokens redacted."""
    secret_keys = _secret_keys()
    doc = {
        key: (REDACTED if key in secret_keys and value else value)
        for key, value in (church.settings or {}).items()
    }
    return ChurchSettingsOut(settings=doc, version=church.settings_version or 0)


@router.patch("/church/settings", response_model=ChurchSettingsOut)
def update_church_settings(
    body: ChurchSettingsPatch,
    membership: ChurchUser = Depends(get_current_membership),
    church: Church = Depends(get_current_church),
    db: Session = Depends(get_db),
):
    """
    Shallow-merge keys into the settings document. A null value removes the key.
    Integration credentials can only be changed through the integration routes.
    """
    if membership.role not in SETTINGS_ADMIN_ROLES:
        raise HTTPException(403, "Insufficient permissions")
    protected = sorted(_credential_keys() & body.settings.keys())
    if protected:
        raise HTTPException(400, f"Integration keys cannot be set directly: {', '.join(protected)}")

    updates = {k: v for k, v in body.settings.items() if v is not None}
    removals = [k for k, v in body.settings.items() if v is None]
    try:
        updated = patch_settings(db, church.id, updates=updates, removals=removals, expected_version=body.version)
    except LedgerSyncError as e:
        raise HTTPException(e.status_code, str(e))
    logger.info("Settings updated for church %s (version %s)", church.id, updated.settings_version)
    return get_church_settings(updated)
