"""
Ledger credentials stored inside Church.settings.

The settings document is shared with unrelated features, so every write goes
through patch_settings: read, shallow-merge, then a compare-and-swap on
settings_version. A blind whole-document overwrite would drop other
features' keys or lose a concurrent update.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Iterable, Optional

from sqlalchemy import update
from sqlalchemy.orm import Session

from churchledger.connectors.base import LedgerProvider, TokenGrant
from churchledger.errors import SettingsConflictError
from churchledger.models import Church

logger = logging.getLogger(__name__)

# Internal writers re-read and re-apply after losing a race, at most this often
MAX_PATCH_ATTEMPTS = 3


@dataclass(frozen=True)
class ProviderCredential:
    """Typed view of one provider's namespaced settings keys."""

    external_account_id: str
    access_token: str
    refresh_token: Optional[str] = None
    expires_at: Optional[datetime] = None

    def expires_within(self, seconds: int) -> bool:
        """True if the access token is expired or expires in the next `seconds`."""
        if self.expires_at is None:
            return False
        return self.expires_at <= datetime.now(timezone.utc) + timedelta(seconds=seconds)

    @classmethod
    def from_grant(cls, account_id: str, grant: TokenGrant) -> "ProviderCredential":
        return cls(
            external_account_id=account_id,
            access_token=grant.access_token,
            refresh_token=grant.refresh_token,
            expires_at=grant.expires_at,
        )


def format_expiry(value: datetime) -> str:
    """UTC ISO-8601 with millisecond precision and a Z suffix."""
    value = value.astimezone(timezone.utc)
    return value.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_expiry(raw: Any) -> Optional[datetime]:
    if not raw or not isinstance(raw, str):
        return None
    try:
        parsed = datetime.fromisoformat(raw.replace("Z", "+00:00"))
    except ValueError:
        logger.warning("Ignoring unparseable token expiry %r", raw)
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def read_credential(church: Church, provider: LedgerProvider) -> Optional[ProviderCredential]:
    """Deserialize the provider's credential; None means "not connected"."""
    doc = church.settings or {}
    account_id = doc.get(provider.account_id_key)
    access_token = doc.get(provider.access_token_key)
    if not account_id or not access_token:
        return None
    return ProviderCredential(
        external_account_id=str(account_id),
        access_token=str(access_token),
        refresh_token=doc.get(provider.refresh_token_key) or None,
        expires_at=parse_expiry(doc.get(provider.expiry_key)),
    )


def credential_fields(provider: LedgerProvider, credential: ProviderCredential) -> dict[str, Any]:
    return {
        provider.account_id_key: credential.external_account_id,
        provider.access_token_key: credential.access_token,
        provider.refresh_token_key: credential.refresh_token,
        provider.expiry_key: format_expiry(credential.expires_at) if credential.expires_at else None,
    }


def patch_settings(
    db: Session,
    church_id: int,
    updates: Optional[dict[str, Any]] = None,
    removals: Iterable[str] = (),
    expected_version: Optional[int] = None,
) -> Church:
    """
    Merge `updates` into and drop `removals` from a church's settings document.

    With `expected_version`, a stale version raises SettingsConflictError
    immediately. Without it, a lost race is retried against the fresh
    document. No-op patches do not bump the version.
    """
    removals = set(removals)
    for attempt in range(1, MAX_PATCH_ATTEMPTS + 1):
        church = db.get(Church, church_id, populate_existing=True)
        if church is None:
            raise ValueError(f"Church {church_id} not found")
        version = church.settings_version or 0
        if expected_version is not None and expected_version != version:
            raise SettingsConflictError("Settings were modified by another request; reload and retry")

        current = dict(church.settings or {})
        merged = {k: v for k, v in current.items() if k not in removals}
        merged.update(updates or {})
        if merged == current:
            return church

        result = db.execute(
            update(Church)
            .where(Church.id == church_id, Church.settings_version == version)
            .values(settings=merged, settings_version=version + 1)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 1:
            db.commit()
            return db.get(Church, church_id, populate_existing=True)

        db.rollback()
        if expected_version is not None:
            raise SettingsConflictError("Settings were modified by another request; reload and retry")
        logger.info("Settings write for church %s lost a race (attempt %d), retrying", church_id, attempt)

    raise SettingsConflictError(f"Could not update settings for church {church_id}")


def store_credential(db: Session, church_id: int, provider: LedgerProvider, credential: ProviderCredential) -> Church:
    return patch_settings(db, church_id, updates=credential_fields(provider, credential))


def clear_credential(db: Session, church_id: int, provider: LedgerProvider) -> Church:
    """Remove exactly this provider's keys. Safe to call when already disconnected."""
    return patch_settings(db, church_id, removals=provider.settings_keys)
