"""Push completed donations into a church's external ledger."""
import logging
import threading
from dataclasses import dataclass

from sqlalchemy import exists
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from churchledger.config import settings
from churchledger.connectors.base import LedgerProvider
from churchledger.errors import NotConnectedError, SyncInProgressError
from churchledger.models import Church, Donation, DonationSync
from churchledger.services.connections import ensure_fresh_credential
from churchledger.services.credentials import read_credential

logger = logging.getLogger(__name__)

COMPLETED = "COMPLETED"

# One running sync per church within this process
_sync_locks: dict[int, threading.Lock] = {}
_sync_locks_guard = threading.Lock()


@dataclass(frozen=True)
class SyncOutcome:
    synced: int
    total: int


def _church_lock(church_id: int) -> threading.Lock:
    with _sync_locks_guard:
        return _sync_locks.setdefault(church_id, threading.Lock())


def select_unsynced_donations(db: Session, church_id: int, provider: LedgerProvider, limit: int) -> list[Donation]:
    """Completed donations with no sync marker for this provider, oldest first."""
    already_synced = exists().where(
        DonationSync.donation_id == Donation.id,
        DonationSync.provider == provider.name,
    )
    return (
        db.query(Donation)
        .options(joinedload(Donation.member), joinedload(Donation.fund))
        .filter(
            Donation.church_id == church_id,
            Donation.payment_status == COMPLETED,
            ~already_synced,
        )
        .order_by(Donation.donated_at, Donation.id)
        .limit(limit)
        .all()
    )


def _record_sync(db: Session, donation: Donation, provider: LedgerProvider, external_id) -> None:
    db.add(DonationSync(donation_id=donation.id, provider=provider.name, external_id=external_id))
    try:
        db.commit()
    except IntegrityError:
        # Marker already written by another process
        db.rollback()
        logger.warning("Donation %s already marked as synced to %s", donation.id, provider.label)


def sync_donations(church: Church, provider: LedgerProvider, db: Session) -> SyncOutcome:
    """
    Submit up to SYNC_BATCH_SIZE unsynced donations, one request at a time.

    A rejected or failed item is logged and skipped; it stays unmarked and is
    picked up again by the next sync.
    """
    credential = read_credential(church, provider)
    if credential is None:
        raise NotConnectedError(f"{provider.label} not connected")

    church_id = church.id
    lock = _church_lock(church_id)
    if not lock.acquire(blocking=False):
        raise SyncInProgressError(f"A sync is already running for church {church_id}")
    try:
        credential = ensure_fresh_credential(db, church_id, provider, credential)
        donations = select_unsynced_donations(db, church_id, provider, settings.sync_batch_size)
        logger.info("Starting %s sync for church %s: %d donations", provider.label, church_id, len(donations))

        synced = 0
        for donation in donations:
            try:
                response = provider.post_transaction(
                    credential.access_token, credential.external_account_id, donation,
                )
            except Exception as exc:
                logger.warning("Error syncing donation %s to %s: %s", donation.id, provider.label, exc)
                continue
            if not response.ok:
                logger.warning(
                    "%s rejected donation %s: HTTP %s", provider.label, donation.id, response.status_code,
                )
                continue
            try:
                body = response.json()
            except ValueError:
                body = None
            _record_sync(db, donation, provider, provider.extract_external_id(body))
            synced += 1

        logger.info(
            "%s sync complete for church %s: %d of %d donations synced",
            provider.label, church_id, synced, len(donations),
        )
        return SyncOutcome(synced=synced, total=len(donations))
    finally:
        lock.release()
