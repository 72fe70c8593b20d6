"""Map an authenticated user to the church they act for."""
from typing import Optional

from sqlalchemy.orm import Session

from churchledger.models import ChurchUser


def get_membership(db: Session, user_id: int) -> Optional[ChurchUser]:
    """First membership row for the user (a user administers at most one church)."""
    return (
        db.query(ChurchUser)
        .filter(ChurchUser.user_id == user_id)
        .order_by(ChurchUser.id)
        .first()
    )


def resolve_church_id(db: Session, user_id: int) -> Optional[int]:
    membership = get_membership(db, user_id)
    return membership.church_id if membership else None
