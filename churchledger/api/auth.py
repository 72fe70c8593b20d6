"""Session authentication and tenant resolution dependencies."""
from typing import Optional

from fastapi import Depends, HTTPException, Request
from sqlalchemy.orm import Session

from churchledger.config import settings
from churchledger.database import get_db
from churchledger.models import Church, ChurchUser, User
from churchledger.services.tenants import get_membership


def get_current_user(request: Request, db: Session = Depends(get_db)) -> User:
    """Resolve the session cookie to a user; 401 when absent or unknown."""
    token: Optional[str] = request.cookies.get(settings.session_cookie_name)
    if not token:
        raise HTTPException(status_code=401, detail="Unauthorized")
    user = db.query(User).filter(User.session_token == token).first()
    if not user:
        raise HTTPException(status_code=401, detail="Unauthorized")
    return user


def get_current_membership(user: User = Depends(get_current_user), db: Session = Depends(get_db)) -> ChurchUser:
    membership = get_membership(db, user.id)
    if not membership:
        raise HTTPException(status_code=404, detail="Church not found")
    return membership


def get_current_church(
    membership: ChurchUser = Depends(get_current_membership),
    db: Session = Depends(get_db),
) -> Church:
    """Church the current user acts for. Never taken from client input."""
    church = db.get(Church, membership.church_id)
    if not church:
        raise HTTPException(status_code=404, detail="Church not found")
    return church
