#!/usr/bin/env python3
"""Seed a demo church, owner session and completed donations for local testing."""
import random
import secrets
import sys
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from churchledger.database import SessionLocal, init_db
from churchledger.models import Church, ChurchUser, Donation, DonationFund, Member, User


def seed():
    init_db()
    db = SessionLocal()
    church = db.query(Church).filter(Church.slug == "grace-community").first()
    if not church:
        church = Church(
            name="Grace Community Church",
            slug="grace-community",
            settings={"timezone": "America/Chicago", "primaryColor": "#3b82f6"},
        )
        db.add(church)
        db.commit()
        db.refresh(church)
        print(f"Created church: {church.id}")
    else:
        print(f"Using church: {church.id}")

    user = db.query(User).filter(User.email == "pastor@example.org").first()
    if not user:
        user = User(email="pastor@example.org", name="Demo Pastor", session_token=secrets.token_hex(32))
        db.add(user)
        db.flush()
        db.add(ChurchUser(church_id=church.id, user_id=user.id, role="OWNER"))
        db.commit()
    # Session token printed only for local/demo use
    print(f"Session cookie: churchledger_session={user.session_token}")

    funds = db.query(DonationFund).filter(DonationFund.church_id == church.id).all()
    if not funds:
        funds = [
            DonationFund(church_id=church.id, name="General Fund", is_default=True),
            DonationFund(church_id=church.id, name="Missions"),
            DonationFund(church_id=church.id, name="Building Fund"),
        ]
        db.add_all(funds)
        db.flush()

    members = [
        Member(church_id=church.id, first_name=first, last_name=last, email=f"{first.lower()}@example.org")
        for first, last in [("Ruth", "Miller"), ("Samuel", "Okafor"), ("Esther", "Nguyen")]
    ]
    db.add_all(members)
    db.flush()

    now = datetime.now(timezone.utc)
    for i in range(25):
        member = random.choice(members + [None])
        db.add(Donation(
            church_id=church.id,
            member_id=member.id if member else None,
            fund_id=random.choice(funds).id,
            amount=Decimal(random.choice([20, 25, 50, 100, 250, 500])),
            payment_method=random.choice(["CASH", "CHECK", "CARD", "ACH"]),
            payment_status="COMPLETED" if i % 6 else "PENDING",
            is_anonymous=member is None and i % 2 == 0,
            donor_name=None if member else "Visitor",
            donated_at=now - timedelta(days=30 - i),
        ))
    db.commit()
    print("Created 3 members and 25 donations")
    db.close()


if __name__ == "__main__":
    seed()
