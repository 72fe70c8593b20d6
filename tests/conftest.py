"""Shared fixtures: in-memory database, API client and record factories."""
import os
import secrets
from datetime import datetime
from decimal import Decimal

# Must be set before churchledger.config builds its Settings
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("RATE_LIMIT_REQUESTS_PER_MINUTE_IP", "100000")
os.environ.setdefault("RATE_LIMIT_REQUESTS_PER_MINUTE_USER", "100000")
os.environ.setdefault("RATE_LIMIT_SYNC_REQUESTS_PER_MINUTE", "100000")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from churchledger.config import settings
from churchledger.database import Base, get_db
from churchledger.main import app
from churchledger.models import Church, ChurchUser, Donation, DonationFund, Member, User


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client(session_factory):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def provider_config(monkeypatch):
    """Process-wide OAuth client configuration for both providers."""
    monkeypatch.setattr(settings, "quickbooks_client_id", "qb-client")
    monkeypatch.setattr(settings, "quickbooks_client_secret", "qb-secret")
    monkeypatch.setattr(settings, "quickbooks_redirect_uri", "https://app.example.org/qb/callback")
    monkeypatch.setattr(settings, "quickbooks_api_url", "https://qbo.test")
    monkeypatch.setattr(settings, "xero_client_id", "xero-client")
    monkeypatch.setattr(settings, "xero_client_secret", "xero-secret")
    monkeypatch.setattr(settings, "xero_redirect_uri", "https://app.example.org/xero/callback")
    monkeypatch.setattr(settings, "xero_api_url", "https://xero.test")


def make_church(db, settings_doc=None, name="Grace Community Church") -> Church:
    church = Church(name=name, slug=secrets.token_hex(6), settings=settings_doc or {}, settings_version=0)
    db.add(church)
    db.commit()
    db.refresh(church)
    return church


def make_user(db, church=None, role="OWNER") -> User:
    user = User(email=f"{secrets.token_hex(4)}@example.org", name="Pat Admin", session_token=secrets.token_hex(32))
    db.add(user)
    db.flush()
    if church is not None:
        db.add(ChurchUser(church_id=church.id, user_id=user.id, role=role))
    db.commit()
    db.refresh(user)
    return user


def make_donation(
    db,
    church,
    amount="50.00",
    status="COMPLETED",
    member=None,
    fund=None,
    donated_at=None,
    is_anonymous=False,
    donor_name=None,
) -> Donation:
    donation = Donation(
        church_id=church.id,
        member_id=member.id if member else None,
        fund_id=fund.id if fund else None,
        amount=Decimal(amount),
        payment_status=status,
        is_anonymous=is_anonymous,
        donor_name=donor_name,
        donated_at=donated_at or datetime(2026, 3, 1, 15, 30),
    )
    db.add(donation)
    db.commit()
    db.refresh(donation)
    return donation


def make_member(db, church, first_name="Ruth", last_name="Miller") -> Member:
    member = Member(church_id=church.id, first_name=first_name, last_name=last_name, email="ruth@example.org")
    db.add(member)
    db.commit()
    db.refresh(member)
    return member


def make_fund(db, church, name="Missions") -> DonationFund:
    fund = DonationFund(church_id=church.id, name=name)
    db.add(fund)
    db.commit()
    db.refresh(fund)
    return fund


def session_headers(user: User) -> dict[str, str]:
    return {"Cookie": f"{settings.session_cookie_name}={user.session_token}"}
