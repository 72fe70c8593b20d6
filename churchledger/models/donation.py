"""Donation, fund, member and ledger sync marker models."""
from sqlalchemy import (
    Column, Integer, String, Numeric, ForeignKey, DateTime, Boolean, Text, UniqueConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from churchledger.database import Base


class Member(Base):
    """Church member; the payer reference of a donation."""

    __tablename__ = "members"

    id = Column(Integer, primary_key=True, index=True)
    church_id = Column(Integer, ForeignKey("churches.id"), nullable=False, index=True)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    email = Column(String(320))
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


class DonationFund(Base):
    __tablename__ = "donation_funds"

    id = Column(Integer, primary_key=True, index=True)
    church_id = Column(Integer, ForeignKey("churches.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    description = Column(Text)
    is_default = Column(Boolean, default=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class Donation(Base):
    """Recorded gift. Immutable once COMPLETED."""

    __tablename__ = "donations"

    id = Column(Integer, primary_key=True, index=True)
    church_id = Column(Integer, ForeignKey("churches.id"), nullable=False, index=True)
    member_id = Column(Integer, ForeignKey("members.id"), nullable=True, index=True)
    fund_id = Column(Integer, ForeignKey("donation_funds.id"), nullable=True, index=True)

    amount = Column(Numeric(10, 2), nullable=False)
    payment_method = Column(String(20), default="CASH")  # CASH, CHECK, CARD, ACH, ONLINE
    payment_status = Column(String(20), nullable=False, default="COMPLETED", index=True)  # PENDING, COMPLETED, FAILED, REFUNDED
    donor_name = Column(String(255))
    is_anonymous = Column(Boolean, default=False)
    donated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    church = relationship("Church", back_populates="donations")
    member = relationship("Member")
    fund = relationship("DonationFund")
    ledger_syncs = relationship("DonationSync", back_populates="donation", cascade="all, delete-orphan")

    @property
    def payer_name(self):
        """Display name of the payer, or None when the gift has no identifiable donor."""
        if self.is_anonymous:
            return None
        if self.member is not None and self.member.full_name:
            return self.member.full_name
        return self.donor_name or None


class DonationSync(Base):
    """Marks a donation as accepted by one ledger provider.

    Presence of a row excludes the donation from that provider's next sync batch.
    """

    __tablename__ = "donation_syncs"

    id = Column(Integer, primary_key=True, index=True)
    donation_id = Column(Integer, ForeignKey("donations.id"), nullable=False, index=True)
    provider = Column(String(20), nullable=False)  # quickbooks, xero
    external_id = Column(String(100))  # SalesReceipt.Id / BankTransactionID when returned
    synced_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        UniqueConstraint("donation_id", "provider", name="uq_donation_sync_provider"),
    )

    donation = relationship("Donation", back_populates="ledger_syncs")
