"""SQLAlchemy models."""
from churchledger.models.church import Church
from churchledger.models.user import User, ChurchUser
from churchledger.models.donation import Member, DonationFund, Donation, DonationSync

__all__ = [
    "Church",
    "User",
    "ChurchUser",
    "Member",
    "DonationFund",
    "Donation",
    "DonationSync",
]
