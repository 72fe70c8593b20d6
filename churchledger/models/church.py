"""Church (tenant) model."""
from sqlalchemy import Column, Integer, String, DateTime, JSON
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from churchledger.database import Base


class Church(Base):
    """Customer organization. All other records are scoped to one church."""

    __tablename__ = "churches"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    slug = Column(String(100), unique=True, index=True)

    # Generic key-value document shared by many features, including the
    # namespaced ledger credentials (quickbooksAccessToken, xeroTenantId, ...).
    # Only written through services.credentials.patch_settings.
    settings = Column(JSON, nullable=False, default=dict)
    settings_version = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    memberships = relationship("ChurchUser", back_populates="church")
    donations = relationship("Donation", back_populates="church")
