"""User and church membership models."""
from sqlalchemy import Column, Integer, String, ForeignKey, DateTime
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from churchledger.database import Base


class User(Base):
    """Authenticated identity. The session cookie carries session_token."""

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(320), nullable=False, unique=True, index=True)
    name = Column(String(255))
    session_token = Column(String(64), unique=True, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    memberships = relationship("ChurchUser", back_populates="user")


class ChurchUser(Base):
    """Links a user to the church they administer."""

    __tablename__ = "church_users"

    id = Column(Integer, primary_key=True, index=True)
    church_id = Column(Integer, ForeignKey("churches.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    role = Column(String(20), nullable=False, default="MEMBER")  # OWNER, ADMIN, STAFF, MEMBER
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    church = relationship("Church", back_populates="memberships")
    user = relationship("User", back_populates="memberships")
