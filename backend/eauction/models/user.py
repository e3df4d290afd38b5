from sqlalchemy import Boolean, Column, Integer, String
from sqlalchemy.sql import func

from eauction.models.base import Base, UTCDateTime


class UserRole:
    ADMIN = "admin"
    BIDDER = "bidder"


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    user_code = Column(String(32), nullable=False, unique=True, index=True)  # e.g. "BID-0001", shown to admins
    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=False, unique=True)
    company = Column(String(255), nullable=True)
    phone = Column(String(64), nullable=True)
    role = Column(String(20), default=UserRole.BIDDER, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(UTCDateTime, server_default=func.now())
    updated_at = Column(UTCDateTime, onupdate=func.now())
