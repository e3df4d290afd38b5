from sqlalchemy import Column, Date, ForeignKey, Integer, String, Text, Time, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from eauction.models.base import Base, UTCDateTime


class AuctionStatus:
    SCHEDULED = "scheduled"
    LIVE = "live"
    ENDED = "ended"
    CANCELLED = "cancelled"


class Auction(Base):
    __tablename__ = "auctions"

    id = Column(Integer, primary_key=True, index=True)
    auction_id = Column(String(32), nullable=False, unique=True, index=True)  # display code, e.g. "AUC-0007"
    title = Column(String(255), nullable=False)
    category = Column(String(100), nullable=True)
    sbu = Column(String(50), nullable=True)
    special_notices = Column(Text, nullable=True)
    # Local wall-clock in the configured timezone; the window is derived by Clock.resolve_window
    auction_date = Column(Date, nullable=False)
    start_time = Column(Time, nullable=False)
    duration_minutes = Column(Integer, nullable=False)
    # Only "cancelled" is authoritative; live/ended are derived from the window at read time
    status = Column(String(20), default=AuctionStatus.SCHEDULED, nullable=False)
    created_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    cancelled_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    cancelled_at = Column(UTCDateTime, nullable=True)
    cancel_reason = Column(Text, nullable=True)
    created_at = Column(UTCDateTime, server_default=func.now())
    updated_at = Column(UTCDateTime, onupdate=func.now())

    invitations = relationship("AuctionBidder", back_populates="auction", cascade="all, delete-orphan")
    bids = relationship("Bid", back_populates="auction", order_by="Bid.bid_time")
    results = relationship("AuctionResult", back_populates="auction")


class AuctionBidder(Base):
    """Invitation: the bidder may bid in the auction. Immutable once created."""
    __tablename__ = "auction_bidders"
    __table_args__ = (UniqueConstraint("auction_id", "bidder_id", name="uq_auction_bidder"),)

    id = Column(Integer, primary_key=True, index=True)
    auction_id = Column(Integer, ForeignKey("auctions.id", ondelete="CASCADE"), nullable=False, index=True)
    bidder_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    created_at = Column(UTCDateTime, server_default=func.now())

    auction = relationship("Auction", back_populates="invitations")
    bidder = relationship("User")
