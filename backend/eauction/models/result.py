from sqlalchemy import Column, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import relationship

from eauction.models.base import Base, UTCDateTime


class ResultStatus:
    PENDING = "pending"
    SHORT_LISTED = "short-listed"
    NOT_SHORT_LISTED = "not-short-listed"
    AWARDED = "awarded"
    NOT_AWARDED = "not_awarded"
    DISQUALIFIED = "disqualified"
    CANCEL = "cancel"

    ALL = (PENDING, SHORT_LISTED, NOT_SHORT_LISTED, AWARDED, NOT_AWARDED, DISQUALIFIED, CANCEL)


class AuctionResult(Base):
    """Outcome for one bidder in one auction.

    Created lazily by the first workflow action that touches the pair; later
    actions overwrite the same row.
    """
    __tablename__ = "auction_results"
    __table_args__ = (UniqueConstraint("auction_id", "bidder_id", name="uq_auction_result"),)

    id = Column(Integer, primary_key=True, index=True)
    auction_id = Column(Integer, ForeignKey("auctions.id", ondelete="CASCADE"), nullable=False, index=True)
    bidder_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    status = Column(String(30), default=ResultStatus.PENDING, nullable=False)
    disqualification_reason = Column(Text, nullable=True)
    cancel_reason = Column(Text, nullable=True)
    shortlisted_at = Column(UTCDateTime, nullable=True)
    updated_at = Column(UTCDateTime, nullable=True)

    auction = relationship("Auction", back_populates="results")
    bidder = relationship("User")
