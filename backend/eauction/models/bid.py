from sqlalchemy import Column, ForeignKey, Integer, Numeric
from sqlalchemy.orm import relationship

from eauction.models.base import Base, UTCDateTime


class Bid(Base):
    """One bid submission. Rows are only ever inserted."""
    __tablename__ = "bids"

    id = Column(Integer, primary_key=True, index=True)
    auction_id = Column(Integer, ForeignKey("auctions.id", ondelete="CASCADE"), nullable=False, index=True)
    bidder_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    amount = Column(Numeric(14, 2), nullable=False)
    bid_time = Column(UTCDateTime, nullable=False, index=True)

    auction = relationship("Auction", back_populates="bids")
    bidder = relationship("User")
