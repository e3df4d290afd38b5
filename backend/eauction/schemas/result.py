from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel


class DisqualifyBody(BaseModel):
    reason: str


class AuctionResultResponse(BaseModel):
    id: int
    auction_id: int
    bidder_id: int
    status: str
    disqualification_reason: Optional[str] = None
    cancel_reason: Optional[str] = None
    shortlisted_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class AwardedResultRow(BaseModel):
    """One row of the awarded-results overview."""
    auction_ref: int
    auction_id: str
    title: str
    auction_date: str
    bidder_id: int
    bidder_user_code: Optional[str] = None
    bidder_name: Optional[str] = None
    company_name: Optional[str] = None
    winning_amount: Optional[Decimal] = None
    awarded_at: Optional[datetime] = None
