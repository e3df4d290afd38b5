from datetime import date, datetime, time
from decimal import Decimal
from typing import Dict, List, Optional

from pydantic import BaseModel, Field


class AuctionCreate(BaseModel):
    title: str
    auction_date: date
    start_time: time
    duration_minutes: int = Field(gt=0)
    selected_bidders: List[int]
    category: Optional[str] = None
    sbu: Optional[str] = None
    special_notices: Optional[str] = None


class AuctionCancel(BaseModel):
    reason: str


class AuctionResponse(BaseModel):
    id: int
    auction_id: str
    title: str
    category: Optional[str] = None
    sbu: Optional[str] = None
    special_notices: Optional[str] = None
    auction_date: date
    start_time: time
    duration_minutes: int
    status: str  # effective status, not the stored column
    start_at: Optional[datetime] = None
    end_at: Optional[datetime] = None
    time_remaining_ms: Optional[int] = None
    cancelled_at: Optional[datetime] = None
    cancel_reason: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class AuctionDetailResponse(AuctionResponse):
    invited_bidder_ids: List[int] = []


class AuctionUpdate(BaseModel):
    """Partial edit of a scheduled auction; invitations are fixed at creation."""
    title: Optional[str] = None
    auction_date: Optional[date] = None
    start_time: Optional[time] = None
    duration_minutes: Optional[int] = Field(default=None, gt=0)
    category: Optional[str] = None
    sbu: Optional[str] = None
    special_notices: Optional[str] = None


class AuctionStatisticsResponse(BaseModel):
    id: int
    auction_id: str
    title: str
    status: str
    invited_bidders: int
    active_bidders: int
    participation_rate: Decimal
    total_bids: int
    lowest_bid: Optional[Decimal] = None
    highest_bid: Optional[Decimal] = None
    average_bid: Optional[Decimal] = None
    bids_per_hour: Dict[int, int] = {}
    start_at: datetime
    end_at: datetime
    duration_minutes: int
    time_remaining_ms: Optional[int] = None
