from datetime import datetime
from decimal import Decimal
from typing import Any, List, Optional

from pydantic import BaseModel


class BidCreate(BaseModel):
    # Left loose so bad amounts reach the bid guard and come back as INVALID_AMOUNT
    amount: Any = None


class BidResponse(BaseModel):
    id: int
    auction_id: int
    bidder_id: int
    amount: Decimal
    bid_time: datetime

    class Config:
        from_attributes = True


class BidReceiptResponse(BaseModel):
    bid: BidResponse
    rank: Optional[int] = None
    current_best: Decimal
    message: str = "Bid placed successfully"


class BidRecord(BaseModel):
    """One row of the admin bid history for an auction."""
    bid_id: int
    bidder_id: int
    bidder_user_code: Optional[str] = None
    bidder_name: Optional[str] = None
    company_name: Optional[str] = None
    amount: Decimal
    bid_time: datetime
    result_status: Optional[str] = None
    disqualification_reason: Optional[str] = None


class RankResponse(BaseModel):
    rank: Optional[int] = None
    total_bidders: int


class LatestBidResponse(BaseModel):
    bid: Optional[BidResponse] = None


class AdminStanding(BaseModel):
    rank: int
    bidder_id: int
    bidder_user_code: Optional[str] = None
    bidder_name: Optional[str] = None
    company_name: Optional[str] = None
    amount: Decimal
    bid_time: datetime
    bid_count: int


class BidderStanding(BaseModel):
    """Leaderboard row as a bidder sees it: other bidders stay anonymous."""
    rank: int
    amount: Decimal
    is_you: bool = False


class LeaderboardResponse(BaseModel):
    auction_id: int
    status: str
    selection: str
    current_time: datetime
    admin_rankings: Optional[List[AdminStanding]] = None
    bidder_rankings: Optional[List[BidderStanding]] = None


class HistoryItemResponse(BaseModel):
    auction_ref: int
    auction_id: str
    title: str
    auction_date: str
    amount: Decimal
    bid_time: datetime
    result: str


class Pagination(BaseModel):
    current_page: int
    total_pages: int
    total_items: int
    items_per_page: int
    has_next_page: bool
    has_prev_page: bool


class HistorySummary(BaseModel):
    total_auctions_participated: int
    total_bids_placed: int
    auctions_won: int
    auctions_completed: int


class HistoryResponse(BaseModel):
    history: List[HistoryItemResponse]
    pagination: Pagination
    summary: HistorySummary
