"""Per-bidder auction history: latest bid per auction with its outcome."""
import math
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal

from eauction.models.auction import Auction, AuctionStatus
from eauction.services.auction_state import AuctionState
from eauction.services.ledger import latest_bids
from eauction.services.ranking import Outcome, outcome_from_bids
from eauction.services.store import AuctionStore


@dataclass
class HistoryItem:
    auction: Auction
    amount: Decimal
    bid_time: datetime
    outcome: Outcome


@dataclass
class HistoryPage:
    items: list[HistoryItem]
    page: int
    limit: int
    total_items: int
    total_bids: int
    summary: dict = field(default_factory=dict)

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total_items / self.limit) if self.limit else 0


def bidder_history(store: AuctionStore, state: AuctionState, bidder_id: int, page: int = 1, limit: int = 10) -> HistoryPage:
    page = max(page, 1)
    limit = max(limit, 1)
    own_bids = store.list_bids_for_bidder(bidder_id)
    by_auction: dict[int, list] = {}
    for bid in own_bids:
        by_auction.setdefault(bid.auction_id, []).append(bid)
    last_per_auction = [latest_bids(bids)[bidder_id] for bids in by_auction.values()]
    last_per_auction.sort(key=lambda b: (b.bid_time, b.id or 0), reverse=True)

    now = state.clock.now()
    items = []
    for bid in last_per_auction:
        auction = store.get_auction(bid.auction_id)
        status = state.effective(auction, now)
        if status == AuctionStatus.CANCELLED:
            outcome = Outcome.CANCELLED
        elif status != AuctionStatus.ENDED:
            outcome = Outcome.PENDING
        else:
            outcome = outcome_from_bids(store.list_bids(auction.id), bidder_id)
        items.append(HistoryItem(auction=auction, amount=bid.amount, bid_time=bid.bid_time, outcome=outcome))

    won = sum(1 for i in items if i.outcome == Outcome.WON)
    completed = sum(1 for i in items if i.outcome in (Outcome.WON, Outcome.LOST))
    offset = (page - 1) * limit
    return HistoryPage(
        items=items[offset:offset + limit],
        page=page,
        limit=limit,
        total_items=len(items),
        total_bids=len(own_bids),
        summary={
            "total_auctions_participated": len(items),
            "total_bids_placed": len(own_bids),
            "auctions_won": won,
            "auctions_completed": completed,
        },
    )
