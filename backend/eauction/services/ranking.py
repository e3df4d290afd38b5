"""Reverse-auction ranking: lowest amount first, earliest bid_time breaks ties.

The live leaderboard ranks each bidder by their best (lowest ever) bid. The
formal outcome at close uses each bidder's latest bid instead, so a bidder is
judged on their final stance.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum

from eauction.errors import NotFound
from eauction.models.auction import AuctionStatus
from eauction.models.bid import Bid
from eauction.services.auction_state import AuctionState
from eauction.services.ledger import BidLedger, best_bids, latest_bids, normalize_amount

logger = logging.getLogger(__name__)


class BidSelection(str, Enum):
    BEST = "best"
    LATEST = "latest"


class Outcome(str, Enum):
    WON = "Won"
    LOST = "Lost"
    NO_BIDS = "No Bids"
    PENDING = "Pending"
    CANCELLED = "Cancelled"


@dataclass(frozen=True)
class Standing:
    rank: int
    bidder_id: int
    amount: Decimal
    bid_time: datetime
    bid_count: int


def rank_bids(bids, selection: BidSelection = BidSelection.BEST) -> list[Standing]:
    """Ordered standings for one auction's bids. Pure function of the bid set."""
    bids = list(bids)
    selected = best_bids(bids) if selection == BidSelection.BEST else latest_bids(bids)
    counts: dict[int, int] = {}
    for bid in bids:
        counts[bid.bidder_id] = counts.get(bid.bidder_id, 0) + 1
    ordered = sorted(
        selected.values(),
        key=lambda b: (normalize_amount(b.amount), b.bid_time, b.bidder_id),
    )
    return [
        Standing(
            rank=position,
            bidder_id=bid.bidder_id,
            amount=normalize_amount(bid.amount),
            bid_time=bid.bid_time,
            bid_count=counts[bid.bidder_id],
        )
        for position, bid in enumerate(ordered, start=1)
    ]


def determine_winner(bids) -> Standing | None:
    standings = rank_bids(bids, BidSelection.LATEST)
    return standings[0] if standings else None


def current_best_amount(bids) -> Decimal | None:
    amounts = [normalize_amount(b.amount) for b in bids]
    return min(amounts) if amounts else None


def rank_in(standings: list[Standing], bidder_id: int) -> int | None:
    for standing in standings:
        if standing.bidder_id == bidder_id:
            return standing.rank
    return None


class RankingEngine:
    def __init__(self, ledger: BidLedger, state: AuctionState):
        self.ledger = ledger
        self.state = state

    def _bids(self, auction_id: int) -> list[Bid]:
        return self.ledger.bids(auction_id)

    def leaderboard(self, auction_id: int, selection: BidSelection = BidSelection.BEST) -> list[Standing]:
        return rank_bids(self._bids(auction_id), selection)

    def rank_of(self, auction_id: int, bidder_id: int, selection: BidSelection = BidSelection.BEST) -> int | None:
        return rank_in(self.leaderboard(auction_id, selection), bidder_id)

    def current_best(self, auction_id: int) -> Decimal | None:
        return current_best_amount(self._bids(auction_id))

    def winner(self, auction_id: int) -> Standing | None:
        return determine_winner(self._bids(auction_id))

    def outcome_for(self, auction_id: int, bidder_id: int, now: datetime | None = None) -> Outcome:
        auction = self.ledger.store.get_auction(auction_id)
        if auction is None:
            raise NotFound("Auction not found")
        status = self.state.effective(auction, now)
        if status == AuctionStatus.CANCELLED:
            return Outcome.CANCELLED
        if status != AuctionStatus.ENDED:
            return Outcome.PENDING
        return outcome_from_bids(self._bids(auction_id), bidder_id)


def outcome_from_bids(bids, bidder_id: int) -> Outcome:
    """Closing outcome for a bidder once the auction has ended."""
    bids = list(bids)
    if not any(b.bidder_id == bidder_id for b in bids):
        return Outcome.NO_BIDS
    winner = determine_winner(bids)
    return Outcome.WON if winner.bidder_id == bidder_id else Outcome.LOST
