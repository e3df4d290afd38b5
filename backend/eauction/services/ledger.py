from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from eauction.models.bid import Bid
from eauction.services.store import AuctionStore

AMOUNT_SCALE = Decimal("0.01")
# Largest value the Numeric(14, 2) amount column holds
MAX_AMOUNT = Decimal("999999999999.99")


def normalize_amount(value) -> Decimal | None:
    """Exact fixed-scale decimal for ``value``; None if it is not a finite number."""
    if value is None or isinstance(value, bool):
        return None
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return None
    if not amount.is_finite():
        return None
    try:
        return amount.quantize(AMOUNT_SCALE, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        # More digits than the decimal context can hold at this scale
        return None


def best_bids(bids) -> dict[int, Bid]:
    """Per bidder: lowest amount, earliest bid_time among equal lows (when it was first achieved)."""
    best: dict[int, Bid] = {}
    for bid in bids:
        current = best.get(bid.bidder_id)
        if current is None or (normalize_amount(bid.amount), bid.bid_time, bid.id or 0) < (
            normalize_amount(current.amount), current.bid_time, current.id or 0
        ):
            best[bid.bidder_id] = bid
    return best


def latest_bids(bids) -> dict[int, Bid]:
    """Per bidder: most recent bid_time; a same-instant tie keeps the lower amount."""
    latest: dict[int, Bid] = {}
    for bid in bids:
        current = latest.get(bid.bidder_id)
        if current is None:
            latest[bid.bidder_id] = bid
            continue
        if bid.bid_time > current.bid_time or (
            bid.bid_time == current.bid_time
            and (normalize_amount(bid.amount), bid.id or 0) < (normalize_amount(current.amount), current.id or 0)
        ):
            latest[bid.bidder_id] = bid
    return latest


class BidLedger:
    """Append-only bid history per auction."""

    def __init__(self, store: AuctionStore):
        self.store = store

    def append(self, auction_id: int, bidder_id: int, amount: Decimal, bid_time: datetime) -> Bid:
        return self.store.append_bid(
            Bid(auction_id=auction_id, bidder_id=bidder_id, amount=amount, bid_time=bid_time)
        )

    def bids(self, auction_id: int) -> list[Bid]:
        return self.store.list_bids(auction_id)

    def history(self, auction_id: int) -> list[Bid]:
        """All bids, newest first."""
        return sorted(self.bids(auction_id), key=lambda b: (b.bid_time, b.id or 0), reverse=True)

    def best_bids(self, auction_id: int) -> dict[int, Bid]:
        return best_bids(self.bids(auction_id))

    def latest_bids(self, auction_id: int) -> dict[int, Bid]:
        return latest_bids(self.bids(auction_id))

    def latest_bid_for(self, auction_id: int, bidder_id: int) -> Bid | None:
        own = [b for b in self.bids(auction_id) if b.bidder_id == bidder_id]
        return latest_bids(own).get(bidder_id)

    def participants(self, auction_id: int) -> list[int]:
        return sorted({b.bidder_id for b in self.bids(auction_id)})
