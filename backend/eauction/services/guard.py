import logging
from dataclasses import dataclass
from decimal import Decimal

from eauction.errors import InvalidAmount, NotFound, NotInvited, NotLive
from eauction.models.bid import Bid
from eauction.services.auction_state import AuctionState
from eauction.services.ledger import MAX_AMOUNT, BidLedger, normalize_amount
from eauction.services.ranking import current_best_amount, rank_bids, rank_in

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BidReceipt:
    bid: Bid
    rank: int | None
    current_best: Decimal


class BidSubmissionGuard:
    """Validates a bid attempt and appends it to the ledger.

    Checks run in a fixed order and the first failure wins: amount, auction
    exists, auction live, bidder invited. Higher bids after lower ones are
    accepted.
    """

    def __init__(self, ledger: BidLedger, state: AuctionState):
        self.ledger = ledger
        self.state = state
        self.store = ledger.store
        self.clock = state.clock

    def submit_bid(self, auction_id: int, bidder_id: int, amount) -> BidReceipt:
        value = normalize_amount(amount)
        if value is None or value <= 0 or value > MAX_AMOUNT:
            raise InvalidAmount()

        with self.store.transaction(auction_id):
            auction = self.store.get_auction(auction_id, for_update=True)
            if auction is None:
                raise NotFound("Auction not found")
            now = self.clock.now()
            if not self.state.is_live(auction, now):
                logger.info("submit_bid: auction=%s bidder=%s rejected, not live", auction_id, bidder_id)
                raise NotLive()
            if not self.store.is_invited(auction_id, bidder_id):
                logger.info("submit_bid: auction=%s bidder=%s rejected, not invited", auction_id, bidder_id)
                raise NotInvited()
            bid = self.ledger.append(auction_id, bidder_id, value, now)
            bids = self.ledger.bids(auction_id)
            rank = rank_in(rank_bids(bids), bidder_id)
            best = current_best_amount(bids)

        logger.info(
            "submit_bid: auction=%s bidder=%s amount=%s rank=%s best=%s", auction_id, bidder_id, value, rank, best
        )
        return BidReceipt(bid=bid, rank=rank, current_best=best)
