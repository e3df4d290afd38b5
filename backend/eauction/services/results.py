"""Outcome workflow for an auction: shortlist, award, not-award, disqualify, cancel.

Every operation runs as one transaction serialized per auction. Notifications
are sent only after the commit and a failed notification never undoes the
recorded result.
"""
import logging

from eauction.errors import EmptyReason, InvalidTransition, NotEnded, NotFound, NotInvited
from eauction.models.auction import Auction, AuctionStatus
from eauction.models.result import AuctionResult, ResultStatus
from eauction.services.auction_state import AuctionState
from eauction.services.ledger import BidLedger, latest_bids
from eauction.services.notifier import EventType, Notifier, build_payload
from eauction.services.ranking import BidSelection, rank_bids

logger = logging.getLogger(__name__)

# Statuses a bidder may be awarded from; "disqualified" and "cancel" are excluded
_AWARDABLE = (
    None,
    ResultStatus.PENDING,
    ResultStatus.SHORT_LISTED,
    ResultStatus.NOT_SHORT_LISTED,
    ResultStatus.AWARDED,
    ResultStatus.NOT_AWARDED,
)
_DISQUALIFIABLE = (None, ResultStatus.PENDING, ResultStatus.SHORT_LISTED, ResultStatus.DISQUALIFIED)


def _require_reason(reason: str | None, what: str) -> str:
    cleaned = (reason or "").strip()
    if not cleaned:
        raise EmptyReason(f"{what} reason is required")
    return cleaned


class ResultWorkflow:
    def __init__(self, ledger: BidLedger, state: AuctionState, notifier: Notifier, shortlist_size: int = 5):
        self.ledger = ledger
        self.store = ledger.store
        self.state = state
        self.clock = state.clock
        self.notifier = notifier
        self.shortlist_size = shortlist_size

    def _load_auction(self, auction_id: int) -> Auction:
        auction = self.store.get_auction(auction_id, for_update=True)
        if auction is None:
            raise NotFound("Auction not found")
        return auction

    def _require_open_result(self, auction: Auction) -> None:
        if auction.status == AuctionStatus.CANCELLED:
            raise InvalidTransition("Auction is cancelled; results can no longer change")

    def _require_participant(self, auction: Auction, bidder_id: int):
        bidder = self.store.get_user(bidder_id)
        if bidder is None:
            raise NotFound("Bidder not found")
        if not self.store.is_invited(auction.id, bidder_id):
            raise NotInvited("Bidder is not invited to this auction")
        return bidder

    def _dispatch(self, events: list[tuple[str, dict]]) -> None:
        for event_type, payload in events:
            try:
                self.notifier.notify(event_type, payload)
            except Exception as e:
                logger.warning(
                    "Notification %s for auction=%s bidder=%s failed: %s",
                    event_type,
                    payload.get("auction_code"),
                    payload.get("bidder_id"),
                    e,
                )

    def shortlist_top(self, auction_id: int, n: int | None = None) -> list[AuctionResult]:
        """Top ``n`` bidders by latest bid become short-listed, every other participant not-short-listed.

        Recomputed from the current bids on every run; the last run wins.
        """
        n = self.shortlist_size if n is None else n
        if n < 1:
            raise InvalidTransition("Shortlist size must be at least 1")
        events = []
        with self.store.transaction(auction_id):
            auction = self._load_auction(auction_id)
            now = self.clock.now()
            if self.state.effective(auction, now) != AuctionStatus.ENDED:
                raise NotEnded("Auction must have ended before shortlisting")
            bids = self.ledger.bids(auction_id)
            standings = rank_bids(bids, BidSelection.LATEST)
            bidders = self.store.get_users(s.bidder_id for s in standings)
            results = []
            for standing in standings:
                if standing.rank <= n:
                    previous = self.store.get_result(auction_id, standing.bidder_id)
                    since = (
                        previous.shortlisted_at
                        if previous is not None and previous.status == ResultStatus.SHORT_LISTED
                        else now
                    )
                    result = self.store.upsert_result(
                        auction_id, standing.bidder_id, ResultStatus.SHORT_LISTED,
                        {"shortlisted_at": since}, now=now,
                    )
                    events.append((
                        EventType.SHORTLISTED,
                        build_payload(auction, bidders.get(standing.bidder_id), amount=standing.amount),
                    ))
                else:
                    result = self.store.upsert_result(
                        auction_id, standing.bidder_id, ResultStatus.NOT_SHORT_LISTED,
                        {"shortlisted_at": None}, now=now,
                    )
                results.append(result)
        logger.info("shortlist: auction=%s shortlisted=%s of %s", auction_id, min(n, len(standings)), len(standings))
        self._dispatch(events)
        return results

    def award(self, auction_id: int, bidder_id: int) -> AuctionResult:
        """Award one bidder; every other short-listed bidder of the auction becomes not_awarded."""
        with self.store.transaction(auction_id):
            auction = self._load_auction(auction_id)
            self._require_open_result(auction)
            bidder = self._require_participant(auction, bidder_id)
            current = self.store.get_result(auction_id, bidder_id)
            if (current.status if current else None) not in _AWARDABLE:
                raise InvalidTransition(f"Cannot award a bidder whose result is {current.status}")
            now = self.clock.now()
            for other in self.store.list_results(auction_id):
                if other.bidder_id != bidder_id and other.status == ResultStatus.SHORT_LISTED:
                    self.store.upsert_result(auction_id, other.bidder_id, ResultStatus.NOT_AWARDED, now=now)
            result = self.store.upsert_result(auction_id, bidder_id, ResultStatus.AWARDED, now=now)
            latest = latest_bids(self.ledger.bids(auction_id)).get(bidder_id)
            payload = build_payload(auction, bidder, amount=latest.amount if latest else None)
        logger.info("award: auction=%s bidder=%s", auction_id, bidder_id)
        self._dispatch([(EventType.AWARDED, payload)])
        return result

    def mark_not_awarded(self, auction_id: int, bidder_id: int) -> AuctionResult:
        with self.store.transaction(auction_id):
            auction = self._load_auction(auction_id)
            self._require_open_result(auction)
            bidder = self._require_participant(auction, bidder_id)
            result = self.store.upsert_result(auction_id, bidder_id, ResultStatus.NOT_AWARDED, now=self.clock.now())
            payload = build_payload(auction, bidder)
        logger.info("not_awarded: auction=%s bidder=%s", auction_id, bidder_id)
        self._dispatch([(EventType.NOT_AWARDED, payload)])
        return result

    def disqualify(self, auction_id: int, bidder_id: int, reason: str) -> AuctionResult:
        """Mark a bidder disqualified. Their bids stay in the ranking history."""
        reason = _require_reason(reason, "Disqualification")
        with self.store.transaction(auction_id):
            auction = self._load_auction(auction_id)
            self._require_open_result(auction)
            bidder = self._require_participant(auction, bidder_id)
            current = self.store.get_result(auction_id, bidder_id)
            if (current.status if current else None) not in _DISQUALIFIABLE:
                raise InvalidTransition(f"Cannot disqualify a bidder whose result is {current.status}")
            result = self.store.upsert_result(
                auction_id, bidder_id, ResultStatus.DISQUALIFIED,
                {"disqualification_reason": reason}, now=self.clock.now(),
            )
            payload = build_payload(auction, bidder, reason=reason)
        logger.info("disqualify: auction=%s bidder=%s", auction_id, bidder_id)
        self._dispatch([(EventType.DISQUALIFIED, payload)])
        return result

    def cancel_auction(self, auction_id: int, reason: str, actor_id: int | None = None) -> Auction:
        """Cancel the whole auction; every bidder with a bid gets a ``cancel`` result."""
        reason = _require_reason(reason, "Cancellation")
        events = []
        with self.store.transaction(auction_id):
            auction = self._load_auction(auction_id)
            now = self.clock.now()
            self.state.ensure_cancellable(auction, now)
            self.store.set_auction_status(
                auction_id,
                AuctionStatus.CANCELLED,
                {"cancelled_by": actor_id, "cancelled_at": now, "cancel_reason": reason},
            )
            participants = self.ledger.participants(auction_id)
            bidders = self.store.get_users(participants)
            for bidder_id in participants:
                self.store.upsert_result(auction_id, bidder_id, ResultStatus.CANCEL, {"cancel_reason": reason}, now=now)
                events.append((EventType.CANCELLED, build_payload(auction, bidders.get(bidder_id), reason=reason)))
        logger.info("cancel: auction=%s by=%s affected=%s", auction_id, actor_id, len(events))
        self._dispatch(events)
        return auction
