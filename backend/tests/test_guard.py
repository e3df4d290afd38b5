from decimal import Decimal

import pytest
from conftest import add_auction, add_user

from eauction.errors import ErrorKind, InvalidAmount, NotFound, NotInvited, NotLive
from eauction.models.bid import Bid


def _bid_count(db) -> int:
    return db.query(Bid).count()


def test_accepts_bid_and_reports_rank(guard, clock, auction, bidders, db) -> None:
    clock.set(10, 5)
    receipt = guard.submit_bid(auction.id, bidders[0].id, "100")
    assert receipt.rank == 1
    assert receipt.current_best == Decimal("100.00")
    assert receipt.bid.bid_time == clock.now()

    clock.set(10, 7)
    receipt = guard.submit_bid(auction.id, bidders[1].id, Decimal("95"))
    assert receipt.rank == 1
    assert receipt.current_best == Decimal("95.00")

    clock.set(10, 8)
    receipt = guard.submit_bid(auction.id, bidders[0].id, 120)
    # a higher bid after a lower one is accepted; rank still uses the best bid
    assert receipt.rank == 2
    assert receipt.current_best == Decimal("95.00")
    assert _bid_count(db) == 3


@pytest.mark.parametrize(
    "amount",
    [0, -5, "abc", None, float("nan"), float("inf"), "0.001", True, "1e30", "1000000000000", "999999999999.995"],
)
def test_invalid_amount_is_rejected_first(guard, clock, db, amount) -> None:
    clock.set(10, 5)
    # amount is checked before the auction lookup, so a missing auction still reports INVALID_AMOUNT
    with pytest.raises(InvalidAmount) as exc_info:
        guard.submit_bid(999, 1, amount)
    assert exc_info.value.kind is ErrorKind.VALIDATION
    assert _bid_count(db) == 0


def test_largest_column_amount_is_accepted(guard, clock, auction, bidders) -> None:
    clock.set(10, 5)
    receipt = guard.submit_bid(auction.id, bidders[0].id, "999999999999.99")
    assert receipt.current_best == Decimal("999999999999.99")


def test_unknown_auction(guard, clock, bidders) -> None:
    clock.set(10, 5)
    with pytest.raises(NotFound):
        guard.submit_bid(999, bidders[0].id, 10)


@pytest.mark.parametrize("at", [(9, 59, 59), (11, 0, 1), (15, 0, 0)])
def test_outside_window_is_not_live(guard, clock, auction, bidders, db, at) -> None:
    clock.set(*at)
    with pytest.raises(NotLive) as exc_info:
        guard.submit_bid(auction.id, bidders[0].id, 10)
    assert exc_info.value.kind is ErrorKind.STATE_CONFLICT
    assert exc_info.value.reason == "Auction is not currently live"
    assert _bid_count(db) == 0


@pytest.mark.parametrize("at", [(10, 0, 0), (11, 0, 0)])
def test_window_boundaries_are_inclusive(guard, clock, auction, bidders, at) -> None:
    clock.set(*at)
    receipt = guard.submit_bid(auction.id, bidders[0].id, 10)
    assert receipt.bid.id is not None


def test_cancelled_auction_is_not_live(guard, clock, auction, bidders, db) -> None:
    auction.status = "cancelled"
    db.commit()
    clock.set(10, 30)
    with pytest.raises(NotLive):
        guard.submit_bid(auction.id, bidders[0].id, 10)


def test_uninvited_bidder_creates_no_bid(guard, clock, db, bidders) -> None:
    outsider = add_user(db, "BID-0099")
    other = add_auction(db, bidders[:2], code="AUC-0002")
    clock.set(10, 30)
    with pytest.raises(NotInvited) as exc_info:
        guard.submit_bid(other.id, outsider.id, 50)
    assert exc_info.value.kind is ErrorKind.UNAUTHORIZED_PARTICIPANT
    assert _bid_count(db) == 0


def test_not_live_is_checked_before_invitation(guard, clock, db, bidders) -> None:
    outsider = add_user(db, "BID-0099")
    other = add_auction(db, bidders[:2], code="AUC-0002")
    clock.set(8, 0)
    with pytest.raises(NotLive):
        guard.submit_bid(other.id, outsider.id, 50)
