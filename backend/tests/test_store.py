import pytest
from conftest import add_auction, add_bid, add_user
from sqlalchemy import exc as sa_exc
from sqlalchemy.pool import StaticPool

from eauction.database import build_engine, is_memory_sqlite
from eauction.errors import ErrorKind, NotFound, StoreUnavailable
from eauction.models.auction import Auction, AuctionBidder
from eauction.models.result import AuctionResult, ResultStatus
from eauction.services.store import CODE_LOCK, AuctionLocks, AuctionStore


def test_upsert_keeps_single_row(store, db, clock, auction, bidders) -> None:
    bidder = bidders[0]
    with store.transaction(auction.id):
        store.upsert_result(auction.id, bidder.id, ResultStatus.DISQUALIFIED, {"disqualification_reason": "x"}, now=clock.now())
    with store.transaction(auction.id):
        row = store.upsert_result(auction.id, bidder.id, ResultStatus.SHORT_LISTED, now=clock.now())
    assert db.query(AuctionResult).count() == 1
    assert row.status == ResultStatus.SHORT_LISTED
    # reason only accompanies its own status
    assert row.disqualification_reason is None


def test_transaction_rolls_back_on_error(store, db, auction, bidders) -> None:
    with pytest.raises(RuntimeError):
        with store.transaction(auction.id):
            store.upsert_result(auction.id, bidders[0].id, ResultStatus.PENDING)
            raise RuntimeError("boom")
    assert db.query(AuctionResult).count() == 0


def test_operational_error_becomes_store_unavailable(store, db, monkeypatch) -> None:
    def broken(*args, **kwargs):
        raise sa_exc.OperationalError("SELECT 1", {}, Exception("connection refused"))

    monkeypatch.setattr(db, "query", broken)
    with pytest.raises(StoreUnavailable) as exc_info:
        store.get_auction(1)
    assert exc_info.value.kind is ErrorKind.STORE_UNAVAILABLE
    assert exc_info.value.retryable


def test_integrity_errors_are_not_translated(store, db, auction, bidders) -> None:
    with pytest.raises(sa_exc.IntegrityError):
        with store.transaction():
            store.add_auction(Auction(
                auction_id=auction.auction_id,
                title="dup",
                auction_date=auction.auction_date,
                start_time=auction.start_time,
                duration_minutes=10,
                status="scheduled",
            ), [])


def test_set_status_unknown_auction(store) -> None:
    with pytest.raises(NotFound):
        store.set_auction_status(999, "cancelled")


def test_invitations(store, auction, bidders) -> None:
    assert store.list_invitations(auction.id) == sorted(b.id for b in bidders)
    assert store.is_invited(auction.id, bidders[0].id)
    assert not store.is_invited(auction.id, 9999)


def test_list_auctions_for_bidder(store, db, auction, bidders) -> None:
    outsider = add_user(db, "BID-0050")
    other = add_auction(db, [outsider], code="AUC-0002")
    assert [a.id for a in store.list_auctions(bidder_id=outsider.id)] == [other.id]
    assert {a.id for a in store.list_auctions()} == {auction.id, other.id}


def test_locks_are_per_auction() -> None:
    locks = AuctionLocks()
    assert locks.for_auction(1) is locks.for_auction(1)
    assert locks.for_auction(1) is not locks.for_auction(2)
    with locks.hold(1):
        assert locks.for_auction(1).locked()
        assert not locks.for_auction(2).locked()
    assert not locks.for_auction(1).locked()


def test_store_shares_lock_registry(db) -> None:
    locks = AuctionLocks()
    assert AuctionStore(db, locks).locks is AuctionStore(db, locks).locks


def test_last_auction_code_orders_numerically(store, db, bidders) -> None:
    add_auction(db, bidders[:1], code="AUC-9999")
    add_auction(db, bidders[:1], code="AUC-10000")
    add_auction(db, bidders[:1], code="AUC-0042")
    assert store.last_auction_code() == "AUC-10000"


def test_last_user_code_orders_numerically(store, db) -> None:
    add_user(db, "BID-9999")
    add_user(db, "BID-10000")
    assert store.last_user_code("BID-") == "BID-10000"


def test_code_lock_is_separate_from_auction_locks() -> None:
    locks = AuctionLocks()
    with locks.hold(CODE_LOCK):
        assert locks.for_auction(CODE_LOCK).locked()
        assert not locks.for_auction(1).locked()


def test_delete_auction_removes_invitations(store, db, auction, bidders) -> None:
    with store.transaction(auction.id):
        store.delete_auction(auction)
    assert store.get_auction(auction.id) is None
    assert db.query(AuctionBidder).count() == 0


def test_count_bids(store, db, clock, auction, bidders) -> None:
    assert store.count_bids(auction.id) == 0
    add_bid(db, clock, auction, bidders[0], 100, 10, 5)
    add_bid(db, clock, auction, bidders[0], 90, 10, 6)
    assert store.count_bids(auction.id) == 2


@pytest.mark.parametrize(
    "url,memory", [("sqlite:///:memory:", True), ("sqlite://", True), ("sqlite:///./eauction.db", False)]
)
def test_is_memory_sqlite(url, memory) -> None:
    assert is_memory_sqlite(url) is memory


def test_file_sqlite_does_not_share_one_connection(tmp_path) -> None:
    engine = build_engine(f"sqlite:///{tmp_path / 'eauction.db'}")
    try:
        assert not isinstance(engine.pool, StaticPool)
        with engine.connect() as first, engine.connect() as second:
            assert first.connection.dbapi_connection is not second.connection.dbapi_connection
    finally:
        engine.dispose()


def test_memory_sqlite_uses_static_pool() -> None:
    engine = build_engine("sqlite:///:memory:")
    try:
        assert isinstance(engine.pool, StaticPool)
    finally:
        engine.dispose()
