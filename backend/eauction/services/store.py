"""SQLAlchemy-backed store for auctions, invitations, bids and results."""
import logging
import threading
from contextlib import contextmanager
from datetime import datetime

from sqlalchemy import exc as sa_exc
from sqlalchemy import func
from sqlalchemy.orm import Session

from eauction.errors import NotFound, StoreUnavailable
from eauction.models.auction import Auction, AuctionBidder
from eauction.models.bid import Bid
from eauction.models.result import AuctionResult
from eauction.models.user import User, UserRole

logger = logging.getLogger(__name__)

# Connectivity and pool failures; integrity or programming errors propagate unchanged
_TRANSIENT_ERRORS = (sa_exc.OperationalError, sa_exc.DisconnectionError, sa_exc.TimeoutError)


@contextmanager
def translate_store_errors():
    try:
        yield
    except _TRANSIENT_ERRORS as e:
        logger.warning("Store unavailable: %s", e)
        raise StoreUnavailable() from e


def _result_state(result: AuctionResult) -> tuple:
    return (result.status, result.disqualification_reason, result.cancel_reason, result.shortlisted_at)

# Lock key serializing display-code allocation (AUC-/BID- sequences)
CODE_LOCK = "codes"


class AuctionLocks:
    """Process-local single-writer lock per key: an auction id, or CODE_LOCK."""

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: dict[int | str, threading.Lock] = {}

    def for_auction(self, auction_id: int | str) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(auction_id)
            if lock is None:
                lock = self._locks[auction_id] = threading.Lock()
            return lock

    @contextmanager
    def hold(self, auction_id: int | str | None):
        if auction_id is None:
            yield
            return
        lock = self.for_auction(auction_id)
        with lock:
            yield


class AuctionStore:
    def __init__(self, db: Session, locks: AuctionLocks | None = None):
        self.db = db
        self.locks = locks or AuctionLocks()

    @contextmanager
    def transaction(self, auction_id: int | str | None = None):
        """One atomic unit of work; serialized per auction (or per lock key) when given."""
        with self.locks.hold(auction_id):
            try:
                with translate_store_errors():
                    yield self
                    self.db.commit()
            except Exception:
                self.db.rollback()
                raise

    # Users

    def get_user(self, user_id: int) -> User | None:
        with translate_store_errors():
            return self.db.query(User).filter(User.id == user_id).first()

    def get_user_by_code(self, user_code: str) -> User | None:
        with translate_store_errors():
            return self.db.query(User).filter(User.user_code == user_code).first()

    def get_users(self, user_ids) -> dict[int, User]:
        ids = list(set(user_ids))
        if not ids:
            return {}
        with translate_store_errors():
            return {u.id: u for u in self.db.query(User).filter(User.id.in_(ids)).all()}

    def get_user_by_email(self, email: str) -> User | None:
        with translate_store_errors():
            return self.db.query(User).filter(User.email == email).first()

    def list_bidders(self, active_only: bool = False) -> list[User]:
        with translate_store_errors():
            q = self.db.query(User).filter(User.role == UserRole.BIDDER)
            if active_only:
                q = q.filter(User.is_active.is_(True))
            return q.order_by(User.user_code).all()

    def last_user_code(self, prefix: str) -> str | None:
        with translate_store_errors():
            row = (
                self.db.query(User.user_code)
                .filter(User.user_code.like(f"{prefix}%"))
                .order_by(func.length(User.user_code).desc(), User.user_code.desc())
                .first()
            )
        return row[0] if row else None

    def add_user(self, user: User) -> User:
        with translate_store_errors():
            self.db.add(user)
            self.db.flush()
        return user

    # Auctions

    def get_auction(self, auction_id: int, for_update: bool = False) -> Auction | None:
        with translate_store_errors():
            q = self.db.query(Auction).filter(Auction.id == auction_id)
            if for_update:
                q = q.with_for_update()
            return q.first()

    def get_auction_by_code(self, code: str) -> Auction | None:
        with translate_store_errors():
            return self.db.query(Auction).filter(Auction.auction_id == code).first()

    def list_auctions(self, bidder_id: int | None = None, exclude_cancelled: bool = False) -> list[Auction]:
        with translate_store_errors():
            q = self.db.query(Auction)
            if bidder_id is not None:
                q = q.join(AuctionBidder, AuctionBidder.auction_id == Auction.id).filter(
                    AuctionBidder.bidder_id == bidder_id
                )
            if exclude_cancelled:
                q = q.filter(Auction.status != "cancelled")
            return q.order_by(Auction.auction_date.desc(), Auction.start_time.desc()).all()

    def last_auction_code(self) -> str | None:
        with translate_store_errors():
            # Longer codes are larger numbers once the counter outgrows its zero padding
            row = (
                self.db.query(Auction.auction_id)
                .order_by(func.length(Auction.auction_id).desc(), Auction.auction_id.desc())
                .first()
            )
        return row[0] if row else None

    def add_auction(self, auction: Auction, bidder_ids) -> Auction:
        with translate_store_errors():
            self.db.add(auction)
            self.db.flush()
            for bidder_id in bidder_ids:
                self.db.add(AuctionBidder(auction_id=auction.id, bidder_id=bidder_id))
            self.db.flush()
        return auction

    def delete_auction(self, auction: Auction) -> None:
        """Remove an auction with its invitations and result rows; callers ensure it has no bids."""
        with translate_store_errors():
            self.db.query(AuctionResult).filter(AuctionResult.auction_id == auction.id).delete(synchronize_session=False)
            self.db.expire(auction, ["results"])
            self.db.delete(auction)
            self.db.flush()

    def count_bids(self, auction_id: int) -> int:
        with translate_store_errors():
            return self.db.query(Bid).filter(Bid.auction_id == auction_id).count()

    def set_auction_status(self, auction_id: int, status: str, meta: dict | None = None) -> Auction:
        auction = self.get_auction(auction_id)
        if auction is None:
            raise NotFound("Auction not found")
        auction.status = status
        for key, value in (meta or {}).items():
            setattr(auction, key, value)
        with translate_store_errors():
            self.db.flush()
        return auction

    # Invitations

    def list_invitations(self, auction_id: int) -> list[int]:
        with translate_store_errors():
            rows = (
                self.db.query(AuctionBidder.bidder_id)
                .filter(AuctionBidder.auction_id == auction_id)
                .order_by(AuctionBidder.bidder_id)
                .all()
            )
        return [r[0] for r in rows]

    def is_invited(self, auction_id: int, bidder_id: int) -> bool:
        with translate_store_errors():
            return (
                self.db.query(AuctionBidder.id)
                .filter(AuctionBidder.auction_id == auction_id, AuctionBidder.bidder_id == bidder_id)
                .first()
                is not None
            )

    # Bids

    def append_bid(self, bid: Bid) -> Bid:
        with translate_store_errors():
            self.db.add(bid)
            self.db.flush()
        return bid

    def list_bids(self, auction_id: int) -> list[Bid]:
        with translate_store_errors():
            return (
                self.db.query(Bid)
                .filter(Bid.auction_id == auction_id)
                .order_by(Bid.bid_time, Bid.id)
                .all()
            )

    def list_bids_for_bidder(self, bidder_id: int) -> list[Bid]:
        with translate_store_errors():
            return (
                self.db.query(Bid)
                .filter(Bid.bidder_id == bidder_id)
                .order_by(Bid.bid_time.desc(), Bid.id.desc())
                .all()
            )

    # Results

    def get_result(self, auction_id: int, bidder_id: int) -> AuctionResult | None:
        with translate_store_errors():
            return (
                self.db.query(AuctionResult)
                .filter(AuctionResult.auction_id == auction_id, AuctionResult.bidder_id == bidder_id)
                .first()
            )

    def list_results(self, auction_id: int) -> list[AuctionResult]:
        with translate_store_errors():
            return (
                self.db.query(AuctionResult)
                .filter(AuctionResult.auction_id == auction_id)
                .order_by(AuctionResult.bidder_id)
                .all()
            )

    def list_results_by_status(self, status: str) -> list[AuctionResult]:
        with translate_store_errors():
            return (
                self.db.query(AuctionResult)
                .filter(AuctionResult.status == status)
                .order_by(AuctionResult.updated_at.desc(), AuctionResult.id.desc())
                .all()
            )

    def upsert_result(
        self,
        auction_id: int,
        bidder_id: int,
        status: str,
        extra: dict | None = None,
        now: datetime | None = None,
    ) -> AuctionResult:
        """Insert or overwrite the single result row for (auction, bidder).

        Reason fields not named in ``extra`` are cleared so they only ever
        accompany their matching status. ``updated_at`` moves only when the
        row actually changes, so rewriting the same outcome leaves it as is.
        """
        result = self.get_result(auction_id, bidder_id)
        before = None
        if result is None:
            result = AuctionResult(auction_id=auction_id, bidder_id=bidder_id)
            self.db.add(result)
        else:
            before = _result_state(result)
        result.status = status
        result.disqualification_reason = None
        result.cancel_reason = None
        for key, value in (extra or {}).items():
            setattr(result, key, value)
        if before is None or _result_state(result) != before:
            result.updated_at = now
        with translate_store_errors():
            self.db.flush()
        return result
