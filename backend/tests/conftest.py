from datetime import date, datetime, time, timedelta

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

import eauction.models  # noqa: F401
from eauction.config import Settings
from eauction.database import build_engine, build_session_factory
from eauction.main import create_app
from eauction.models.auction import Auction, AuctionBidder
from eauction.models.base import Base
from eauction.models.bid import Bid
from eauction.models.user import User, UserRole
from eauction.services.auction_state import AuctionState
from eauction.services.clock import Clock
from eauction.services.guard import BidSubmissionGuard
from eauction.services.ledger import BidLedger
from eauction.services.ranking import RankingEngine
from eauction.services.results import ResultWorkflow
from eauction.services.store import AuctionStore

TZ = "Asia/Colombo"
AUCTION_DAY = date(2026, 3, 10)


class FrozenClock(Clock):
    """Clock whose "now" only moves when a test moves it."""

    def __init__(self, timezone: str = TZ):
        super().__init__(timezone)
        self.current = self.localize(AUCTION_DAY, time(9, 0))

    def now(self) -> datetime:
        return self.current

    def set(self, hh: int, mm: int, ss: int = 0, day: date = AUCTION_DAY) -> datetime:
        self.current = self.localize(day, time(hh, mm, ss))
        return self.current

    def advance(self, **kwargs) -> datetime:
        self.current = self.current + timedelta(**kwargs)
        return self.current


class RecordingNotifier:
    def __init__(self):
        self.events: list[tuple[str, dict]] = []

    def notify(self, event_type: str, payload: dict) -> None:
        self.events.append((event_type, payload))

    def of_type(self, event_type: str) -> list[dict]:
        return [p for t, p in self.events if t == event_type]


class FailingNotifier:
    def notify(self, event_type: str, payload: dict) -> None:
        raise ConnectionError("mail relay down")


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def db():
    engine = build_engine("sqlite:///:memory:")
    Base.metadata.create_all(bind=engine)
    session = build_session_factory(engine)()
    try:
        yield session
    finally:
        session.close()
        engine.dispose()


@pytest.fixture
def store(db: Session) -> AuctionStore:
    return AuctionStore(db)


@pytest.fixture
def state(clock) -> AuctionState:
    return AuctionState(clock)


@pytest.fixture
def ledger(store) -> BidLedger:
    return BidLedger(store)


@pytest.fixture
def ranking(ledger, state) -> RankingEngine:
    return RankingEngine(ledger, state)


@pytest.fixture
def guard(ledger, state) -> BidSubmissionGuard:
    return BidSubmissionGuard(ledger, state)


@pytest.fixture
def workflow(ledger, state, notifier) -> ResultWorkflow:
    return ResultWorkflow(ledger, state, notifier, shortlist_size=5)


def add_user(db: Session, code: str, role: str = UserRole.BIDDER, active: bool = True) -> User:
    user = User(
        user_code=code,
        name=f"User {code}",
        email=f"{code.lower()}@example.com",
        company=f"{code} Ltd",
        role=role,
        is_active=active,
    )
    db.add(user)
    db.commit()
    return user


def add_auction(
    db: Session,
    bidders,
    code: str = "AUC-0001",
    start: time = time(10, 0),
    duration: int = 60,
    day: date = AUCTION_DAY,
) -> Auction:
    auction = Auction(
        auction_id=code,
        title=f"Auction {code}",
        category="Packaging",
        sbu="SBU1",
        auction_date=day,
        start_time=start,
        duration_minutes=duration,
        status="scheduled",
    )
    db.add(auction)
    db.flush()
    for bidder in bidders:
        db.add(AuctionBidder(auction_id=auction.id, bidder_id=bidder.id))
    db.commit()
    return auction


def add_bid(db: Session, clock: FrozenClock, auction: Auction, bidder: User, amount, hh: int, mm: int, ss: int = 0) -> Bid:
    """Insert a bid row directly, bypassing the live-window checks."""
    bid = Bid(
        auction_id=auction.id,
        bidder_id=bidder.id,
        amount=amount,
        bid_time=clock.localize(AUCTION_DAY, time(hh, mm, ss)),
    )
    db.add(bid)
    db.commit()
    return bid


@pytest.fixture
def bidders(db):
    return [add_user(db, f"BID-000{i}") for i in range(1, 5)]


@pytest.fixture
def auction(db, bidders):
    return add_auction(db, bidders)


@pytest.fixture
def app(clock, notifier):
    settings = Settings(database_url="sqlite:///:memory:", timezone=TZ, leaderboard_refresh_seconds=0)
    return create_app(settings, clock=clock, notifier=notifier)


@pytest.fixture
def client(app):
    with TestClient(app) as c:
        yield c


@pytest.fixture
def api_db(app, client):
    """Session on the same in-memory database the app uses (after startup)."""
    session = app.state.session_factory()
    try:
        yield session
    finally:
        session.close()


def as_admin(user_id: int = 1) -> dict:
    return {"X-User-Id": str(user_id), "X-Role": "admin"}


def as_bidder(user_id: int) -> dict:
    return {"X-User-Id": str(user_id), "X-Role": "bidder"}
