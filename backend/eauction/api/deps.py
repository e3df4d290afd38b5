"""Request-scoped wiring: actor identity and core services built over one DB session."""
from dataclasses import dataclass

from fastapi import Depends, Header, HTTPException, Request
from sqlalchemy.orm import Session

from eauction.config import Settings
from eauction.database import get_db
from eauction.models.user import UserRole
from eauction.services.auction_state import AuctionState
from eauction.services.auctions import AuctionService
from eauction.services.clock import Clock
from eauction.services.guard import BidSubmissionGuard
from eauction.services.ledger import BidLedger
from eauction.services.ranking import RankingEngine
from eauction.services.results import ResultWorkflow
from eauction.services.store import AuctionStore


@dataclass(frozen=True)
class Actor:
    """The already-authenticated caller, as forwarded by the auth layer."""
    user_id: int
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN


def actor_from_headers(x_user_id, x_role: str | None) -> Actor:
    """Identity forwarded by the auth layer; shared by HTTP routes and the websocket stream."""
    if x_user_id is None or not x_role:
        raise HTTPException(status_code=401, detail="Authentication required")
    try:
        user_id = int(x_user_id)
    except (TypeError, ValueError):
        raise HTTPException(status_code=401, detail="Authentication required")
    role = x_role.strip().lower()
    if role not in (UserRole.ADMIN, UserRole.BIDDER):
        raise HTTPException(status_code=403, detail=f"Unknown role: {x_role}")
    return Actor(user_id=user_id, role=role)


def get_actor(
    x_user_id: str | None = Header(None, alias="X-User-Id"),
    x_role: str | None = Header(None, alias="X-Role"),
) -> Actor:
    return actor_from_headers(x_user_id, x_role)


def require_admin(actor: Actor = Depends(get_actor)) -> Actor:
    if not actor.is_admin:
        raise HTTPException(status_code=403, detail="Administrator access required")
    return actor


def require_bidder(actor: Actor = Depends(get_actor)) -> Actor:
    if actor.role != UserRole.BIDDER:
        raise HTTPException(status_code=403, detail="Bidder access required")
    return actor


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_clock(request: Request) -> Clock:
    return request.app.state.clock


def get_store(request: Request, db: Session = Depends(get_db)) -> AuctionStore:
    return AuctionStore(db, request.app.state.locks)


def get_state(clock: Clock = Depends(get_clock)) -> AuctionState:
    return AuctionState(clock)


def get_ledger(store: AuctionStore = Depends(get_store)) -> BidLedger:
    return BidLedger(store)


def get_ranking(ledger: BidLedger = Depends(get_ledger), state: AuctionState = Depends(get_state)) -> RankingEngine:
    return RankingEngine(ledger, state)


def get_guard(ledger: BidLedger = Depends(get_ledger), state: AuctionState = Depends(get_state)) -> BidSubmissionGuard:
    return BidSubmissionGuard(ledger, state)


def get_workflow(
    request: Request,
    ledger: BidLedger = Depends(get_ledger),
    state: AuctionState = Depends(get_state),
    settings: Settings = Depends(get_settings),
) -> ResultWorkflow:
    return ResultWorkflow(ledger, state, request.app.state.notifier, shortlist_size=settings.shortlist_size)


def get_auction_service(store: AuctionStore = Depends(get_store), state: AuctionState = Depends(get_state)) -> AuctionService:
    return AuctionService(store, state)
