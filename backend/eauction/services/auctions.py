"""Auction creation, pre-start edits, statistics and the bidder registry."""
import logging
import re
from dataclasses import asdict, dataclass
from datetime import date, datetime, time
from decimal import ROUND_HALF_UP, Decimal

from eauction.errors import InvalidInput, InvalidTransition, MalformedSchedule, NotFound
from eauction.models.auction import Auction, AuctionStatus
from eauction.models.user import User, UserRole
from eauction.services.auction_state import AuctionState
from eauction.services.ledger import AMOUNT_SCALE, normalize_amount
from eauction.services.store import CODE_LOCK, AuctionStore

logger = logging.getLogger(__name__)

AUCTION_CODE_PREFIX = "AUC-"
BIDDER_CODE_PREFIX = "BID-"
ALLOWED_SBUS = ("SBU1", "SBU2", "SBU3", "SBU4")


def next_code(prefix: str, last: str | None, width: int = 4) -> str:
    """``AUC-0007`` -> ``AUC-0008``; first code is ``AUC-0001``."""
    number = 0
    if last:
        m = re.search(r"(\d+)$", last)
        if m:
            number = int(m.group(1))
    return f"{prefix}{number + 1:0{width}d}"


@dataclass
class AuctionDraft:
    title: str
    auction_date: date
    start_time: time
    duration_minutes: int
    bidder_ids: list[int]
    category: str | None = None
    sbu: str | None = None
    special_notices: str | None = None


@dataclass
class AuctionChanges:
    """Fields an administrator may edit before the start; None leaves a field as is."""
    title: str | None = None
    auction_date: date | None = None
    start_time: time | None = None
    duration_minutes: int | None = None
    category: str | None = None
    sbu: str | None = None
    special_notices: str | None = None


@dataclass
class AuctionStatistics:
    auction: Auction
    status: str
    invited_bidders: int
    active_bidders: int
    participation_rate: Decimal
    total_bids: int
    lowest_bid: Decimal | None
    highest_bid: Decimal | None
    average_bid: Decimal | None
    bids_per_hour: dict[int, int]
    start_at: datetime
    end_at: datetime
    time_remaining_ms: int | None


class AuctionService:
    def __init__(self, store: AuctionStore, state: AuctionState):
        self.store = store
        self.state = state
        self.clock = state.clock

    def _check_schedule(self, title, auction_date: date, start_time: time, duration_minutes, sbu) -> str:
        title = (title or "").strip()
        if not title:
            raise InvalidInput("Title is required")
        if duration_minutes is None or duration_minutes <= 0:
            raise InvalidInput("Duration must be a positive number of minutes")
        if sbu is not None and sbu not in ALLOWED_SBUS:
            raise InvalidInput("Invalid SBU value")
        if self.clock.localize(auction_date, start_time) < self.clock.now():
            raise InvalidInput("Auction date and time must be in the future")
        return title

    def create_auction(self, draft: AuctionDraft, actor_id: int | None = None) -> Auction:
        """Create an auction together with its (immutable) invitation set."""
        bidder_ids = sorted(set(draft.bidder_ids or []))
        title = self._check_schedule(
            draft.title, draft.auction_date, draft.start_time, draft.duration_minutes, draft.sbu
        )
        if not bidder_ids:
            raise InvalidInput("At least one bidder must be invited")

        with self.store.transaction(CODE_LOCK):
            bidders = self.store.get_users(bidder_ids)
            valid = [
                b for b in bidders.values()
                if b.role == UserRole.BIDDER and b.is_active
            ]
            if len(valid) != len(bidder_ids):
                raise InvalidInput("One or more selected bidders are invalid or inactive")
            auction = Auction(
                auction_id=next_code(AUCTION_CODE_PREFIX, self.store.last_auction_code()),
                title=title,
                category=draft.category,
                sbu=draft.sbu,
                special_notices=draft.special_notices,
                auction_date=draft.auction_date,
                start_time=draft.start_time,
                duration_minutes=draft.duration_minutes,
                status=AuctionStatus.SCHEDULED,
                created_by=actor_id,
            )
            self.store.add_auction(auction, bidder_ids)
        logger.info("create_auction: %s with %s invited bidders", auction.auction_id, len(bidder_ids))
        return auction

    def get_auction(self, auction_id: int) -> Auction:
        auction = self.store.get_auction(auction_id)
        if auction is None:
            raise NotFound("Auction not found")
        return auction

    def _load_editable(self, auction_id: int) -> Auction:
        auction = self.store.get_auction(auction_id, for_update=True)
        if auction is None:
            raise NotFound("Auction not found")
        status = self.state.effective(auction)
        if status != AuctionStatus.SCHEDULED:
            raise InvalidTransition(f"Cannot change an auction that is {status}")
        return auction

    def update_schedule(self, auction_id: int, changes: AuctionChanges) -> Auction:
        """Edit an auction that has not started yet. The invitation set never changes."""
        with self.store.transaction(auction_id):
            auction = self._load_editable(auction_id)
            merged = {
                "title": auction.title,
                "auction_date": auction.auction_date,
                "start_time": auction.start_time,
                "duration_minutes": auction.duration_minutes,
                "category": auction.category,
                "sbu": auction.sbu,
                "special_notices": auction.special_notices,
            }
            merged.update({k: v for k, v in asdict(changes).items() if v is not None})
            merged["title"] = self._check_schedule(
                merged["title"], merged["auction_date"], merged["start_time"], merged["duration_minutes"], merged["sbu"]
            )
            for key, value in merged.items():
                setattr(auction, key, value)
        logger.info("update_schedule: %s", auction.auction_id)
        return auction

    def delete_auction(self, auction_id: int) -> None:
        """Remove an auction that never went live and never received a bid; otherwise cancel it."""
        with self.store.transaction(auction_id):
            auction = self._load_editable(auction_id)
            if self.store.count_bids(auction_id):
                raise InvalidTransition("Cannot delete an auction that has received bids")
            code = auction.auction_id
            self.store.delete_auction(auction)
        logger.info("delete_auction: %s", code)

    def statistics(self, auction_id: int) -> AuctionStatistics:
        auction = self.get_auction(auction_id)
        now = self.clock.now()
        window = self.clock.resolve_window(auction)
        status = self.state.effective(auction, now)
        bids = self.store.list_bids(auction_id)
        invited = len(self.store.list_invitations(auction_id))
        active = len({b.bidder_id for b in bids})
        amounts = [normalize_amount(b.amount) for b in bids]
        per_hour: dict[int, int] = {}
        for bid in bids:
            hour = bid.bid_time.astimezone(self.clock.tz).hour
            per_hour[hour] = per_hour.get(hour, 0) + 1
        return AuctionStatistics(
            auction=auction,
            status=status,
            invited_bidders=invited,
            active_bidders=active,
            participation_rate=(
                (Decimal(active) * 100 / invited).quantize(AMOUNT_SCALE, rounding=ROUND_HALF_UP)
                if invited else Decimal("0.00")
            ),
            total_bids=len(bids),
            lowest_bid=min(amounts) if amounts else None,
            highest_bid=max(amounts) if amounts else None,
            average_bid=(
                (sum(amounts) / len(amounts)).quantize(AMOUNT_SCALE, rounding=ROUND_HALF_UP) if amounts else None
            ),
            bids_per_hour=dict(sorted(per_hour.items())),
            start_at=window.start,
            end_at=window.end,
            time_remaining_ms=(
                int(window.remaining(now).total_seconds() * 1000) if status == AuctionStatus.LIVE else None
            ),
        )

    def visible_auctions(self, actor_id: int, role: str) -> list[Auction]:
        if role == UserRole.ADMIN:
            return self.store.list_auctions()
        return self.store.list_auctions(bidder_id=actor_id)

    def live_auctions(self, actor_id: int, role: str) -> list[Auction]:
        """Auctions visible to the actor that are live right now; unreadable schedules are skipped."""
        now = self.clock.now()
        live = []
        for auction in self.visible_auctions(actor_id, role):
            if auction.status == AuctionStatus.CANCELLED:
                continue
            try:
                if self.state.is_live(auction, now):
                    live.append(auction)
            except MalformedSchedule:
                logger.warning("Skipping auction %s with an unreadable schedule", auction.auction_id)
        return live

    # Bidder registry

    def register_bidder(self, name: str, email: str, company: str | None = None, phone: str | None = None) -> User:
        name = (name or "").strip()
        email = (email or "").strip().lower()
        if not name or not email:
            raise InvalidInput("Name and email are required")
        with self.store.transaction(CODE_LOCK):
            if self.store.get_user_by_email(email) is not None:
                raise InvalidInput("A user with this email already exists")
            user = User(
                user_code=next_code(BIDDER_CODE_PREFIX, self.store.last_user_code(BIDDER_CODE_PREFIX)),
                name=name,
                email=email,
                company=company,
                phone=phone,
                role=UserRole.BIDDER,
                is_active=True,
            )
            self.store.add_user(user)
        logger.info("register_bidder: %s <%s>", user.user_code, email)
        return user

    def set_bidder_active(self, bidder_id: int, active: bool) -> User:
        with self.store.transaction():
            user = self.store.get_user(bidder_id)
            if user is None or user.role != UserRole.BIDDER:
                raise NotFound("Bidder not found")
            user.is_active = active
        logger.info("set_bidder_active: bidder=%s active=%s", bidder_id, active)
        return user

    def list_bidders(self, active_only: bool = False) -> list[User]:
        return self.store.list_bidders(active_only=active_only)


def seed_admin(store: AuctionStore, user_code: str, name: str, email: str) -> User:
    """Make sure the configured administrator identity exists."""
    with store.transaction():
        existing = store.get_user_by_code(user_code)
        if existing is not None:
            return existing
        admin = User(user_code=user_code, name=name, email=email.lower(), role=UserRole.ADMIN, is_active=True)
        store.add_user(admin)
    logger.info("Seeded administrator %s", user_code)
    return admin
