from datetime import datetime

from eauction.errors import InvalidTransition
from eauction.models.auction import Auction, AuctionStatus
from eauction.services.clock import Clock


class AuctionState:
    """Effective status of an auction: persisted cancellation first, then the clock."""

    def __init__(self, clock: Clock):
        self.clock = clock

    def effective(self, auction: Auction, now: datetime | None = None) -> str:
        if auction.status == AuctionStatus.CANCELLED:
            return AuctionStatus.CANCELLED
        window = self.clock.resolve_window(auction)
        now = now or self.clock.now()
        if now < window.start:
            return AuctionStatus.SCHEDULED
        if window.contains(now):
            return AuctionStatus.LIVE
        return AuctionStatus.ENDED

    def is_live(self, auction: Auction, now: datetime | None = None) -> bool:
        return self.effective(auction, now) == AuctionStatus.LIVE

    def ensure_cancellable(self, auction: Auction, now: datetime | None = None) -> None:
        status = self.effective(auction, now)
        if status == AuctionStatus.CANCELLED:
            raise InvalidTransition("Auction is already cancelled")
        if status == AuctionStatus.ENDED:
            raise InvalidTransition("Auction has already ended and cannot be cancelled")
