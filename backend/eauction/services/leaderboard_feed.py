"""Periodic read-only leaderboard push for live auctions.

The ticker never writes; if it fails or is disabled, bidding and results are
unaffected.
"""
import asyncio
import logging

from sqlalchemy.orm import sessionmaker

from eauction.errors import AuctionError
from eauction.models.auction import AuctionStatus
from eauction.services.auction_state import AuctionState
from eauction.services.clock import Clock
from eauction.services.ranking import rank_bids
from eauction.services.store import AuctionStore

logger = logging.getLogger(__name__)


class LeaderboardBroadcaster:
    """Fan-out of leaderboard snapshots to subscribers of one auction."""

    def __init__(self, queue_size: int = 10):
        self.queue_size = queue_size
        self._subscribers: dict[int, set[asyncio.Queue]] = {}

    def subscribe(self, auction_id: int) -> asyncio.Queue:
        queue: asyncio.Queue = asyncio.Queue(maxsize=self.queue_size)
        self._subscribers.setdefault(auction_id, set()).add(queue)
        return queue

    def unsubscribe(self, auction_id: int, queue: asyncio.Queue) -> None:
        queues = self._subscribers.get(auction_id)
        if not queues:
            return
        queues.discard(queue)
        if not queues:
            del self._subscribers[auction_id]

    def watched_auctions(self) -> list[int]:
        return list(self._subscribers)

    def publish(self, auction_id: int, snapshot: dict) -> int:
        delivered = 0
        for queue in list(self._subscribers.get(auction_id, ())):
            if queue.full():
                # Slow consumer: drop its oldest snapshot, only the newest matters
                queue.get_nowait()
            queue.put_nowait(snapshot)
            delivered += 1
        return delivered


def snapshot_payload(auction, standings, now) -> dict:
    return {
        "auction_id": auction.id,
        "auction_code": auction.auction_id,
        "generated_at": now.isoformat(),
        "rankings": [
            {
                "rank": s.rank,
                "bidder_id": s.bidder_id,
                "amount": str(s.amount),
                "bid_time": s.bid_time.isoformat(),
            }
            for s in standings
        ],
    }


def snapshot_view(snapshot: dict, user_id: int, is_admin: bool) -> dict:
    """Admins get the snapshot as collected; bidders get anonymous rows with their own flagged."""
    if is_admin:
        return snapshot
    return {
        **snapshot,
        "rankings": [
            {"rank": r["rank"], "amount": r["amount"], "is_you": r["bidder_id"] == user_id}
            for r in snapshot["rankings"]
        ],
    }


class LeaderboardTicker:
    def __init__(self, session_factory: sessionmaker, clock: Clock, broadcaster: LeaderboardBroadcaster,
                 interval_seconds: float = 5.0):
        self.session_factory = session_factory
        self.state = AuctionState(clock)
        self.clock = clock
        self.broadcaster = broadcaster
        self.interval_seconds = interval_seconds

    def collect(self, auction_ids=None) -> dict[int, dict]:
        """Snapshots for every live auction (optionally only ``auction_ids``)."""
        snapshots = {}
        db = self.session_factory()
        try:
            store = AuctionStore(db)
            now = self.clock.now()
            for auction in store.list_auctions(exclude_cancelled=True):
                if auction_ids is not None and auction.id not in auction_ids:
                    continue
                try:
                    if self.state.effective(auction, now) != AuctionStatus.LIVE:
                        continue
                except AuctionError as e:
                    logger.warning("Leaderboard tick skipped auction %s: %s", auction.auction_id, e.reason)
                    continue
                snapshots[auction.id] = snapshot_payload(auction, rank_bids(store.list_bids(auction.id)), now)
        finally:
            db.close()
        return snapshots

    async def refresh_once(self) -> int:
        watched = self.broadcaster.watched_auctions()
        if not watched:
            return 0
        snapshots = await asyncio.to_thread(self.collect, set(watched))
        return sum(self.broadcaster.publish(auction_id, snap) for auction_id, snap in snapshots.items())

    async def run(self) -> None:
        logger.info("Leaderboard ticker started (every %ss)", self.interval_seconds)
        while True:
            try:
                await self.refresh_once()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.warning("Leaderboard tick failed: %s", e)
            await asyncio.sleep(self.interval_seconds)
