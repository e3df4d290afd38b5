import asyncio
import logging

from fastapi import APIRouter, HTTPException, WebSocket, WebSocketDisconnect, status

from eauction.api.deps import Actor, actor_from_headers
from eauction.services.leaderboard_feed import snapshot_view
from eauction.services.store import AuctionStore

router = APIRouter(tags=["live"])
logger = logging.getLogger(__name__)


def _may_watch(session_factory, auction_id: int, actor: Actor) -> bool:
    db = session_factory()
    try:
        store = AuctionStore(db)
        if store.get_auction(auction_id) is None:
            return False
        return actor.is_admin or store.is_invited(auction_id, actor.user_id)
    finally:
        db.close()


@router.websocket("/auctions/{auction_id}/leaderboard/stream")
async def leaderboard_stream(websocket: WebSocket, auction_id: int):
    """Push leaderboard snapshots for a live auction as the ticker produces them.

    Same visibility as the leaderboard route: admins see every bidder, invited
    bidders see anonymous rows, anyone else is refused with 1008.
    """
    try:
        actor = actor_from_headers(websocket.headers.get("x-user-id"), websocket.headers.get("x-role"))
    except HTTPException as e:
        logger.info("leaderboard stream refused for auction %s: %s", auction_id, e.detail)
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return
    allowed = await asyncio.to_thread(_may_watch, websocket.app.state.session_factory, auction_id, actor)
    if not allowed:
        logger.info("leaderboard stream refused for auction %s: user %s not a participant", auction_id, actor.user_id)
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    broadcaster = websocket.app.state.broadcaster
    queue = broadcaster.subscribe(auction_id)
    try:
        await websocket.accept()
        while True:
            snapshot = await queue.get()
            await websocket.send_json(snapshot_view(snapshot, actor.user_id, actor.is_admin))
    except WebSocketDisconnect:
        logger.info("leaderboard stream closed for auction %s", auction_id)
    finally:
        broadcaster.unsubscribe(auction_id, queue)
