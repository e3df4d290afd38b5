import logging

from fastapi import APIRouter, Depends, Response

from eauction.api.deps import Actor, get_actor, get_auction_service, get_state, get_store, get_workflow, require_admin
from eauction.errors import MalformedSchedule, NotInvited
from eauction.models.auction import Auction
from eauction.schemas.auction import (
    AuctionCancel,
    AuctionCreate,
    AuctionDetailResponse,
    AuctionResponse,
    AuctionStatisticsResponse,
    AuctionUpdate,
)
from eauction.services.auction_state import AuctionState
from eauction.services.auctions import AuctionChanges, AuctionDraft, AuctionService
from eauction.services.results import ResultWorkflow
from eauction.services.store import AuctionStore

router = APIRouter(prefix="/auctions", tags=["auctions"])
logger = logging.getLogger(__name__)


def auction_view(auction: Auction, state: AuctionState, now=None, strict: bool = True) -> dict:
    """Auction fields plus effective status and window. ``strict=False`` reports unreadable schedules as "error"."""
    now = now or state.clock.now()
    data = {
        "id": auction.id,
        "auction_id": auction.auction_id,
        "title": auction.title,
        "category": auction.category,
        "sbu": auction.sbu,
        "special_notices": auction.special_notices,
        "auction_date": auction.auction_date,
        "start_time": auction.start_time,
        "duration_minutes": auction.duration_minutes,
        "cancelled_at": auction.cancelled_at,
        "cancel_reason": auction.cancel_reason,
        "created_at": auction.created_at,
    }
    try:
        window = state.clock.resolve_window(auction)
        status = state.effective(auction, now)
    except MalformedSchedule:
        if strict:
            raise
        data["status"] = "error"
        return data
    data.update(
        status=status,
        start_at=window.start,
        end_at=window.end,
        time_remaining_ms=int(window.remaining(now).total_seconds() * 1000) if status == "live" else None,
    )
    return data


@router.post("", response_model=AuctionDetailResponse, status_code=201)
def create_auction(
    payload: AuctionCreate,
    actor: Actor = Depends(require_admin),
    service: AuctionService = Depends(get_auction_service),
    store: AuctionStore = Depends(get_store),
):
    """Create an auction and invite the selected bidders."""
    auction = service.create_auction(
        AuctionDraft(
            title=payload.title,
            auction_date=payload.auction_date,
            start_time=payload.start_time,
            duration_minutes=payload.duration_minutes,
            bidder_ids=payload.selected_bidders,
            category=payload.category,
            sbu=payload.sbu,
            special_notices=payload.special_notices,
        ),
        actor_id=actor.user_id,
    )
    return {**auction_view(auction, service.state), "invited_bidder_ids": store.list_invitations(auction.id)}


@router.get("", response_model=list[AuctionResponse])
def list_auctions(
    actor: Actor = Depends(get_actor),
    service: AuctionService = Depends(get_auction_service),
):
    """Admins see every auction, bidders only those they are invited to."""
    now = service.clock.now()
    return [auction_view(a, service.state, now, strict=False) for a in service.visible_auctions(actor.user_id, actor.role)]


@router.get("/live", response_model=list[AuctionResponse])
def list_live_auctions(
    actor: Actor = Depends(get_actor),
    service: AuctionService = Depends(get_auction_service),
):
    now = service.clock.now()
    return [auction_view(a, service.state, now) for a in service.live_auctions(actor.user_id, actor.role)]


@router.get("/{auction_id}", response_model=AuctionDetailResponse)
def get_auction(
    auction_id: int,
    actor: Actor = Depends(get_actor),
    service: AuctionService = Depends(get_auction_service),
    store: AuctionStore = Depends(get_store),
):
    auction = service.get_auction(auction_id)
    invited = store.list_invitations(auction.id)
    if not actor.is_admin and actor.user_id not in invited:
        raise NotInvited()
    return {**auction_view(auction, service.state), "invited_bidder_ids": invited if actor.is_admin else []}


@router.post("/{auction_id}/cancel", response_model=AuctionResponse)
def cancel_auction(
    auction_id: int,
    payload: AuctionCancel,
    actor: Actor = Depends(require_admin),
    workflow: ResultWorkflow = Depends(get_workflow),
    state: AuctionState = Depends(get_state),
):
    """Cancel an auction that has not ended; every bidder with a bid is notified."""
    auction = workflow.cancel_auction(auction_id, payload.reason, actor_id=actor.user_id)
    return auction_view(auction, state)


@router.patch("/{auction_id}", response_model=AuctionDetailResponse)
def update_auction(
    auction_id: int,
    payload: AuctionUpdate,
    actor: Actor = Depends(require_admin),
    service: AuctionService = Depends(get_auction_service),
    store: AuctionStore = Depends(get_store),
):
    """Edit the schedule or details of an auction that has not started."""
    auction = service.update_schedule(auction_id, AuctionChanges(**payload.model_dump()))
    return {**auction_view(auction, service.state), "invited_bidder_ids": store.list_invitations(auction.id)}


@router.delete("/{auction_id}", status_code=204)
def delete_auction(
    auction_id: int,
    actor: Actor = Depends(require_admin),
    service: AuctionService = Depends(get_auction_service),
):
    """Delete a scheduled auction with no bids. Anything further along is cancelled instead."""
    service.delete_auction(auction_id)
    return Response(status_code=204)


@router.get("/{auction_id}/statistics", response_model=AuctionStatisticsResponse)
def auction_statistics(
    auction_id: int,
    actor: Actor = Depends(require_admin),
    service: AuctionService = Depends(get_auction_service),
):
    stats = service.statistics(auction_id)
    auction = stats.auction
    return {
        "id": auction.id,
        "auction_id": auction.auction_id,
        "title": auction.title,
        "status": stats.status,
        "invited_bidders": stats.invited_bidders,
        "active_bidders": stats.active_bidders,
        "participation_rate": stats.participation_rate,
        "total_bids": stats.total_bids,
        "lowest_bid": stats.lowest_bid,
        "highest_bid": stats.highest_bid,
        "average_bid": stats.average_bid,
        "bids_per_hour": stats.bids_per_hour,
        "start_at": stats.start_at,
        "end_at": stats.end_at,
        "duration_minutes": auction.duration_minutes,
        "time_remaining_ms": stats.time_remaining_ms,
    }
