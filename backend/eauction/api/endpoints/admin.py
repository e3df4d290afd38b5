"""Bidder registry for administrators."""
import logging

from fastapi import APIRouter, Depends, Query

from eauction.api.deps import Actor, get_auction_service, require_admin
from eauction.schemas.bidder import BidderCreate, UserResponse
from eauction.services.auctions import AuctionService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/admin", tags=["admin"])


@router.post("/bidders", response_model=UserResponse, status_code=201)
def register_bidder(
    payload: BidderCreate,
    actor: Actor = Depends(require_admin),
    service: AuctionService = Depends(get_auction_service),
):
    return service.register_bidder(payload.name, payload.email, company=payload.company, phone=payload.phone)


@router.get("/bidders", response_model=list[UserResponse])
def list_bidders(
    active_only: bool = Query(False),
    actor: Actor = Depends(require_admin),
    service: AuctionService = Depends(get_auction_service),
):
    return service.list_bidders(active_only=active_only)


@router.patch("/bidders/{bidder_id}/deactivate", response_model=UserResponse)
def deactivate_bidder(
    bidder_id: int,
    actor: Actor = Depends(require_admin),
    service: AuctionService = Depends(get_auction_service),
):
    """Deactivated bidders can no longer be invited to new auctions."""
    return service.set_bidder_active(bidder_id, False)


@router.patch("/bidders/{bidder_id}/reactivate", response_model=UserResponse)
def reactivate_bidder(
    bidder_id: int,
    actor: Actor = Depends(require_admin),
    service: AuctionService = Depends(get_auction_service),
):
    return service.set_bidder_active(bidder_id, True)
