from fastapi import APIRouter, Depends, Query

from eauction.api.deps import Actor, get_actor, get_ledger, get_store, get_workflow, require_admin
from eauction.errors import NotFound, NotInvited
from eauction.models.result import ResultStatus
from eauction.schemas.result import AuctionResultResponse, AwardedResultRow, DisqualifyBody
from eauction.services.ledger import BidLedger
from eauction.services.results import ResultWorkflow
from eauction.services.store import AuctionStore

router = APIRouter(tags=["results"])


@router.post("/auctions/{auction_id}/shortlist", response_model=list[AuctionResultResponse])
def shortlist(
    auction_id: int,
    n: int | None = Query(None, ge=1),
    actor: Actor = Depends(require_admin),
    workflow: ResultWorkflow = Depends(get_workflow),
):
    """Shortlist the top N bidders by their latest bid. Safe to re-run."""
    return workflow.shortlist_top(auction_id, n)


@router.post("/auctions/{auction_id}/results/{bidder_id}/award", response_model=AuctionResultResponse)
def award_bidder(
    auction_id: int,
    bidder_id: int,
    actor: Actor = Depends(require_admin),
    workflow: ResultWorkflow = Depends(get_workflow),
):
    return workflow.award(auction_id, bidder_id)


@router.post("/auctions/{auction_id}/results/{bidder_id}/not-awarded", response_model=AuctionResultResponse)
def mark_not_awarded(
    auction_id: int,
    bidder_id: int,
    actor: Actor = Depends(require_admin),
    workflow: ResultWorkflow = Depends(get_workflow),
):
    return workflow.mark_not_awarded(auction_id, bidder_id)


@router.post("/auctions/{auction_id}/results/{bidder_id}/disqualify", response_model=AuctionResultResponse)
def disqualify_bidder(
    auction_id: int,
    bidder_id: int,
    payload: DisqualifyBody,
    actor: Actor = Depends(require_admin),
    workflow: ResultWorkflow = Depends(get_workflow),
):
    return workflow.disqualify(auction_id, bidder_id, payload.reason)


@router.get("/auctions/{auction_id}/results", response_model=list[AuctionResultResponse])
def list_results(
    auction_id: int,
    actor: Actor = Depends(get_actor),
    store: AuctionStore = Depends(get_store),
):
    """Admins see every result row; a bidder sees only their own."""
    if store.get_auction(auction_id) is None:
        raise NotFound("Auction not found")
    rows = store.list_results(auction_id)
    if actor.is_admin:
        return rows
    if not store.is_invited(auction_id, actor.user_id):
        raise NotInvited()
    return [r for r in rows if r.bidder_id == actor.user_id]


@router.get("/results/awarded", response_model=list[AwardedResultRow])
def awarded_overview(
    actor: Actor = Depends(require_admin),
    store: AuctionStore = Depends(get_store),
    ledger: BidLedger = Depends(get_ledger),
):
    """Every awarded bidder across auctions with the amount of their latest bid."""
    rows = []
    awarded = store.list_results_by_status(ResultStatus.AWARDED)
    users = store.get_users(r.bidder_id for r in awarded)
    for result in awarded:
        auction = store.get_auction(result.auction_id)
        user = users.get(result.bidder_id)
        latest = ledger.latest_bid_for(result.auction_id, result.bidder_id)
        rows.append(AwardedResultRow(
            auction_ref=auction.id,
            auction_id=auction.auction_id,
            title=auction.title,
            auction_date=str(auction.auction_date),
            bidder_id=result.bidder_id,
            bidder_user_code=user.user_code if user else None,
            bidder_name=user.name if user else None,
            company_name=user.company if user else None,
            winning_amount=latest.amount if latest else None,
            awarded_at=result.updated_at,
        ))
    return rows
