import logging

from fastapi import APIRouter, Depends, Query

from eauction.api.deps import (
    Actor,
    get_actor,
    get_guard,
    get_ledger,
    get_ranking,
    get_state,
    get_store,
    require_admin,
    require_bidder,
)
from eauction.errors import NotFound, NotInvited
from eauction.schemas.bid import (
    AdminStanding,
    BidCreate,
    BidderStanding,
    BidReceiptResponse,
    BidRecord,
    BidResponse,
    HistoryItemResponse,
    HistoryResponse,
    LatestBidResponse,
    LeaderboardResponse,
    Pagination,
    RankResponse,
)
from eauction.services.auction_state import AuctionState
from eauction.services.guard import BidSubmissionGuard
from eauction.services.history import bidder_history
from eauction.services.ledger import BidLedger
from eauction.services.ranking import BidSelection, RankingEngine
from eauction.services.store import AuctionStore

router = APIRouter(tags=["bids"])
logger = logging.getLogger(__name__)


def _ensure_visible(store: AuctionStore, auction_id: int, actor: Actor):
    auction = store.get_auction(auction_id)
    if auction is None:
        raise NotFound("Auction not found")
    if not actor.is_admin and not store.is_invited(auction_id, actor.user_id):
        raise NotInvited()
    return auction


@router.post("/auctions/{auction_id}/bids", response_model=BidReceiptResponse, status_code=201)
def place_bid(
    auction_id: int,
    payload: BidCreate,
    actor: Actor = Depends(require_bidder),
    guard: BidSubmissionGuard = Depends(get_guard),
):
    """Submit a bid; the response carries the bidder's rank right after insertion."""
    receipt = guard.submit_bid(auction_id, actor.user_id, payload.amount)
    return BidReceiptResponse(
        bid=BidResponse.model_validate(receipt.bid),
        rank=receipt.rank,
        current_best=receipt.current_best,
    )


@router.get("/auctions/{auction_id}/bids", response_model=list[BidRecord])
def list_auction_bids(
    auction_id: int,
    actor: Actor = Depends(require_admin),
    store: AuctionStore = Depends(get_store),
    ledger: BidLedger = Depends(get_ledger),
):
    """Full bid history for an auction, newest first, with each bidder's current result."""
    if store.get_auction(auction_id) is None:
        raise NotFound("Auction not found")
    bids = ledger.history(auction_id)
    users = store.get_users(b.bidder_id for b in bids)
    results = {r.bidder_id: r for r in store.list_results(auction_id)}
    rows = []
    for b in bids:
        user = users.get(b.bidder_id)
        result = results.get(b.bidder_id)
        rows.append(BidRecord(
            bid_id=b.id,
            bidder_id=b.bidder_id,
            bidder_user_code=user.user_code if user else None,
            bidder_name=user.name if user else None,
            company_name=user.company if user else None,
            amount=b.amount,
            bid_time=b.bid_time,
            result_status=result.status if result else None,
            disqualification_reason=result.disqualification_reason if result else None,
        ))
    return rows


@router.get("/auctions/{auction_id}/bids/latest", response_model=LatestBidResponse)
def get_latest_bid(
    auction_id: int,
    actor: Actor = Depends(require_bidder),
    store: AuctionStore = Depends(get_store),
    ledger: BidLedger = Depends(get_ledger),
):
    _ensure_visible(store, auction_id, actor)
    bid = ledger.latest_bid_for(auction_id, actor.user_id)
    return LatestBidResponse(bid=BidResponse.model_validate(bid) if bid else None)


@router.get("/auctions/{auction_id}/rank", response_model=RankResponse)
def get_rank(
    auction_id: int,
    actor: Actor = Depends(require_bidder),
    store: AuctionStore = Depends(get_store),
    ranking: RankingEngine = Depends(get_ranking),
):
    _ensure_visible(store, auction_id, actor)
    board = ranking.leaderboard(auction_id)
    rank = next((s.rank for s in board if s.bidder_id == actor.user_id), None)
    return RankResponse(rank=rank, total_bidders=len(board))


@router.get("/auctions/{auction_id}/leaderboard", response_model=LeaderboardResponse)
def get_leaderboard(
    auction_id: int,
    selection: BidSelection = Query(BidSelection.BEST),
    actor: Actor = Depends(get_actor),
    store: AuctionStore = Depends(get_store),
    ranking: RankingEngine = Depends(get_ranking),
    state: AuctionState = Depends(get_state),
):
    """Admins get names and amounts; bidders get anonymous positions with their own row flagged."""
    auction = _ensure_visible(store, auction_id, actor)
    now = state.clock.now()
    board = ranking.leaderboard(auction_id, selection)
    response = LeaderboardResponse(
        auction_id=auction_id,
        status=state.effective(auction, now),
        selection=selection.value,
        current_time=now,
    )
    if actor.is_admin:
        users = store.get_users(s.bidder_id for s in board)
        response.admin_rankings = [
            AdminStanding(
                rank=s.rank,
                bidder_id=s.bidder_id,
                bidder_user_code=users[s.bidder_id].user_code if s.bidder_id in users else None,
                bidder_name=users[s.bidder_id].name if s.bidder_id in users else None,
                company_name=users[s.bidder_id].company if s.bidder_id in users else None,
                amount=s.amount,
                bid_time=s.bid_time,
                bid_count=s.bid_count,
            )
            for s in board
        ]
    else:
        response.bidder_rankings = [
            BidderStanding(rank=s.rank, amount=s.amount, is_you=s.bidder_id == actor.user_id) for s in board
        ]
    return response


@router.get("/bidders/me/history", response_model=HistoryResponse)
def get_bidder_history(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    actor: Actor = Depends(require_bidder),
    store: AuctionStore = Depends(get_store),
    state: AuctionState = Depends(get_state),
):
    """Latest bid per auction the bidder took part in, with the outcome judged on that bid."""
    result = bidder_history(store, state, actor.user_id, page=page, limit=limit)
    return HistoryResponse(
        history=[
            HistoryItemResponse(
                auction_ref=item.auction.id,
                auction_id=item.auction.auction_id,
                title=item.auction.title,
                auction_date=str(item.auction.auction_date),
                amount=item.amount,
                bid_time=item.bid_time,
                result=item.outcome.value,
            )
            for item in result.items
        ],
        pagination=Pagination(
            current_page=result.page,
            total_pages=result.total_pages,
            total_items=result.total_items,
            items_per_page=result.limit,
            has_next_page=result.page < result.total_pages,
            has_prev_page=result.page > 1,
        ),
        summary=result.summary,
    )
