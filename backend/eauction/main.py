import asyncio
import contextlib
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s %(message)s")

from eauction.config import Settings
from eauction.database import build_engine, build_session_factory
from eauction.errors import AuctionError, ErrorKind
from eauction.models.base import Base
import eauction.models  # noqa: F401 - register tables for create_all
from eauction.api.endpoints import admin, auctions, bids, live, results
from eauction.services.auctions import seed_admin
from eauction.services.clock import Clock
from eauction.services.leaderboard_feed import LeaderboardBroadcaster, LeaderboardTicker
from eauction.services.notifier import LoggingNotifier, Notifier
from eauction.services.store import AuctionLocks, AuctionStore

logger = logging.getLogger(__name__)

STATUS_BY_KIND = {
    ErrorKind.VALIDATION: 400,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.STATE_CONFLICT: 409,
    ErrorKind.UNAUTHORIZED_PARTICIPANT: 403,
    ErrorKind.MALFORMED_SCHEDULE: 422,
    ErrorKind.STORE_UNAVAILABLE: 503,
}


def create_app(settings: Settings | None = None, clock: Clock | None = None, notifier: Notifier | None = None) -> FastAPI:
    settings = settings or Settings.from_env()
    engine = build_engine(settings.database_url)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if settings.reset_schema_on_startup:
            # Dev only: start from empty tables
            Base.metadata.drop_all(bind=engine)
        Base.metadata.create_all(bind=engine)
        db = app.state.session_factory()
        try:
            seed_admin(AuctionStore(db), settings.admin_user_code, settings.admin_name, settings.admin_email)
        finally:
            db.close()
        ticker_task = None
        if settings.leaderboard_refresh_seconds > 0:
            ticker = LeaderboardTicker(
                app.state.session_factory, app.state.clock, app.state.broadcaster, settings.leaderboard_refresh_seconds
            )
            ticker_task = asyncio.create_task(ticker.run())
        yield
        if ticker_task is not None:
            ticker_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await ticker_task
        engine.dispose()

    app = FastAPI(title="E-Auction API", version="0.1.0", lifespan=lifespan)
    app.state.settings = settings
    app.state.engine = engine
    app.state.session_factory = build_session_factory(engine)
    app.state.clock = clock or Clock(settings.timezone)
    app.state.notifier = notifier or LoggingNotifier()
    app.state.locks = AuctionLocks()
    app.state.broadcaster = LeaderboardBroadcaster()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(AuctionError)
    async def auction_error_handler(request: Request, exc: AuctionError):
        headers = {"Retry-After": "1"} if exc.retryable else None
        return JSONResponse(status_code=STATUS_BY_KIND[exc.kind], content=exc.to_dict(), headers=headers)

    app.include_router(admin.router)
    app.include_router(auctions.router)
    app.include_router(bids.router)
    app.include_router(results.router)
    app.include_router(live.router)

    @app.get("/health")
    def health():
        """Health check endpoint for load balancers and readiness checks."""
        return {
            "status": "ok",
            "service": "eauction-backend",
            "timezone": settings.timezone,
        }

    return app


app = create_app()
