"""REST API module for the marketplace.

This module provides HTTP endpoints for:
- Listing, buying and withdrawing public market items
- Bidding on, cancelling and closing auctions
- Invite-only private sales
- Creator registrations and tips
- Real-time domain events via WebSocket
- System health and operator fee settings
- Authentication and session management
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from auth import AuthManager
from market import (
    EventBus,
    Marketplace,
    MarketError,
    NotFoundError,
    UnauthorizedError,
    InvalidParameterError,
    ConflictError,
    DeadlinePassedError,
    InsufficientFundsError,
    NotApprovedError,
    EscrowError,
)

logger = logging.getLogger(__name__)

# Most specific first; the first matching class decides the status code
ERROR_STATUS = [
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (UnauthorizedError, status.HTTP_403_FORBIDDEN),
    (InvalidParameterError, status.HTTP_400_BAD_REQUEST),
    (ConflictError, status.HTTP_409_CONFLICT),
    (DeadlinePassedError, status.HTTP_409_CONFLICT),
    (InsufficientFundsError, status.HTTP_402_PAYMENT_REQUIRED),
    (NotApprovedError, status.HTTP_402_PAYMENT_REQUIRED),
    (EscrowError, status.HTTP_502_BAD_GATEWAY),
]

def status_for(error: MarketError) -> int:
    """HTTP status code for a marketplace error."""
    for error_type, code in ERROR_STATUS:
        if isinstance(error, error_type):
            return code
    return status.HTTP_400_BAD_REQUEST

async def market_error_handler(request: Request, exc: MarketError) -> JSONResponse:
    code = status_for(exc)
    if code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc}")
    return JSONResponse(
        status_code=code,
        content={"detail": str(exc), "error": type(exc).__name__}
    )

async def build_marketplace(app: FastAPI) -> None:
    """Wire the marketplace, its store and the auth manager from settings."""
    # Import here so the app can be built with injected components and no settings.conf
    from config import get_settings
    from database import init_db
    from database.store import MemoryStore, PostgresStore
    from rpc import RegistryRPC, LedgerRPC

    settings = get_settings()
    rpc_auth = (settings['rpc_user'], settings['rpc_password'])
    registry = RegistryRPC(settings['registry_url'], auth=rpc_auth, timeout=settings['rpc_timeout'])
    ledger = LedgerRPC(
        settings['ledger_url'],
        settings['marketplace_address'],
        auth=rpc_auth,
        timeout=settings['rpc_timeout']
    )

    if settings['db_url']:
        pool = await init_db(settings['db_url'])
        store = PostgresStore(pool)
    else:
        logger.warning("No db_url configured, marketplace state will not survive restarts")
        store = MemoryStore()
    state = await store.load()

    app.state.market = Marketplace(
        registry=registry,
        ledger=ledger,
        marketplace_address=settings['marketplace_address'],
        fee_address=settings['fee_address'],
        fee_bps=settings['default_fee'],
        state=state,
        store=store,
        events=EventBus(keep_history=False)
    )
    if getattr(app.state, 'auth', None) is None:
        app.state.auth = AuthManager(
            registry,
            secret=settings['jwt_secret'],
            session_expiry_days=settings['session_expiry_days']
        )

def create_app(
    marketplace: Optional[Marketplace] = None,
    auth_manager: Optional[AuthManager] = None
) -> FastAPI:
    """Create the FastAPI application.

    Args:
        marketplace: Prebuilt marketplace. Built from settings.conf on startup when omitted.
        auth_manager: Prebuilt auth manager. Built from settings.conf on startup when omitted.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Handle startup and shutdown events."""
        logger.info("Initializing API...")
        owns_database = False
        if getattr(app.state, 'market', None) is None:
            await build_marketplace(app)
            owns_database = True

        yield

        logger.info("Shutting down API...")
        if owns_database:
            from database import close as db_close
            await db_close()

    app = FastAPI(
        title="Marketplace API",
        description="REST API for listing, auctioning and privately selling registry assets",
        version="1.0.0",
        lifespan=lifespan
    )
    app.state.market = marketplace
    app.state.auth = auth_manager

    # Configure CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # In production, replace with specific origins
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(MarketError, market_error_handler)

    from .auth import router as auth_router
    from .market import router as market_router
    from .auctions import router as auctions_router
    from .private import router as private_router
    from .creators import router as creators_router
    from .system import router as system_router
    from .websockets import router as websocket_router

    app.include_router(auth_router)
    app.include_router(market_router)
    app.include_router(auctions_router)
    app.include_router(private_router)
    app.include_router(creators_router)
    app.include_router(system_router)
    app.include_router(websocket_router)

    return app

app = create_app()

__all__ = ['app', 'create_app', 'status_for']
