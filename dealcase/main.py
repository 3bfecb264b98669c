from apscheduler.schedulers.asyncio import AsyncIOScheduler
import logging
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
from sqlalchemy.ext.asyncio import AsyncEngine

from dealcase.authentication.web3auth import (
    JWKS_PATH,
    JwksCache,
    Web3AuthVerifier,
    fetch_remote_jwks,
)
from dealcase.create_postgres_engine import create_postgres_engine
from dealcase.create_sqlite_engine import create_sqlite_engine
from dealcase.db import create_session_factory, create_tables
from dealcase.errors import CollaboratorError, GameError
from dealcase.load_secrets import (
    admin_address,
    admin_private_key,
    jwks_cache_seconds,
    prize_retry_minutes,
    pyusd_address,
    require_payment,
    rpc_url,
    sqlite_path,
    web3auth_client_id,
    web3auth_issuer,
)
from dealcase.routers import admin, game
from dealcase.services.game_db import GameStore
from dealcase.services.game_orchestrator import GameOrchestrator
from dealcase.services.prize_distribution import PrizeDistributionService
from dealcase.services.pyusd import PyusdClient

logging.basicConfig(level=logging.INFO)


def create_engine() -> AsyncEngine:
    if sqlite_path:
        return create_sqlite_engine(sqlite_path)
    return create_postgres_engine()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build the shared services onto ``app.state`` and start the prize retry job.
    This function is called to start the server.
    """
    engine = create_engine()
    await create_tables(engine)
    store = GameStore(create_session_factory(engine))

    jwks_url = web3auth_issuer.rstrip("/") + JWKS_PATH
    jwks_cache = JwksCache(lambda: fetch_remote_jwks(jwks_url), ttl_seconds=jwks_cache_seconds)
    app.state.verifier = Web3AuthVerifier(jwks_cache, web3auth_issuer, web3auth_client_id)

    payments = None
    if rpc_url:
        payments = PyusdClient(rpc_url, pyusd_address, admin_address, admin_private_key)
    else:
        logging.warning("RPC_URL is not set: payments are neither verified nor distributed")

    prizes = PrizeDistributionService(store, payments)
    app.state.prizes = prizes
    app.state.orchestrator = GameOrchestrator(
        store,
        prizes,
        payments=payments,
        admin_address=admin_address,
        require_payment=require_payment and payments is not None,
    )

    scheduler = AsyncIOScheduler()
    # Retry payouts that failed while the game finished
    scheduler.add_job(
        prizes.retry_failed_distributions,
        "interval",
        minutes=prize_retry_minutes,
    )
    scheduler.start()
    try:
        yield
    finally:
        scheduler.shutdown()
        await engine.dispose()
        logging.info("Stop Server")


async def game_error_handler(request: Request, exc: GameError) -> JSONResponse:
    if isinstance(exc, CollaboratorError):
        logging.error(f"{request.method} {request.url.path} failed: {exc.message}")
        details = "Internal server error"
    else:
        logging.info(f"{request.method} {request.url.path} rejected: {exc.message}")
        details = exc.message
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.reason, "details": details},
    )


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"error": "invalid_input", "details": str(exc.errors())},
    )


def create_app(with_lifespan: bool = True) -> FastAPI:
    app = FastAPI(lifespan=lifespan if with_lifespan else None)
    app.add_exception_handler(GameError, game_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.include_router(game.game_router)
    app.include_router(admin.admin_router)
    return app


app = create_app()
