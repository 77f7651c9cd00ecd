import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from routes.stream_route import router as stream_router
from services.sync.broadcaster import SyncBroadcaster
from services.sync.peer_join import PeerJoinCoordinator
from services.sync.session_registry import SessionRegistry
from services.sync.token_codec import TokenCodec
from utils.settings import SyncSettings

from dotenv import load_dotenv

load_dotenv()  # Load environment variables from .env file if present


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan manager to initialize:
      - the in-memory session registry (empty on every start)
      - the token codec bound to SIGN_KEY
      - the broadcaster and peer-join coordinator
    and attach them to `app.state`.
    """
    settings: SyncSettings = app.state.settings
    if not settings.sign_key:
        # Start anyway; /start and token checks answer 500 until a key is set.
        logging.warning("SIGN_KEY environment variable is not set; sessions cannot be started")

    app.state.session_registry = SessionRegistry()
    app.state.token_codec = TokenCodec(settings)
    app.state.broadcaster = SyncBroadcaster(
        lock_window_ms=settings.force_lock_window_ms,
        drift_threshold_pct=settings.drift_threshold_pct,
    )
    app.state.peer_join = PeerJoinCoordinator()

    try:
        yield
    finally:
        logging.info("Shutting down with %s sessions in memory", len(app.state.session_registry))


def create_app(settings: Optional[SyncSettings] = None) -> FastAPI:
    """
    Create and configure the FastAPI application instance.
    """
    app = FastAPI(lifespan=lifespan)
    app.state.settings = settings or SyncSettings.from_env()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=app.state.settings.allowed_origins,
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )

    @app.exception_handler(RequestValidationError)
    async def validation_error(request: Request, exc: RequestValidationError):
        """Report malformed bodies and query strings as a plain 400."""
        return JSONResponse(status_code=400, content={"detail": "Bad request"})

    @app.get("/health")
    async def health(request: Request):
        """
        Simple health check that reports whether tokens can be issued.
        """
        return {"ok": True, "signing_key_configured": request.app.state.token_codec.available}

    # Register application routers
    app.include_router(stream_router)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    logging.basicConfig(level=logging.INFO)
    uvicorn.run(app, host=app.state.settings.host, port=app.state.settings.port)
