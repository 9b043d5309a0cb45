# skillswap_core/main.py
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.orm import sessionmaker

from skillswap_core import models  # noqa: F401  (registers tables on Base.metadata)
from skillswap_core.api import badge, chat, connection, review, session
from skillswap_core.config import settings
from skillswap_core.database import Base, SessionLocal, get_db
from skillswap_core.exceptions import SkillSwapError
from skillswap_core.realtime import EventBus, install_change_capture
from skillswap_core.services import badge_service

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


def create_app(session_factory: sessionmaker = SessionLocal) -> FastAPI:
    """Build the API bound to ``session_factory``; the event bus lives for the app's lifetime."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        Base.metadata.create_all(bind=session_factory.kw["bind"])
        with session_factory() as db:
            badge_service.seed_default_badges(db)

        bus = EventBus()
        uninstall = install_change_capture(session_factory, bus)
        app.state.bus = bus
        app.state.session_factory = session_factory
        logger.info("SkillSwap API started (env=%s)", settings.APP_ENV)

        yield

        uninstall()
        await bus.close()
        logger.info("SkillSwap API stopped")

    app = FastAPI(title="SkillSwap Core API", lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    def _get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = _get_db

    @app.exception_handler(SkillSwapError)
    async def skillswap_error_handler(request: Request, exc: SkillSwapError):
        log = logger.warning if exc.status_code >= 500 else logger.info
        log(
            "%s on %s %s: %s",
            type(exc).__name__, request.method, request.url.path, exc.message,
        )
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    # API routers
    app.include_router(connection.router)  # /connections/*
    app.include_router(session.router)     # /sessions/*
    app.include_router(chat.router)        # /chat/*
    app.include_router(review.router)      # /reviews/*
    app.include_router(badge.router)       # /badges/*

    @app.get("/health")
    def health_check():
        return {
            "status": "healthy",
            "message": "SkillSwap API is running",
            "version": "1.0.0",
        }

    return app


app = create_app()
