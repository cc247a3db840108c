from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from dorm_chat.api import include_routers
from dorm_chat.core.config import Settings, settings as default_settings
from dorm_chat.core.logging import get_logger, setup_logging
from dorm_chat.middleware.error_handler import create_http_exception_handler
from dorm_chat.services.chat_store import ChatStore
from dorm_chat.services.room_reaper import RoomReaper
from dorm_chat.websockets.gateway import ChatGateway

logger = get_logger(__name__)


def create_app(store: Optional[ChatStore] = None, settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or default_settings
    gateway = ChatGateway(store=store, settings=settings)
    reaper = RoomReaper(
        gateway.registry,
        gateway.admin_channel,
        ttl_seconds=settings.room_idle_ttl_seconds,
        interval_seconds=settings.reaper_interval_seconds,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Startup
        setup_logging()
        await reaper.start()
        logger.info("Chat service started")
        yield
        # Shutdown
        await reaper.stop()
        await gateway.persister.drain()
        logger.info("Chat service stopped")

    app = FastAPI(title="Dormitory Chat", lifespan=lifespan)
    app.state.gateway = gateway
    app.state.reaper = reaper

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(StarletteHTTPException, create_http_exception_handler())

    # Include routers
    include_routers(app)
    return app


app = create_app()
