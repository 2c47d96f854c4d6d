"""FastAPI application factory."""

import asyncio
import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from quizify.attempts.router import router as attempts_router
from quizify.config import get_settings
from quizify.daily_tasks.router import router as daily_tasks_router
from quizify.daily_tasks.seed import seed_daily_tasks
from quizify.database import close_db, get_session_factory, init_db
from quizify.health.router import router as health_router
from quizify.leaderboard.router import router as leaderboard_router
from quizify.middleware import setup_middleware
from quizify.notifications.router import router as notifications_router
from quizify.progression.router import router as progression_router
from quizify.progression.seed import seed_achievements
from quizify.realtime.bridge import PubSubBridge
from quizify.realtime.manager import manager
from quizify.realtime.notifier import LocalNotifier, RedisNotifier, set_notifier
from quizify.realtime.router import router as ws_router
from quizify.redis_client import close_redis, get_redis, init_redis

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup and shutdown lifecycle."""
    settings = get_settings()
    await init_db(settings.database_url)
    manager.max_connections_per_user = settings.ws_max_connections_per_user

    if settings.seed_achievements:
        try:
            async with get_session_factory()() as db:
                await seed_achievements(db)
        except Exception:
            logger.warning("Achievement seeding failed (tables may not exist yet)", exc_info=True)

    if settings.seed_daily_tasks:
        try:
            async with get_session_factory()() as db:
                await seed_daily_tasks(db)
        except Exception:
            logger.warning("Daily task seeding failed (tables may not exist yet)", exc_info=True)

    bridge: PubSubBridge | None = None
    bridge_task: asyncio.Task | None = None
    if settings.redis_enabled:
        await init_redis(settings.redis_url)
        redis = get_redis()
        set_notifier(RedisNotifier(redis))
        # Every instance forwards per-user channels to its own sockets
        bridge = PubSubBridge(redis, manager)
        bridge_task = asyncio.create_task(bridge.start())
    else:
        set_notifier(LocalNotifier(manager))

    yield

    if bridge is not None and bridge_task is not None:
        await bridge.stop()
        bridge_task.cancel()
        try:
            await bridge_task
        except asyncio.CancelledError:
            pass

    set_notifier(None)
    await close_db()
    await close_redis()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="Quizify API",
        description="Quiz attempts, user levels and real-time notifications",
        version=settings.app_version,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    setup_middleware(app, settings)
    app.include_router(health_router, tags=["Health"])
    app.include_router(attempts_router)
    app.include_router(progression_router)
    app.include_router(leaderboard_router)
    app.include_router(daily_tasks_router)
    app.include_router(notifications_router)
    app.include_router(ws_router)

    return app


app = create_app()
