from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from typing import Optional
import logging

from conversion_tracker.api import progress
from conversion_tracker.core.config import Settings, get_settings
from conversion_tracker.core.tracker import ConversionTracker, build_tracker
from logging_config import configure_logging

logger = logging.getLogger(__name__)


def create_app(tracker: Optional[ConversionTracker] = None, settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or get_settings()
    tracker = tracker or build_tracker(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        tracker.sweeper.start_periodic(settings.sweep_interval_seconds, settings.sweep_max_age_ms)
        yield
        tracker.shutdown()
        logger.info("Conversion tracker shut down")

    app = FastAPI(title="Conversion Progress Tracker", lifespan=lifespan)
    app.state.tracker = tracker

    # CORS設定
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # 開発環境用。本番環境では適切に制限してください
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # APIルーターの登録
    app.include_router(progress.router, prefix="/api", tags=["progress"])

    @app.get("/health")
    async def health_check():
        return {"status": "healthy", "jobs": len(tracker.registry)}

    return app


configure_logging(get_settings().log_level)
app = create_app()
