# Serve with: uvicorn --factory app.api.main:create_app
from __future__ import annotations

import logging
from typing import Optional

from fastapi import FastAPI

from app.api.routes.prediction import router as prediction_router
from app.config import Settings, load_settings
from app.db.session import init_db, make_session_factory
from app.services.data_source import PredictionDataSource, build_data_source
from app.services.level_change import LevelChangeDetector
from app.services.notifications import LogNotifier, LogTelemetry
from app.services.prediction_state import PredictionStateManager
from app.services.prediction_store import KeyValueStore, SqlKeyValueStore
from app.utils.logger import configure_logging

logger = logging.getLogger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    *,
    store: Optional[KeyValueStore] = None,
    data_source: Optional[PredictionDataSource] = None,
) -> FastAPI:
    """Wire one PredictionStateManager per app and expose it to the UI layer."""
    settings = settings or load_settings()
    configure_logging(settings.logging.level)

    session_factory = None
    if store is None:
        session_factory = make_session_factory(settings.storage.db_url)
        store = SqlKeyValueStore(session_factory)

    notifier = LogNotifier()
    telemetry = LogTelemetry()
    eng = settings.engine
    manager = PredictionStateManager(
        data_source=data_source or build_data_source(settings),
        store=store,
        level_change=LevelChangeDetector(notifier, telemetry, duration_ms=eng.toast_duration_ms),
        telemetry=telemetry,
        storage_key=eng.storage_key,
        ttl_ms=eng.ttl_ms,
        history_limit=eng.history_limit,
        delay_s=eng.artificial_delay_ms / 1000.0,
    )

    app = FastAPI(title="Wellness Risk Prediction Engine", version="0.1.0")
    app.state.settings = settings
    app.state.prediction = manager
    app.state.notifier = notifier
    app.state.telemetry = telemetry

    app.include_router(prediction_router)

    @app.on_event("startup")
    async def _startup() -> None:
        """Create the storage schema, then restore or regenerate the prediction state."""
        if session_factory is not None:
            init_db(session_factory)
        logger.info("Starting prediction engine (source=%s)", eng.data_source)
        await manager.initialize()

    @app.get("/health")
    def health():
        return {"status": "ok", "loading": manager.loading}

    return app

