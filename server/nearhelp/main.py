"""NearHelp server — main entry point.

This is the only file that knows about concrete implementations.
It wires together the core, storage, and API layers.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI

from nearhelp.api.alerts import router as alerts_router
from nearhelp.api.errors import register_error_handlers
from nearhelp.api.help import router as help_router
from nearhelp.api.monitoring import router as monitoring_router
from nearhelp.api.users import router as users_router
from nearhelp.config import AppConfig, load_config
from nearhelp.core.counter import AcceptCounter
from nearhelp.core.matcher import NotificationMatcher
from nearhelp.core.search import RecipientSearch
from nearhelp.core.service import SafetyService
from nearhelp.core.stats import EngineStats
from nearhelp.storage.base import DocumentStore, LocationHistoryLog
from nearhelp.storage.file_storage import FileDocumentStore, FileLocationHistory
from nearhelp.storage.memory_storage import MemoryDocumentStore, MemoryLocationHistory

log = structlog.get_logger()

# Module-level singletons (set during startup)
_service: SafetyService | None = None
_stats: EngineStats | None = None
_config: AppConfig | None = None


def get_service() -> SafetyService:
    assert _service is not None, "Server not initialized"
    return _service


def get_stats() -> EngineStats:
    assert _stats is not None, "Server not initialized"
    return _stats


def get_config() -> AppConfig:
    assert _config is not None, "Server not initialized"
    return _config


def _setup_logging(config: AppConfig) -> None:
    """Configure structlog based on the logging config."""
    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
    ]

    if config.logging.format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.getLevelName(config.logging.level.upper()),
        ),
    )


def _create_storage(config: AppConfig) -> tuple[DocumentStore, LocationHistoryLog]:
    backend = config.storage.backend
    if backend == "file":
        return (FileDocumentStore(config.storage.data_dir),
                FileLocationHistory(config.storage.history_dir))
    if backend == "memory":
        return MemoryDocumentStore(), MemoryLocationHistory()
    raise ValueError(f"unknown storage backend: {backend!r}")


def build_service(
    config: AppConfig,
    store: DocumentStore,
    history: LocationHistoryLog,
    stats: EngineStats,
) -> SafetyService:
    """Assemble the engine around an explicit storage handle."""
    matching = config.matching
    return SafetyService(
        store=store,
        history=history,
        stats=stats,
        matcher=NotificationMatcher(store, radius_km=matching.nearby_radius_km, stats=stats),
        search=RecipientSearch(
            store,
            start_km=matching.search_start_km,
            step_km=matching.search_step_km,
            max_km=matching.search_max_km,
            quorum=matching.search_quorum,
        ),
        counter=AcceptCounter(store, max_helpers=config.limits.max_helpers),
        nearby_alerts_radius_km=matching.nearby_alerts_radius_km,
        help_radius_km=matching.help_radius_km,
        active_alerts_limit=config.limits.active_alerts_limit,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup and shutdown."""
    global _service, _stats, _config

    _config = load_config()
    _setup_logging(_config)

    log.info("server_starting",
             env=_config.server.env,
             storage_backend=_config.storage.backend,
             max_helpers=_config.limits.max_helpers)

    store, history = _create_storage(_config)
    _stats = EngineStats(active_window_seconds=_config.limits.active_window_seconds)
    _service = build_service(_config, store, history, _stats)

    log.info("server_started",
             host=_config.server.host,
             port=_config.server.port)

    yield

    log.info("server_stopped")


app = FastAPI(
    title="NearHelp",
    description="Proximity alerts and nearby-helper matching",
    version="0.1.0",
    lifespan=lifespan,
)

register_error_handlers(app)
app.include_router(users_router)
app.include_router(alerts_router)
app.include_router(help_router)
app.include_router(monitoring_router)
