"""
FastAPI application for StudyMatch.

Start with: uvicorn studymatch.api.app:app --reload --port 8082

The module-level app serves profiles from STUDYMATCH_PROFILES_FILE.
Deployments backed by a real user database pass their own
ProfileDataSource to create_app().
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from studymatch.core.finder import MatchFinder
from studymatch.core.protocols import ProfileDataSource, SnapshotStore
from studymatch.core.scorer import CompatibilityScorer
from studymatch.infra.config import StudyMatchConfig
from studymatch.infra.database import SqlSnapshotStore
from studymatch.infra.memory_store import InMemoryProfileDirectory
from studymatch.infra.sweeper import SnapshotSweeper

from .routes import router

logger = logging.getLogger(__name__)


def build_finder(
    config: StudyMatchConfig,
    data_source: ProfileDataSource,
    store: SnapshotStore,
) -> MatchFinder:
    """Wire a MatchFinder from configuration."""
    return MatchFinder(
        data_source,
        store,
        CompatibilityScorer(weights=config.scoring_weights()),
        algorithm_version=config.algorithm_version,
        cache_window_hours=config.cache_window_hours,
        snapshot_ttl_days=config.snapshot_ttl_days,
        user_quota_share=config.user_quota_share,
        user_candidate_multiplier=config.user_candidate_multiplier,
        group_candidate_multiplier=config.group_candidate_multiplier,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize all dependencies on startup, clean up on shutdown."""
    config: StudyMatchConfig = app.state.config
    logging.basicConfig(level=config.log_level.upper())

    directory = app.state.directory
    if directory is None:
        if config.profiles_file:
            directory = InMemoryProfileDirectory.from_json_file(config.profiles_file)
        else:
            logger.warning("No profile source configured; every profile lookup will 404")
            directory = InMemoryProfileDirectory()
    store = app.state.store
    owns_store = store is None
    if owns_store:
        store = SqlSnapshotStore(config.database_url)
        await store.create_tables()
        logger.info("Snapshot store: %s", config.database_url)

    app.state.directory = directory
    app.state.store = store
    app.state.finder = build_finder(config, directory, store)

    sweeper = SnapshotSweeper(app.state.finder, config.sweep_interval_seconds)
    await sweeper.start()
    app.state.sweeper = sweeper

    logger.info("StudyMatch API started")
    yield

    await sweeper.close()
    if owns_store:
        await store.close()
    logger.info("StudyMatch API shutdown")


def create_app(
    config: Optional[StudyMatchConfig] = None,
    directory: Optional[ProfileDataSource] = None,
    store: Optional[SnapshotStore] = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    ``directory`` and ``store`` replace the default in-memory profile
    directory and SQL snapshot store.
    """
    app = FastAPI(
        title="StudyMatch API",
        description="Study partner and study group matching",
        version="2.0.0",
        lifespan=lifespan,
    )
    app.state.config = config or StudyMatchConfig()
    app.state.directory = directory
    app.state.store = store

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(router)

    return app


app = create_app()
