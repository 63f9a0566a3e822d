"""FastAPI application entry point."""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .api.routes import health, places, trips
from .config import settings
from .persistence.filesystem import FileStorage
from .persistence.trips import SnapshotWriter, load_saved_trip
from .services.geocoding.photon_client import PhotonClient
from .services.routing.orchestrator import RoutingOrchestrator
from .services.trip.store import TripStore


@asynccontextmanager
async def lifespan(app: FastAPI):
    storage = FileStorage()
    store = TripStore(await asyncio.to_thread(load_saved_trip, storage))
    snapshot_writer = SnapshotWriter(storage)
    store.subscribe(snapshot_writer)
    orchestrator = RoutingOrchestrator(store)

    app.state.storage = storage
    app.state.store = store
    app.state.snapshot_writer = snapshot_writer
    app.state.orchestrator = orchestrator
    app.state.places = PhotonClient()

    orchestrator.start()
    try:
        yield
    finally:
        await orchestrator.aclose()
        await asyncio.to_thread(snapshot_writer.close)


def create_app() -> FastAPI:
    logging.getLogger("tripplanner").setLevel(settings.log_level.upper())

    app = FastAPI(title=settings.app_name, lifespan=lifespan)
    if settings.frontend_allowed_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=list(settings.frontend_allowed_origins),
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    # Root endpoint for diagnostics
    @app.get("/")
    def root():
        return {
            "service": settings.app_name,
            "status": "running",
            "api_prefix": settings.api_prefix,
            "health": f"{settings.api_prefix}/health",
            "docs": "/docs",
        }

    app.include_router(health.router, prefix=settings.api_prefix)
    app.include_router(trips.router, prefix=settings.api_prefix)
    app.include_router(places.router, prefix=settings.api_prefix)
    return app


app = create_app()
