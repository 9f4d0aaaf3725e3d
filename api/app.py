"""FastAPI app factory + lifespan (startup/shutdown)."""

import asyncio
import os
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from orgchart.event_bus import DISPLAY_EVENTS
from orgchart.orchestrator import Orchestrator

from . import routes
from .streaming import EventSSEBridge


def create_app(orchestrator: Orchestrator, *, tick: bool = True) -> FastAPI:
    """Build and return the configured FastAPI application.

    Args:
        orchestrator: The engine the endpoints operate on.
        tick: Start the orchestrator's tick thread for the app's lifetime.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Startup
        bridge = EventSSEBridge(asyncio.get_running_loop(), types=DISPLAY_EVENTS)
        orchestrator.events.subscribe(bridge.callback)
        routes.orchestrator = orchestrator
        routes.sse_bridge = bridge
        routes._start_time = time.time()
        if tick:
            orchestrator.run()

        yield

        # Shutdown
        if tick:
            orchestrator.stop()
        orchestrator.events.unsubscribe(bridge.callback)
        bridge.close()
        routes.sse_bridge = None

    app = FastAPI(
        title="orgchart API",
        description="Hierarchical multi-agent task engine",
        version="0.1.0",
        lifespan=lifespan,
    )

    # CORS - restrict origins in production, allow all in development
    cors_origins = os.getenv("CORS_ORIGINS", "").strip()
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins.split(",") if cors_origins else ["http://localhost:5173", "http://127.0.0.1:5173"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(routes.router)
    return app
