"""
FastAPI app factory.

Responsibilities:
- Create and configure FastAPI app
- Set up middleware
- Initialize shared resources (SessionController)
- Register routes
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from config import AppConfig
from observability.logger import log_event, now_ms, set_enabled
from session.controller import SessionController

from server.routes import register_routes


def create_app(
    config: AppConfig | None = None,
    controller: SessionController | None = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    This is the app factory pattern that allows:
    - Testing with an injected controller
    - Environment-specific setup
    - ASGI server compatibility
    """
    config = config or AppConfig.load_from_env()
    set_enabled(config.enable_json_logs)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        yield
        # Release devices and drop the live session on process exit
        await app.state.controller.shutdown()
        log_event({"ts_ms": now_ms(), "event_type": "app_shutdown"})

    app = FastAPI(title="Laptop Specs Assistant API", lifespan=lifespan)

    app.state.config = config
    # Create the controller ONCE per process
    app.state.controller = controller or SessionController(config=config)

    # Middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # tighten later
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Routes
    register_routes(app)

    return app
