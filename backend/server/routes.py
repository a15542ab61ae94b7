"""
Route registration for the assistant API.

Responsibilities:
- Define HTTP endpoints for the presentation layer
- Translate requests into SessionController actions
- Pull dependencies from app.state
"""

from __future__ import annotations

from typing import Any

from fastapi import FastAPI
from pydantic import BaseModel

from session.controller import SessionController


class StartRequest(BaseModel):
    api_key: str | None = None


class PromptRequest(BaseModel):
    text: str


def register_routes(app: FastAPI) -> None:
    """Register all routes on the FastAPI app."""

    def controller() -> SessionController:
        return app.state.controller

    @app.get("/health")
    async def health() -> dict[str, str]: # pyright: ignore[reportUnusedFunction]
        return {"status": "ok", "env": app.state.config.env}

    @app.get("/state")
    async def state() -> dict[str, Any]: # pyright: ignore[reportUnusedFunction]
        return controller().snapshot()

    @app.get("/levels")
    async def levels() -> dict[str, list[int]]: # pyright: ignore[reportUnusedFunction]
        return controller().levels()

    @app.post("/session/start")
    async def start(body: StartRequest | None = None) -> dict[str, Any]: # pyright: ignore[reportUnusedFunction]
        await controller().start(body.api_key if body is not None else None)
        return controller().snapshot()

    @app.post("/session/stop")
    async def stop() -> dict[str, Any]: # pyright: ignore[reportUnusedFunction]
        await controller().stop()
        return controller().snapshot()

    @app.post("/session/interact")
    async def interact() -> dict[str, Any]: # pyright: ignore[reportUnusedFunction]
        await controller().open_mic()
        return controller().snapshot()

    @app.post("/session/prompt")
    async def prompt(body: PromptRequest) -> dict[str, Any]: # pyright: ignore[reportUnusedFunction]
        await controller().send_prompt(body.text)
        return controller().snapshot()

    @app.post("/session/restart")
    async def restart() -> dict[str, Any]: # pyright: ignore[reportUnusedFunction]
        await controller().restart()
        return controller().snapshot()
