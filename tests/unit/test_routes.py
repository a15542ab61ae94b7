# pylint: disable=missing-module-docstring,missing-function-docstring

from typing import Any

from fastapi.testclient import TestClient

from config import AppConfig
from server.app import create_app


class FakeController:
    def __init__(self) -> None:
        self.calls: list[tuple[str, Any]] = []
        self.phase = "IDLE"

    async def start(self, credential: str | None = None) -> str | None:
        self.calls.append(("start", credential))
        self.phase = "INITIALIZING"
        return "sess_a"

    async def stop(self) -> None:
        self.calls.append(("stop", None))
        self.phase = "IDLE"

    async def open_mic(self) -> None:
        self.calls.append(("open_mic", None))

    async def send_prompt(self, text: str) -> None:
        self.calls.append(("send_prompt", text))

    async def restart(self) -> None:
        self.calls.append(("restart", None))

    async def shutdown(self) -> None:
        self.calls.append(("shutdown", None))

    def snapshot(self) -> dict[str, Any]:
        return {"phase": self.phase, "caption": "c", "specs": None, "error": None}

    def levels(self) -> dict[str, list[int]]:
        return {"input": [0] * 128, "output": [0] * 128}


def _client(controller: FakeController) -> TestClient:
    app = create_app(
        config=AppConfig(env="test"),
        controller=controller,  # type: ignore[arg-type]
    )
    return TestClient(app)


def test_health() -> None:
    with _client(FakeController()) as client:
        response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok", "env": "test"}


def test_start_passes_supplied_key_and_returns_snapshot() -> None:
    controller = FakeController()
    with _client(controller) as client:
        response = client.post("/session/start", json={"api_key": "k"})

    assert response.status_code == 200
    assert response.json()["phase"] == "INITIALIZING"
    assert controller.calls[0] == ("start", "k")


def test_start_without_body_uses_configured_key() -> None:
    controller = FakeController()
    with _client(controller) as client:
        client.post("/session/start")

    assert controller.calls[0] == ("start", None)


def test_actions_are_forwarded() -> None:
    controller = FakeController()
    with _client(controller) as client:
        client.post("/session/interact")
        client.post("/session/prompt", json={"text": "What GPU is this?"})
        client.post("/session/stop")
        client.post("/session/restart")

    assert [name for name, _ in controller.calls] == [
        "open_mic", "send_prompt", "stop", "restart", "shutdown",
    ]
    assert ("send_prompt", "What GPU is this?") in controller.calls


def test_prompt_requires_text() -> None:
    with _client(FakeController()) as client:
        response = client.post("/session/prompt", json={})

    assert response.status_code == 422


def test_state_and_levels() -> None:
    with _client(FakeController()) as client:
        state = client.get("/state").json()
        levels = client.get("/levels").json()

    assert state["phase"] == "IDLE"
    assert len(levels["input"]) == 128
    assert len(levels["output"]) == 128


def test_shutdown_hook_releases_controller() -> None:
    controller = FakeController()
    with _client(controller):
        pass

    assert controller.calls == [("shutdown", None)]
