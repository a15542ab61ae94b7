# pylint: disable=missing-module-docstring,missing-function-docstring

import pytest

from config import AppConfig
from constants import LIVE_MODEL, SCAN_DURATION_MS

_VARS = (
    "ENV", "API_KEY", "GEMINI_API_KEY", "LIVE_MODEL", "INPUT_DEVICE", "OUTPUT_DEVICE",
    "CAMERA_INDEX", "SCAN_DURATION_MS", "ENABLE_JSON_LOGS", "LIVE_GPU_HINT",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in _VARS:
        monkeypatch.delenv(name, raising=False)


def test_defaults() -> None:
    config = AppConfig.load_from_env()

    assert config.api_key is None
    assert config.live_model == LIVE_MODEL
    assert config.scan_duration_ms == SCAN_DURATION_MS
    assert config.input_device is None
    assert config.camera_index == 0
    assert config.enable_json_logs


def test_api_key_falls_back_to_gemini_variable(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("GEMINI_API_KEY", "g")
    assert AppConfig.load_from_env().api_key == "g"

    monkeypatch.setenv("API_KEY", "a")
    assert AppConfig.load_from_env().api_key == "a"


def test_numeric_and_flag_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("INPUT_DEVICE", "3")
    monkeypatch.setenv("OUTPUT_DEVICE", " ")
    monkeypatch.setenv("SCAN_DURATION_MS", "500")
    monkeypatch.setenv("ENABLE_JSON_LOGS", "0")
    monkeypatch.setenv("LIVE_GPU_HINT", "NVIDIA")

    config = AppConfig.load_from_env()

    assert config.input_device == 3
    assert config.output_device is None
    assert config.scan_duration_ms == 500
    assert not config.enable_json_logs
    assert config.gpu_hint == "NVIDIA"


def test_malformed_number_raises(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("CAMERA_INDEX", "front")

    with pytest.raises(ValueError):
        AppConfig.load_from_env()


def test_config_is_immutable() -> None:
    config = AppConfig()

    with pytest.raises(AttributeError):
        config.api_key = "x"  # type: ignore[misc]
