"""
JSON message helpers for the Live bidirectional session.

Client -> Service:
    {"setup": {...}}                                   (first message only)
    {"realtimeInput": {"mediaChunks": [{"mimeType": ..., "data": <b64>}]}}
    {"realtimeInput": {"text": ...}}

Service -> Client (fields this application consumes):
    {"setupComplete": {}}
    {"serverContent": {"modelTurn": {"parts": [{"inlineData": {"mimeType", "data"}}]},
                       "turnComplete": bool, "interrupted": bool}}

Usage example:

    payload = encode_media_chunk(pcm_bytes, mime_type=CAPTURE_MIME_TYPE)
    await ws.send(payload)

    message = parse_server_message(raw)
    for chunk in message.audio_chunks:
        ...
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any
from urllib.parse import quote

from audio.pcm import DecodeError, base64_to_bytes, bytes_to_base64
from constants import LIVE_ENDPOINT_PATH


# -------------------------
# Exceptions
# -------------------------

class LiveProtocolError(Exception):
    """Base class for Live wire protocol errors."""


class MalformedMessage(LiveProtocolError):
    """Inbound message is not a JSON object."""


class SetupRejected(LiveProtocolError):
    """Service answered the setup message with something other than setupComplete."""


# -------------------------
# Session config
# -------------------------

@dataclass(frozen=True)
class LiveSessionConfig:
    """
    Immutable per-session configuration, fixed at connect time.
    """
    model: str
    voice: str
    system_instruction: str
    response_modalities: tuple[str, ...] = ("AUDIO",)


# -------------------------
# Data containers
# -------------------------

@dataclass(frozen=True)
class ServerMessage:
    """
    Decoded view of one inbound message.

    audio_chunks:
        Raw PCM16 payloads from every inlineData part, in part order.

    skipped_parts:
        Number of inlineData parts whose base64 could not be decoded.
    """
    setup_complete: bool = False
    audio_chunks: tuple[bytes, ...] = ()
    turn_complete: bool = False
    interrupted: bool = False
    skipped_parts: int = 0
    go_away: bool = False


# -------------------------
# Outbound encoding
# -------------------------

def build_endpoint_url(host: str, api_key: str) -> str:
    return f"wss://{host}{LIVE_ENDPOINT_PATH}?key={quote(api_key, safe='')}"


def build_setup_message(config: LiveSessionConfig) -> str:
    model = config.model
    if not model.startswith("models/"):
        model = f"models/{model}"

    setup: dict[str, Any] = {
        "model": model,
        "generationConfig": {
            "responseModalities": list(config.response_modalities),
            "speechConfig": {
                "voiceConfig": {
                    "prebuiltVoiceConfig": {"voiceName": config.voice},
                },
            },
        },
    }
    if config.system_instruction:
        setup["systemInstruction"] = {
            "role": "user",
            "parts": [{"text": config.system_instruction}],
        }
    return json.dumps({"setup": setup})


def encode_media_chunk(data: bytes, *, mime_type: str) -> str:
    return json.dumps({
        "realtimeInput": {
            "mediaChunks": [{"mimeType": mime_type, "data": bytes_to_base64(data)}],
        },
    })


def encode_text_input(text: str) -> str:
    return json.dumps({"realtimeInput": {"text": text}})


# -------------------------
# Inbound decoding
# -------------------------

def _load_object(raw: str | bytes) -> dict[str, Any]:
    try:
        decoded = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise MalformedMessage(f"invalid JSON: {e}") from e
    if not isinstance(decoded, dict):
        raise MalformedMessage(f"expected JSON object, got {type(decoded).__name__}")
    return decoded


def parse_server_message(raw: str | bytes) -> ServerMessage:
    """
    Decode one inbound message.

    Parts with undecodable base64 are counted in skipped_parts; the rest
    of the message is still returned.

    Raises:
        MalformedMessage if the payload is not a JSON object or the
        modelTurn structure has the wrong shape.
    """
    message = _load_object(raw)

    server_content = message.get("serverContent")
    if not isinstance(server_content, dict):
        return ServerMessage(
            setup_complete="setupComplete" in message,
            go_away="goAway" in message,
        )

    chunks: list[bytes] = []
    skipped = 0
    model_turn = server_content.get("modelTurn") or {}
    if not isinstance(model_turn, dict):
        raise MalformedMessage(f"modelTurn must be an object, got {type(model_turn).__name__}")
    parts = model_turn.get("parts") or []
    if not isinstance(parts, list):
        raise MalformedMessage(f"modelTurn.parts must be a list, got {type(parts).__name__}")
    for part in parts:
        if not isinstance(part, dict):
            continue
        inline_data = part.get("inlineData")
        if not isinstance(inline_data, dict):
            continue
        b64data = inline_data.get("data")
        if not b64data:
            continue
        try:
            chunks.append(base64_to_bytes(b64data))
        except DecodeError:
            skipped += 1

    return ServerMessage(
        setup_complete="setupComplete" in message,
        audio_chunks=tuple(chunks),
        turn_complete=bool(server_content.get("turnComplete")),
        interrupted=bool(server_content.get("interrupted")),
        skipped_parts=skipped,
    )


def expect_setup_complete(raw: str | bytes) -> None:
    """
    Validate the first inbound message after setup.

    Raises:
        MalformedMessage if not a JSON object.
        SetupRejected if it is not a setupComplete acknowledgement.
    """
    message = _load_object(raw)
    if "setupComplete" not in message:
        raise SetupRejected(f"unexpected setup response: {json.dumps(message)[:200]}")
