"""
Hardware specs source.

Two inputs, in priority order:
1. A pre-fetched enrichment document (JSON, fixed schema):
       {
         "from_scan": {"cpu", "ram", "gpu"?, "model", "manufacturer"?, "os"?},
         "specifications": {"laptop_model", "brand", "cpu", "gpu", "display",
                            "battery", "weight", "os", "typical_price_range", ...} | null,
         "error": str | null,
         "timestamp": str
       }
2. A local, best-effort capability probe (platform, cores, memory, GPU hint).

A missing or malformed document is non-fatal: it is logged and the
probe result is used instead.
"""

from __future__ import annotations

import json
import os
import platform
import re
from dataclasses import asdict, dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Mapping

from observability.logger import log_component


_INTEGRATED_GPU = "Integrated Graphics"
_UNKNOWN = "Unknown"

_ANGLE_WRAPPER = re.compile(r"angle \((.+)\)", re.IGNORECASE)
_D3D_SUFFIX = re.compile(r"direct3d11 vs_5_0 ps_5_0", re.IGNORECASE)


@dataclass(frozen=True)
class HardwareSpecs:
    """Flat record of display strings describing the host machine."""
    model_name: str
    os: str
    processor: str
    ram: str
    gpu: str
    resolution: str
    runtime: str
    battery: str = _UNKNOWN
    weight: str = _UNKNOWN
    price: str = _UNKNOWN
    timestamp: str = ""

    def to_dict(self) -> dict[str, str]:
        return asdict(self)


@dataclass(frozen=True)
class _Estimate:
    model_name: str
    weight: str
    price: str
    battery: str


_MAC_ESTIMATE = _Estimate(
    model_name="MacBook Pro / Air",
    weight="1.24 kg - 1.6 kg",
    price="$1299 - $2499",
    battery="58.2 Wh Li-Poly",
)
_GAMING_ESTIMATE = _Estimate(
    model_name="Gaming Laptop",
    weight="2.1 kg - 2.5 kg",
    price="$1100 - $3000",
    battery="90 Wh (4-Cell)",
)
_BUSINESS_ESTIMATE = _Estimate(
    model_name="Business Laptop",
    weight="1.3 kg - 1.5 kg",
    price="$600 - $1200",
    battery="45 Wh Li-ion",
)


# -----------------------------------------------------------------------------
# Capability probe
# -----------------------------------------------------------------------------

def clean_gpu_string(raw: str) -> str:
    cleaned = _ANGLE_WRAPPER.sub(r"\1", raw)
    cleaned = _D3D_SUFFIX.sub("", cleaned)
    return cleaned.strip() or _INTEGRATED_GPU


def estimate_for(system: str, gpu: str) -> _Estimate:
    if system == "Darwin" or "Mac" in system:
        return _MAC_ESTIMATE
    if "NVIDIA" in gpu or "Radeon" in gpu:
        return _GAMING_ESTIMATE
    return _BUSINESS_ESTIMATE


def _os_name(system: str) -> str:
    if system == "Windows":
        return "Windows"
    if system == "Darwin":
        return "macOS"
    return "Linux"


def _memory_hint() -> str:
    try:
        total = os.sysconf("SC_PAGE_SIZE") * os.sysconf("SC_PHYS_PAGES")
    except (AttributeError, ValueError, OSError):
        return "8GB (Est)"
    gib = round(total / 2**30)
    if gib <= 0:
        return "8GB (Est)"
    return f"{gib} GB+"


def probe_local(
    *,
    gpu_hint: str | None = None,
    resolution_hint: str | None = None,
    system: str | None = None,
    now: datetime | None = None,
) -> HardwareSpecs:
    """Best-effort description of the host; never raises."""
    system = system if system is not None else platform.system()
    gpu = clean_gpu_string(gpu_hint) if gpu_hint else _INTEGRATED_GPU
    estimate = estimate_for(system, gpu)
    cores = os.cpu_count() or 1
    stamp = (now or datetime.now()).strftime("%Y-%m-%d %H:%M:%S")

    return HardwareSpecs(
        model_name=estimate.model_name,
        os=_os_name(system),
        processor=f"{cores} Cores",
        ram=_memory_hint(),
        gpu=gpu,
        resolution=resolution_hint or _UNKNOWN,
        runtime=f"Python {platform.python_version()} / {system or _UNKNOWN}",
        battery=estimate.battery,
        weight=estimate.weight,
        price=estimate.price,
        timestamp=stamp,
    )


# -----------------------------------------------------------------------------
# Enrichment document
# -----------------------------------------------------------------------------

def _text(mapping: Mapping[str, Any] | None, key: str) -> str | None:
    if not mapping:
        return None
    value = mapping.get(key)
    if value is None:
        return None
    if isinstance(value, (list, tuple)):
        value = ", ".join(str(v) for v in value)
    text = str(value).strip()
    return text or None


def specs_from_document(
    document: Mapping[str, Any],
    *,
    fallback: HardwareSpecs,
) -> HardwareSpecs:
    """
    Merge an enrichment document over the probe result.

    Raises:
        ValueError if the document does not follow the fixed schema.
    """
    from_scan = document.get("from_scan")
    if not isinstance(from_scan, dict):
        raise ValueError("from_scan must be an object")

    specifications = document.get("specifications")
    if specifications is not None and not isinstance(specifications, dict):
        raise ValueError("specifications must be an object or null")

    timestamp = document.get("timestamp")
    if not isinstance(timestamp, str):
        raise ValueError("timestamp must be a string")

    def pick(*candidates: str | None, default: str) -> str:
        for candidate in candidates:
            if candidate:
                return candidate
        return default

    spec = specifications or {}
    return HardwareSpecs(
        model_name=pick(
            _text(spec, "laptop_model"), _text(from_scan, "model"),
            default=fallback.model_name,
        ),
        os=pick(_text(spec, "os"), _text(from_scan, "os"), default=fallback.os),
        processor=pick(
            _text(spec, "cpu"), _text(from_scan, "cpu"), default=fallback.processor,
        ),
        ram=pick(_text(from_scan, "ram"), _text(spec, "ram_options"), default=fallback.ram),
        gpu=pick(_text(spec, "gpu"), _text(from_scan, "gpu"), default=fallback.gpu),
        resolution=pick(_text(spec, "display"), default=fallback.resolution),
        runtime=fallback.runtime,
        battery=pick(_text(spec, "battery"), default=fallback.battery),
        weight=pick(_text(spec, "weight"), default=fallback.weight),
        price=pick(_text(spec, "typical_price_range"), default=fallback.price),
        timestamp=timestamp or fallback.timestamp,
    )


def load_enrichment_document(path: str | Path) -> dict[str, Any] | None:
    """
    Read the enrichment document.

    Returns None (and logs) when the file is missing or is not a JSON object.
    """
    try:
        raw = Path(path).read_text(encoding="utf-8")
    except FileNotFoundError:
        log_component("hardware", "specs_document_missing", path=str(path))
        return None
    except OSError as e:
        log_component("hardware", "specs_document_unreadable", path=str(path), error=str(e))
        return None

    try:
        document = json.loads(raw)
    except json.JSONDecodeError as e:
        log_component("hardware", "specs_document_malformed", path=str(path), error=str(e))
        return None

    if not isinstance(document, dict):
        log_component("hardware", "specs_document_malformed", path=str(path), error="not an object")
        return None
    return document


class HardwareSpecsSource:
    """
    Produces the specs snapshot at scan time.

    Document first, probe fallback.
    """

    def __init__(
        self,
        *,
        document_path: str | Path | None,
        gpu_hint: str | None = None,
        resolution_hint: str | None = None,
    ) -> None:
        self._document_path = document_path
        self._gpu_hint = gpu_hint
        self._resolution_hint = resolution_hint

    def collect(self) -> HardwareSpecs:
        probed = probe_local(gpu_hint=self._gpu_hint, resolution_hint=self._resolution_hint)
        if self._document_path is None:
            return probed

        document = load_enrichment_document(self._document_path)
        if document is None:
            return probed

        if document.get("error"):
            log_component(
                "hardware",
                "specs_document_reports_error",
                path=str(self._document_path),
                error=str(document.get("error")),
            )

        try:
            return specs_from_document(document, fallback=probed)
        except ValueError as e:
            log_component(
                "hardware",
                "specs_document_malformed",
                path=str(self._document_path),
                error=str(e),
            )
            return probed


def hardware_summary_text(specs: HardwareSpecs) -> str:
    """One-shot prompt announcing the scan result to the live model."""
    payload = json.dumps(specs.to_dict(), ensure_ascii=False)
    return f"SYSTEM SCAN COMPLETE. Detected Specs: {payload}. Explain these to the user now."
