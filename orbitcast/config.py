"""Engine configuration loader for orbitcast."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping, Optional

__all__ = [
    "EngineConfig",
    "GRAVITY_MODELS",
    "LOG_LEVELS",
    "OPSMODES",
    "load_config",
]

GRAVITY_MODELS = ("wgs72old", "wgs72", "wgs84")
OPSMODES = ("a", "i")
LOG_LEVELS = ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG")


@dataclass(frozen=True)
class EngineConfig:
    """Settings shared by constants derivation, propagation and the registry.

    ``render_scale`` multiplies kilometres into scene units; the default keeps
    render coordinates in kilometres.
    """

    gravity_model: str = "wgs72"
    opsmode: str = "i"
    min_perigee_altitude_km: float = 0.0
    decay_altitude_km: float = 0.0
    render_scale: float = 1.0
    element_accuracy_days: float = 14.0
    log_level: str = "INFO"

    def __post_init__(self) -> None:
        if self.gravity_model not in GRAVITY_MODELS:
            raise ValueError(f"unknown gravity model {self.gravity_model!r}")
        if self.opsmode not in OPSMODES:
            raise ValueError(f"unknown SGP4 opsmode {self.opsmode!r}")
        if self.render_scale <= 0:
            raise ValueError("render_scale must be positive")
        if self.element_accuracy_days <= 0:
            raise ValueError("element_accuracy_days must be positive")
        if self.log_level not in LOG_LEVELS:
            raise ValueError(f"unknown log level {self.log_level!r}")

    @property
    def element_accuracy_millis(self) -> float:
        return self.element_accuracy_days * 86_400_000.0


def _to_float(env: Mapping[str, str], key: str, default: float) -> float:
    raw = env.get(key)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ValueError(f"{key} must be a number, got {raw!r}") from exc


def _to_choice(env: Mapping[str, str], key: str, default: str, choices: tuple) -> str:
    raw = env.get(key)
    if raw is None or not raw.strip():
        return default
    value = raw.strip().lower()
    if value not in choices:
        raise ValueError(f"{key} must be one of {', '.join(choices)}, got {raw!r}")
    return value


def load_config(env: Optional[Mapping[str, str]] = None) -> EngineConfig:
    """Load configuration from environment variables."""

    env_map: Mapping[str, str]
    if env is None:
        env_map = os.environ
    else:
        env_map = env

    return EngineConfig(
        gravity_model=_to_choice(env_map, "ORBITCAST_GRAVITY_MODEL", "wgs72", GRAVITY_MODELS),
        opsmode=_to_choice(env_map, "ORBITCAST_OPSMODE", "i", OPSMODES),
        min_perigee_altitude_km=_to_float(env_map, "ORBITCAST_MIN_PERIGEE_KM", 0.0),
        decay_altitude_km=_to_float(env_map, "ORBITCAST_DECAY_ALTITUDE_KM", 0.0),
        render_scale=_to_float(env_map, "ORBITCAST_RENDER_SCALE", 1.0),
        element_accuracy_days=_to_float(env_map, "ORBITCAST_ELEMENT_ACCURACY_DAYS", 14.0),
        log_level=env_map.get("ORBITCAST_LOG_LEVEL", "INFO").strip().upper() or "INFO",
    )
