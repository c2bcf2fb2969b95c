"""Reference frame transformations for propagation outputs."""
from __future__ import annotations

import enum
import math
from dataclasses import dataclass
from datetime import datetime
from typing import Sequence, Tuple

from sgp4.api import jday

EARTH_ROT_RATE_RAD_PER_SEC = 7.2921150e-5

Vector = Tuple[float, float, float]
Matrix = Tuple[Vector, Vector, Vector]

# Native TEME (x, y, z) -> render (-y, z, -x): the renderer is y-up with the
# equatorial plane spanning its x/z axes.
RENDER_MATRIX: Matrix = (
    (0.0, -1.0, 0.0),
    (0.0, 0.0, 1.0),
    (-1.0, 0.0, 0.0),
)
RENDER_MATRIX_INVERSE: Matrix = tuple(  # type: ignore[assignment]
    tuple(RENDER_MATRIX[row][col] for row in range(3)) for col in range(3)
)


class Frame(str, enum.Enum):
    """Supported native coordinate frames."""

    TEME = "teme"
    ECI = "eci"  # Alias for TEME
    ECEF = "ecef"

    @classmethod
    def from_string(cls, value: str) -> "Frame":
        try:
            return cls(value.lower())
        except ValueError as exc:
            raise ValueError(f"Unsupported frame '{value}'") from exc


@dataclass(frozen=True)
class StateVector:
    """Position and velocity state vector (kilometres / kilometres per second)."""

    position_km: Vector
    velocity_km_s: Vector


def apply_matrix(matrix: Matrix, vector: Sequence[float]) -> Vector:
    """Multiply ``matrix`` by ``vector``.

    Zero coefficients are skipped so a signed permutation moves values
    without rounding and without turning infinities into NaN.
    """

    if len(vector) != 3:
        raise ValueError(f"expected a 3-vector, got {len(vector)} components")
    out = []
    for row in matrix:
        total = 0.0
        for coeff, value in zip(row, vector):
            if coeff:
                total += coeff * value
        out.append(total)
    return out[0], out[1], out[2]


def to_render_frame(position_km: Sequence[float], scale: float = 1.0) -> Vector:
    """Map a native-frame vector into render coordinates."""

    x, y, z = apply_matrix(RENDER_MATRIX, position_km)
    if scale == 1.0:
        return x, y, z
    return x * scale, y * scale, z * scale


def from_render_frame(render: Sequence[float], scale: float = 1.0) -> Vector:
    """Inverse of :func:`to_render_frame`; exact when ``scale`` is 1."""

    if scale != 1.0:
        render = [value / scale for value in render]
    return apply_matrix(RENDER_MATRIX_INVERSE, render)


@dataclass(frozen=True)
class RenderFrame:
    """Fixed render convention with a kilometre-to-scene-unit scale."""

    scale: float = 1.0

    def __post_init__(self) -> None:
        if not self.scale > 0:
            raise ValueError("render scale must be positive")

    def position(self, position_km: Sequence[float]) -> Vector:
        return to_render_frame(position_km, self.scale)

    def velocity(self, velocity_km_s: Sequence[float]) -> Vector:
        return to_render_frame(velocity_km_s, self.scale)

    def inverse(self, render: Sequence[float]) -> Vector:
        return from_render_frame(render, self.scale)


def _gmst(dt: datetime) -> float:
    if dt.tzinfo is None:
        raise ValueError("datetime must be timezone-aware")
    jd, fr = jday(dt.year, dt.month, dt.day, dt.hour, dt.minute,
                  dt.second + dt.microsecond / 1_000_000)
    t = (jd + fr - 2451545.0) / 36525.0
    gmst_sec = (
        67310.54841
        + (876600.0 * 3600 + 8640184.812866) * t
        + 0.093104 * t * t
        - 6.2e-6 * t * t * t
    ) % 86400.0
    return math.radians(gmst_sec / 240.0)


def _z_rotation(theta: float) -> Matrix:
    cos_t = math.cos(theta)
    sin_t = math.sin(theta)
    return (
        (cos_t, sin_t, 0.0),
        (-sin_t, cos_t, 0.0),
        (0.0, 0.0, 1.0),
    )


def teme_to_ecef(state: StateVector, when: datetime) -> StateVector:
    rotation = _z_rotation(_gmst(when))
    x, y, z = apply_matrix(rotation, state.position_km)
    vx, vy, vz = apply_matrix(rotation, state.velocity_km_s)
    omega = EARTH_ROT_RATE_RAD_PER_SEC
    return StateVector((x, y, z), (vx + omega * y, vy - omega * x, vz))


def ecef_to_teme(state: StateVector, when: datetime) -> StateVector:
    rotation = _z_rotation(-_gmst(when))
    x, y, z = state.position_km
    vx, vy, vz = state.velocity_km_s
    omega = EARTH_ROT_RATE_RAD_PER_SEC
    position = apply_matrix(rotation, (x, y, z))
    velocity = apply_matrix(rotation, (vx - omega * y, vy + omega * x, vz))
    return StateVector(position, velocity)


def transform_state(state: StateVector, when: datetime, source: Frame, target: Frame) -> StateVector:
    inertial = {Frame.TEME, Frame.ECI}
    if source == target or (source in inertial and target in inertial):
        return state
    if source in inertial and target == Frame.ECEF:
        return teme_to_ecef(state, when)
    if source == Frame.ECEF and target in inertial:
        return ecef_to_teme(state, when)
    raise ValueError(f"Unsupported transformation from {source.value} to {target.value}")


__all__ = [
    "EARTH_ROT_RATE_RAD_PER_SEC",
    "Frame",
    "RENDER_MATRIX",
    "RENDER_MATRIX_INVERSE",
    "RenderFrame",
    "StateVector",
    "apply_matrix",
    "ecef_to_teme",
    "from_render_frame",
    "teme_to_ecef",
    "to_render_frame",
    "transform_state",
]
