"""Satellite propagation services built on top of SGP4."""
from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Iterable, List, Optional, Tuple, Union

from sgp4.api import SGP4_ERRORS

from orbitcast.elements import ElementSet
from propagate.constants import PropagationConstants, derive
from propagate.frames import Frame, StateVector, Vector, transform_state

# SGP4 codes raised when secular drag has pulled the mean elements out of the
# model's domain: 1 = mean eccentricity out of range, 6 = orbit decayed.
DECAY_CODES = frozenset({1, 6})


class PropagationError(RuntimeError):
    """No valid state exists for this object at the requested time."""

    def __init__(self, message: str, *, code: int = 0, minutes: float = math.nan) -> None:
        super().__init__(message)
        self.code = code
        self.minutes = minutes


class DecayedError(PropagationError):
    """The modelled orbit has decayed at the requested time."""


class NumericalError(PropagationError):
    """SGP4 produced a non-physical or non-finite state."""


@dataclass(frozen=True)
class Prediction:
    """Native-frame (TEME) position and velocity at one elapsed time."""

    minutes_since_epoch: float
    position_km: Vector
    velocity_km_s: Vector

    @property
    def radius_km(self) -> float:
        return math.sqrt(sum(c * c for c in self.position_km))

    def as_state(self) -> StateVector:
        return StateVector(self.position_km, self.velocity_km_s)


@dataclass
class PropagationState:
    """Per-object bookkeeping for deep-space objects.

    SDP4 is evaluated from elapsed time since epoch: the library keeps its
    resonance integrator on the SGP4 record and restarts it from epoch
    whenever a request moves back towards epoch, so queries may arrive in
    any order. This object only counts evaluations and remembers the last
    elapsed time.
    """

    evaluations: int = 0
    last_minutes: Optional[float] = None

    def record(self, minutes: float) -> None:
        self.evaluations += 1
        self.last_minutes = minutes


def initial_state(constants: PropagationConstants) -> Optional[PropagationState]:
    """Return fresh bookkeeping for deep-space objects, ``None`` otherwise."""

    if constants.deep_space:
        return PropagationState()
    return None


def _raise_for_code(code: int, minutes: float) -> None:
    message = SGP4_ERRORS.get(code, f"SGP4 error code {code}")
    text = f"{message} at {minutes:.3f} min from epoch"
    if code in DECAY_CODES:
        raise DecayedError(text, code=code, minutes=minutes)
    raise NumericalError(text, code=code, minutes=minutes)


def propagate(
    constants: PropagationConstants,
    state: Optional[PropagationState],
    minutes_since_epoch: float,
    *,
    decay_altitude_km: float = 0.0,
) -> Prediction:
    """Evaluate SGP4 ``minutes_since_epoch`` minutes after the element epoch.

    Negative offsets are allowed. Results depend only on the elapsed time, so
    calls may arrive in any order. ``state`` is updated in place when given.
    """

    if not math.isfinite(minutes_since_epoch):
        raise NumericalError("elapsed time is not finite", minutes=minutes_since_epoch)

    error, position, velocity = constants.satrec.sgp4_tsince(minutes_since_epoch)
    if error != 0:
        _raise_for_code(error, minutes_since_epoch)
    if not all(math.isfinite(c) for c in (*position, *velocity)):
        raise NumericalError(
            f"non-finite state at {minutes_since_epoch:.3f} min from epoch",
            minutes=minutes_since_epoch,
        )

    prediction = Prediction(minutes_since_epoch, tuple(position), tuple(velocity))
    if prediction.radius_km < constants.earth_radius_km + decay_altitude_km:
        raise DecayedError(
            f"radius {prediction.radius_km:.1f} km below decay threshold "
            f"at {minutes_since_epoch:.3f} min from epoch",
            code=6,
            minutes=minutes_since_epoch,
        )
    if state is not None:
        state.record(minutes_since_epoch)
    return prediction


@dataclass(frozen=True)
class PropagationSample:
    timestamp: datetime
    state: StateVector

    def as_dict(self) -> dict:
        return {
            "timestamp": self.timestamp.isoformat(),
            "position_km": list(self.state.position_km),
            "velocity_km_s": list(self.state.velocity_km_s),
        }


@dataclass(frozen=True)
class PropagationResult:
    catalog_number: int
    frame: Frame
    samples: Tuple[PropagationSample, ...]

    @property
    def start(self) -> datetime:
        return self.samples[0].timestamp

    @property
    def end(self) -> datetime:
        return self.samples[-1].timestamp

    @property
    def step(self) -> timedelta:
        if len(self.samples) < 2:
            return timedelta(0)
        return self.samples[1].timestamp - self.samples[0].timestamp

    def as_dict(self) -> dict:
        return {
            "catalog_number": self.catalog_number,
            "frame": self.frame.value,
            "start": self.start.isoformat(),
            "end": self.end.isoformat(),
            "step_seconds": self.step.total_seconds(),
            "samples": [sample.as_dict() for sample in self.samples],
        }


def _ensure_utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        raise ValueError("datetime must be timezone-aware")
    return dt.astimezone(timezone.utc)


def _iter_times(start: datetime, end: datetime, step: timedelta) -> Iterable[datetime]:
    current = start
    while current <= end + timedelta(microseconds=1):
        yield current
        current += step


def minutes_between(epoch_millis: float, when: datetime) -> float:
    """Minutes from an epoch (Unix milliseconds) to a timezone-aware instant."""

    return (_ensure_utc(when).timestamp() * 1000.0 - epoch_millis) / 60_000.0


def propagate_range(
    source: Union[ElementSet, PropagationConstants],
    *,
    start: datetime,
    end: datetime,
    step: timedelta,
    frame: Frame = Frame.TEME,
    decay_altitude_km: float = 0.0,
) -> PropagationResult:
    """Sample positions between ``start`` and ``end`` inclusive."""

    start_utc = _ensure_utc(start)
    end_utc = _ensure_utc(end)
    if end_utc < start_utc:
        raise ValueError("end must not be before start")
    if step.total_seconds() <= 0:
        raise ValueError("step must be positive")

    constants = derive(source) if isinstance(source, ElementSet) else source
    state = initial_state(constants)
    samples: List[PropagationSample] = []

    for ts in _iter_times(start_utc, end_utc, step):
        minutes = minutes_between(constants.epoch_millis, ts)
        prediction = propagate(constants, state, minutes, decay_altitude_km=decay_altitude_km)
        converted = transform_state(prediction.as_state(), ts, Frame.TEME, frame)
        samples.append(PropagationSample(ts, converted))

    return PropagationResult(catalog_number=constants.catalog_number, frame=frame,
                             samples=tuple(samples))


__all__ = [
    "DECAY_CODES",
    "DecayedError",
    "NumericalError",
    "Prediction",
    "PropagationError",
    "PropagationResult",
    "PropagationSample",
    "PropagationState",
    "initial_state",
    "minutes_between",
    "propagate",
    "propagate_range",
]
