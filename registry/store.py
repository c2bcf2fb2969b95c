"""Object registry caching derived SGP4 constants per tracked object."""
from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, MutableSequence, Optional, Union

from orbitcast.config import EngineConfig
from orbitcast.elements import ElementSet, ParseError, parse
from orbitcast.logging import get_logger, log_context
from propagate.constants import GravityModel, ModelError, PropagationConstants, derive
from propagate.frames import Frame, RenderFrame, transform_state
from propagate.service import Prediction, PropagationState, initial_state, propagate

ObjectId = Union[int, str]

LOGGER = get_logger("registry")


class RegistryError(RuntimeError):
    """Base class for registry failures."""

    def __init__(self, message: str, object_id: ObjectId) -> None:
        super().__init__(message)
        self.object_id = object_id


class UnknownIdError(RegistryError):
    pass


class DuplicateIdError(RegistryError):
    pass


class InvalidElementsError(RegistryError):
    """The element set could not be parsed or could not initialise SGP4."""


@dataclass
class ObjectEntry:
    object_id: ObjectId
    elements: ElementSet
    constants: PropagationConstants
    state: Optional[PropagationState] = None
    state_initialized: bool = False
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False, compare=False)

    @property
    def epoch_millis(self) -> float:
        return self.constants.epoch_millis

    def propagate_at(self, timestamp_millis: float, decay_altitude_km: float = 0.0) -> Prediction:
        """Evaluate this entry at a Unix-millisecond timestamp.

        The state is created on first use and calls on the same entry are
        serialised, since every evaluation writes to the SGP4 record.
        """

        minutes = (timestamp_millis - self.epoch_millis) / 60_000.0
        with self._lock:
            if not self.state_initialized:
                self.state = initial_state(self.constants)
                self.state_initialized = True
            return propagate(self.constants, self.state, minutes,
                             decay_altitude_km=decay_altitude_km)


def create_vector_array() -> List[float]:
    """Return a zeroed three-component output buffer."""

    return [0.0, 0.0, 0.0]


def _write(out: MutableSequence[float], values) -> None:
    out[0], out[1], out[2] = values


class Registry:
    """Maps caller-assigned ids to cached propagation constants.

    Entries are added with :meth:`register` and queried any number of times
    with :meth:`query`. Duplicate ids are rejected rather than overwritten.
    """

    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        *,
        frame: Frame = Frame.TEME,
        render: Optional[RenderFrame] = None,
    ) -> None:
        self.config = config or EngineConfig()
        self.frame = frame
        self.render = render or RenderFrame(self.config.render_scale)
        self._gravity = GravityModel.from_string(self.config.gravity_model)
        self._entries: Dict[ObjectId, ObjectEntry] = {}
        self._lock = threading.RLock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, object_id: object) -> bool:
        with self._lock:
            return object_id in self._entries

    def ids(self) -> List[ObjectId]:
        with self._lock:
            return list(self._entries)

    def derive(self, elements: ElementSet) -> PropagationConstants:
        return derive(
            elements,
            gravity=self._gravity,
            opsmode=self.config.opsmode,
            min_perigee_altitude_km=self.config.min_perigee_altitude_km,
        )

    def register(self, object_id: ObjectId, elements: ElementSet) -> ObjectEntry:
        with self._lock:
            if object_id in self._entries:
                raise DuplicateIdError(f"object {object_id!r} is already registered", object_id)
            try:
                constants = self.derive(elements)
            except ModelError as exc:
                LOGGER.warning("register_rejected", extra={"object_id": object_id, "reason": str(exc)})
                raise InvalidElementsError(f"object {object_id!r}: {exc}", object_id) from exc
            entry = ObjectEntry(object_id=object_id, elements=elements, constants=constants)
            self._entries[object_id] = entry
        LOGGER.info(
            "registered",
            extra={
                "object_id": object_id,
                "catalog_number": elements.catalog_number,
                "method": constants.method,
                "epoch": elements.epoch.isoformat(),
            },
        )
        return entry

    def register_tle(
        self,
        object_id: ObjectId,
        line1: Union[str, bytes],
        line2: Union[str, bytes],
        name: Optional[str] = None,
    ) -> ObjectEntry:
        try:
            elements = parse(name, line1, line2)
        except ParseError as exc:
            raise InvalidElementsError(f"object {object_id!r}: {exc}", object_id) from exc
        return self.register(object_id, elements)

    def get(self, object_id: ObjectId) -> ObjectEntry:
        with self._lock:
            entry = self._entries.get(object_id)
        if entry is None:
            raise UnknownIdError(f"object {object_id!r} is not registered", object_id)
        return entry

    def remove(self, object_id: ObjectId) -> None:
        with self._lock:
            if self._entries.pop(object_id, None) is None:
                raise UnknownIdError(f"object {object_id!r} is not registered", object_id)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def query(
        self,
        object_id: ObjectId,
        timestamp_millis: float,
        out: MutableSequence[float],
        velocity_out: Optional[MutableSequence[float]] = None,
    ) -> Prediction:
        """Write the render-frame position of ``object_id`` into ``out``.

        Raises :class:`UnknownIdError` for unregistered ids and lets
        :class:`~propagate.service.PropagationError` through when no valid
        state exists at that time; the buffers are untouched in both cases.
        """

        if len(out) < 3 or (velocity_out is not None and len(velocity_out) < 3):
            raise ValueError("output buffers need three components")
        entry = self.get(object_id)
        with log_context(object_id=object_id, timestamp_millis=timestamp_millis):
            prediction = entry.propagate_at(timestamp_millis, self.config.decay_altitude_km)
            state = prediction.as_state()
            if self.frame != Frame.TEME:
                when = datetime.fromtimestamp(timestamp_millis / 1000.0, timezone.utc)
                state = transform_state(state, when, Frame.TEME, self.frame)
            position = self.render.position(state.position_km)
            velocity = self.render.velocity(state.velocity_km_s)
            LOGGER.debug(
                "propagated",
                extra={
                    "position_km": prediction.position_km,
                    "velocity_km_s": prediction.velocity_km_s,
                },
            )
        # The optional buffer goes first so a rejected write leaves ``out`` as it was.
        if velocity_out is not None:
            _write(velocity_out, velocity)
        _write(out, position)
        return prediction


__all__ = [
    "DuplicateIdError",
    "InvalidElementsError",
    "ObjectEntry",
    "ObjectId",
    "Registry",
    "RegistryError",
    "UnknownIdError",
    "create_vector_array",
]
