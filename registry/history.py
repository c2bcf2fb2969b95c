"""Epoch-ordered element sets for one object.

Published element sets are only trustworthy for a couple of weeks around
their epoch. When several sets exist for one object over a long time span,
each query should use the set whose epoch lies closest to the query time.
"""
from __future__ import annotations

import bisect
import functools
import threading
from dataclasses import dataclass
from typing import Callable, List, Optional

from orbitcast.config import EngineConfig
from orbitcast.elements import ElementSet
from propagate.constants import GravityModel, PropagationConstants, derive
from propagate.service import Prediction, PropagationError, PropagationState, initial_state, propagate

DEFAULT_ACCURACY_MILLIS = 14 * 86_400_000.0


@dataclass
class _Instance:
    epoch_millis: float
    elements: ElementSet
    constants: PropagationConstants
    state: Optional[PropagationState]


class ElementHistory:
    """Element sets for a single object, sorted by epoch."""

    def __init__(
        self,
        accuracy_millis: float = DEFAULT_ACCURACY_MILLIS,
        deriver: Callable[[ElementSet], PropagationConstants] = derive,
        decay_altitude_km: float = 0.0,
    ) -> None:
        if accuracy_millis <= 0:
            raise ValueError("accuracy_millis must be positive")
        self.accuracy_millis = accuracy_millis
        self.decay_altitude_km = decay_altitude_km
        self._derive = deriver
        self._epochs: List[float] = []
        self._instances: List[_Instance] = []
        self._lock = threading.Lock()

    @classmethod
    def from_config(cls, config: EngineConfig) -> "ElementHistory":
        """Build a history using the window, gravity model and thresholds of ``config``."""

        deriver = functools.partial(
            derive,
            gravity=GravityModel.from_string(config.gravity_model),
            opsmode=config.opsmode,
            min_perigee_altitude_km=config.min_perigee_altitude_km,
        )
        return cls(config.element_accuracy_millis, deriver, decay_altitude_km=config.decay_altitude_km)

    def __len__(self) -> int:
        return len(self._instances)

    @property
    def epochs(self) -> List[float]:
        return list(self._epochs)

    def add(self, elements: ElementSet) -> None:
        """Insert ``elements``; a set with an identical epoch replaces the old one."""

        constants = self._derive(elements)
        instance = _Instance(elements.epoch_millis, elements, constants, initial_state(constants))
        with self._lock:
            idx = bisect.bisect_left(self._epochs, instance.epoch_millis)
            if idx < len(self._epochs) and self._epochs[idx] == instance.epoch_millis:
                self._instances[idx] = instance
                return
            self._epochs.insert(idx, instance.epoch_millis)
            self._instances.insert(idx, instance)

    def _closest(self, timestamp_millis: float) -> Optional[_Instance]:
        idx = bisect.bisect_left(self._epochs, timestamp_millis)
        candidates = []
        if idx < len(self._instances):
            candidates.append(self._instances[idx])
        if idx > 0:
            candidates.append(self._instances[idx - 1])
        best = None
        for candidate in candidates:
            distance = abs(timestamp_millis - candidate.epoch_millis)
            if distance > self.accuracy_millis:
                continue
            # Ties go to the earlier set, which was published before the query.
            if best is None or distance <= abs(timestamp_millis - best.epoch_millis):
                best = candidate
        return best

    def closest(self, timestamp_millis: float) -> Optional[ElementSet]:
        """Return the element set nearest ``timestamp_millis`` within the window."""

        with self._lock:
            instance = self._closest(timestamp_millis)
        return None if instance is None else instance.elements

    def query(self, timestamp_millis: float, decay_altitude_km: Optional[float] = None) -> Prediction:
        """Propagate with the closest element set.

        ``decay_altitude_km`` defaults to the threshold the history was built
        with. Raises :class:`~propagate.service.PropagationError` when no set lies
        within the accuracy window.
        """

        with self._lock:
            instance = self._closest(timestamp_millis)
            if instance is None:
                raise PropagationError(
                    f"no element set within {self.accuracy_millis / 86_400_000.0:g} days "
                    f"of {timestamp_millis:.0f}"
                )
            minutes = (timestamp_millis - instance.epoch_millis) / 60_000.0
            if decay_altitude_km is None:
                decay_altitude_km = self.decay_altitude_km
            return propagate(instance.constants, instance.state, minutes,
                             decay_altitude_km=decay_altitude_km)

    def purge(self, start_millis: float, end_millis: float) -> int:
        """Drop sets whose epochs fall outside ``[start, end]`` widened by the window.

        Returns the number of sets removed.
        """

        if end_millis < start_millis:
            raise ValueError("end must not be before start")
        with self._lock:
            lo = bisect.bisect_left(self._epochs, start_millis - self.accuracy_millis)
            hi = bisect.bisect_right(self._epochs, end_millis + self.accuracy_millis)
            removed = len(self._epochs) - (hi - lo)
            self._epochs = self._epochs[lo:hi]
            self._instances = self._instances[lo:hi]
        return removed


__all__ = ["DEFAULT_ACCURACY_MILLIS", "ElementHistory"]
