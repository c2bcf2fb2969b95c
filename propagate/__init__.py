"""Propagation utilities built on top of SGP4."""

from .constants import GravityModel, ModelError, PropagationConstants, derive
from .frames import (
    Frame,
    RENDER_MATRIX,
    RenderFrame,
    StateVector,
    from_render_frame,
    to_render_frame,
    transform_state,
)
from .service import (
    DecayedError,
    NumericalError,
    Prediction,
    PropagationError,
    PropagationResult,
    PropagationSample,
    PropagationState,
    initial_state,
    propagate,
    propagate_range,
)

__all__ = [
    "GravityModel",
    "ModelError",
    "PropagationConstants",
    "derive",
    "Frame",
    "RENDER_MATRIX",
    "RenderFrame",
    "StateVector",
    "from_render_frame",
    "to_render_frame",
    "transform_state",
    "DecayedError",
    "NumericalError",
    "Prediction",
    "PropagationError",
    "PropagationResult",
    "PropagationSample",
    "PropagationState",
    "initial_state",
    "propagate",
    "propagate_range",
]
