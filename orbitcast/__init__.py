"""orbitcast: SGP4 element parsing, propagation and render-frame output.

The element parser, configuration and logging live here; constants
derivation and the propagator are in :mod:`propagate`, and the object
registry in :mod:`registry`.
"""

from .config import EngineConfig, load_config
from .elements import (
    ElementSet,
    ParseError,
    checksum,
    compute_checksum,
    epoch,
    iter_records,
    parse,
    parse_catalog,
)
from .logging import configure_logging, get_logger, log_context

__version__ = "0.1.0"

__all__ = [
    "EngineConfig",
    "load_config",
    "ElementSet",
    "ParseError",
    "checksum",
    "compute_checksum",
    "epoch",
    "iter_records",
    "parse",
    "parse_catalog",
    "configure_logging",
    "get_logger",
    "log_context",
]
