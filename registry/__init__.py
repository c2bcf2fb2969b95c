"""Caller-populated registry of tracked objects."""

from .history import ElementHistory
from .store import (
    DuplicateIdError,
    InvalidElementsError,
    ObjectEntry,
    Registry,
    RegistryError,
    UnknownIdError,
    create_vector_array,
)

__all__ = [
    "DuplicateIdError",
    "ElementHistory",
    "InvalidElementsError",
    "ObjectEntry",
    "Registry",
    "RegistryError",
    "UnknownIdError",
    "create_vector_array",
]
