"""Unit registry and converter used to normalize scene lengths to meters."""

from __future__ import annotations

from .converter import UnitConverter, scale_value
from .registry import (
    DEFAULT_UNITS,
    SCENEPREP_UNIT_DATA,
    UnitRegistry,
    clear_cache,
    load_unit_table,
)

__all__ = [
    "DEFAULT_UNITS",
    "SCENEPREP_UNIT_DATA",
    "UnitConverter",
    "UnitRegistry",
    "clear_cache",
    "load_unit_table",
    "scale_value",
]
