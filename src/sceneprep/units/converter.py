"""Convert the unit-tagged fields of an element to the default base unit."""

from __future__ import annotations

import logging
from typing import Any, Optional

from jsonpointer import EndOfList, JsonPointer, JsonPointerException

from sceneprep.elements import descriptor
from sceneprep.status import StatusMap
from sceneprep.units.registry import DEFAULT_UNITS, UnitRegistry

__all__ = ["UnitConverter", "scale_value", "unit_pointer"]

LOG = logging.getLogger(__name__)

_MISSING = object()


def unit_pointer(path: str) -> JsonPointer:
    """Return the :class:`JsonPointer` for a ``units`` key; the leading slash is optional."""
    path = str(path)
    if not path.startswith("/"):
        path = "/" + path
    return JsonPointer(path)


def _has_number(value: Any) -> bool:
    if isinstance(value, bool):
        return False
    if isinstance(value, (int, float)):
        return True
    if isinstance(value, (list, tuple)):
        return any(_has_number(item) for item in value)
    return False


def scale_value(value: Any, factor: float) -> Any:
    """Multiply numbers by ``factor``, recursing element-wise into lists.

    Anything that is not a number or a list is returned unchanged.
    """
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value * factor
    if isinstance(value, (list, tuple)):
        return [scale_value(item, factor) for item in value]
    return value


class UnitConverter:
    """Rewrite ``element['units']`` declared fields into ``default_units``."""

    def __init__(self, registry: Optional[UnitRegistry] = None,
                 default_units: str = DEFAULT_UNITS) -> None:
        self.registry = registry if registry is not None else UnitRegistry.standard()
        self.default_units = default_units

    def factor(self, from_unit: str, to_unit: str) -> Optional[float]:
        return self.registry.factor(from_unit, to_unit)

    def convert_units(self, element: dict, status: Optional[StatusMap] = None) -> bool:
        """Convert every unit-tagged value of ``element`` in place.

        Missing paths, null or non-numeric values and unresolvable unit names
        are skipped and keep their declared unit; when ``status`` is given the
        skip is recorded as a warning.  Returns True if any value was rewritten.
        """
        units = element.get("units") if isinstance(element, dict) else None
        if not isinstance(units, dict):
            return False

        key = descriptor(element)
        changed = False
        for unit_path, unit_name in list(units.items()):
            try:
                pointer = unit_pointer(unit_path)
                value = pointer.resolve(element, _MISSING)
            except JsonPointerException:
                value = _MISSING
            if value is _MISSING or isinstance(value, EndOfList):
                self._skip(status, key, f"Invalid unit path {unit_path}")
                continue
            if value is None:
                continue
            if not isinstance(unit_name, str):
                self._skip(status, key, f"Invalid unit measure for {unit_path}")
                continue
            factor = self.factor(unit_name, self.default_units)
            if factor is None:
                self._skip(status, key, f"Unknown units '{unit_name}' for {unit_path}")
                continue
            if not _has_number(value):
                self._skip(status, key, f"Non-numeric value for {unit_path}")
                continue
            pointer.set(element, scale_value(value, factor))
            units[unit_path] = self.default_units
            changed = True
        return changed

    @staticmethod
    def _skip(status: Optional[StatusMap], key: str, message: str) -> None:
        LOG.warning("%s: %s; value left unconverted", key, message)
        if status is not None:
            status.append_warning(key, message)

