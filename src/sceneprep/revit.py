"""Helpers for CAD-tool elements (``revitElement``) carried in scenes."""

from __future__ import annotations

import copy
from typing import Any, Dict, List

__all__ = ["has_geometry", "extract_geom"]

# Keys of a revitElement that are not copied onto its render geometry
_EXCLUDE = ("geometryParameters", "units", "attributes")


def has_geometry(element: Dict[str, Any]) -> bool:
    params = element.get("geometryParameters")
    return isinstance(params, dict) and bool(params.get("geometry"))


def extract_geom(element: Dict[str, Any]) -> List[Dict[str, Any]]:
    """Return the render geometry of a revitElement with its metadata attached.

    Each geometry receives the element's metadata (every key except the
    geometry parameters and units) in its ``attributes``, the element's own
    attributes where the geometry has none, and an id derived from
    ``fluxId``.  The element is not modified.
    """
    if not has_geometry(element):
        return []
    geometry = element["geometryParameters"]["geometry"]
    geoms = geometry if isinstance(geometry, list) else [geometry]
    geoms = [copy.deepcopy(g) for g in geoms if isinstance(g, dict)]

    source_attrs = element.get("attributes")
    flux_id = element.get("fluxId")
    for i, geom in enumerate(geoms):
        if flux_id is not None:
            geom["id"] = str(flux_id) if i == 0 else f"{flux_id}-{i}"
        attrs = geom.get("attributes")
        if not isinstance(attrs, dict):
            attrs = {}
            geom["attributes"] = attrs
        if isinstance(source_attrs, dict):
            for key, value in source_attrs.items():
                attrs.setdefault(key, copy.deepcopy(value))
        for key, value in element.items():
            if key not in _EXCLUDE:
                attrs[key] = copy.deepcopy(value)
    return geoms
