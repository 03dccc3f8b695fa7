"""Scene element vocabulary, constructors and shared helpers."""

from __future__ import annotations

import copy
import uuid
from typing import Any, Dict, Iterable, List, Optional, Sequence

from sceneprep.colors import color_to_array
from sceneprep.errors import ElementError
from sceneprep.revit import has_geometry
from sceneprep.schema import GEOMETRY_SCHEMAS, NON_STANDARD_ENTITIES

__all__ = [
    "LAYER",
    "GROUP",
    "INSTANCE",
    "GEOMETRY_LIST",
    "MATERIAL",
    "TEXTURE",
    "CAMERA",
    "LIGHT",
    "REVIT_ELEMENT",
    "SCENE_PRIMITIVES",
    "CONTAINER_PRIM_MAP",
    "LEGACY_INVERSE_PROPERTIES",
    "NO_COLOR",
    "IDENTITY_MATRIX",
    "new_id",
    "descriptor",
    "instance",
    "group",
    "geometry_list",
    "layer",
    "is_scene",
    "is_geometry",
    "inherited_attributes",
    "merge_attributes",
]

LAYER = "layer"
GROUP = "group"
INSTANCE = "instance"
GEOMETRY_LIST = "geometryList"
MATERIAL = "material"
TEXTURE = "texture"
CAMERA = "camera"
LIGHT = "light"
REVIT_ELEMENT = "revitElement"

SCENE_PRIMITIVES = (LAYER, GROUP, INSTANCE, GEOMETRY_LIST, MATERIAL, TEXTURE, CAMERA, LIGHT)

# Container primitives and the property holding their children
CONTAINER_PRIM_MAP = {
    "polycurve": "curves",
    "polysurface": "surfaces",
}

# Legacy material fields stored as the inverse of the current field
LEGACY_INVERSE_PROPERTIES = {
    "opacity": "transparency",
    "roughness": "glossiness",
}

# Layer colour meaning "no colour set"
NO_COLOR = [1, 1, 1]

IDENTITY_MATRIX = [1, 0, 0, 0, 0, 1, 0, 0, 0, 0, 1, 0, 0, 0, 0, 1]

# Primitives recognized as geometry but not in the entity schema
KNOWN_PRIMITIVES = (REVIT_ELEMENT, LAYER)


def new_id() -> str:
    return str(uuid.uuid4())


def descriptor(element: Dict[str, Any]) -> str:
    """Label used as a StatusMap key: ``primitive`` or ``primitive:id``."""
    label = str(element.get("primitive"))
    if element.get("id"):
        label += f":{element['id']}"
    return label


# ---------------------------------------------------------------------------
# Constructors

def instance(child_id: str, label: Optional[str] = None,
             matrix: Optional[Sequence[float]] = None) -> Dict[str, Any]:
    """Create an instance placing ``child_id`` with an optional transform."""
    if not isinstance(child_id, str):
        raise ElementError("Invalid Id specified for instance child.")
    inst: Dict[str, Any] = {
        "entity": child_id,
        "id": new_id(),
        "matrix": list(IDENTITY_MATRIX),
        "primitive": INSTANCE,
    }
    if isinstance(label, str):
        inst["label"] = label
    if isinstance(matrix, (list, tuple)) and len(matrix) == 16:
        inst["matrix"] = list(matrix)
    return inst


def group(children: List[str], group_id: Optional[str] = None) -> Dict[str, Any]:
    return {
        "primitive": GROUP,
        "id": group_id or new_id(),
        "children": children,
    }


def geometry_list(entities: List[Dict[str, Any]]) -> Dict[str, Any]:
    return {
        "entities": entities,
        "id": new_id(),
        "primitive": GEOMETRY_LIST,
    }


def layer(elements: List[str], color: Any = None, label: Optional[str] = None,
          visible: bool = False) -> Dict[str, Any]:
    """Create a layer referencing ``elements``; a colour name is resolved to RGB."""
    if not isinstance(elements, list):
        raise ElementError("Invalid children array for layer.")
    out: Dict[str, Any] = {
        "elements": elements,
        "id": new_id(),
        "primitive": LAYER,
        "visible": bool(visible),
    }
    if label is not None:
        out["label"] = str(label)
    if color is not None:
        out["color"] = color_to_array(color) if isinstance(color, str) else list(color)
    return out


# ---------------------------------------------------------------------------
# Predicates

def _walk_elements(data: Any) -> Iterable[Dict[str, Any]]:
    if isinstance(data, dict):
        yield data
    elif isinstance(data, (list, tuple)):
        for item in data:
            yield from _walk_elements(item)


def is_scene(data: Any) -> bool:
    """True if any (possibly nested) element is a layer."""
    return any(el.get("primitive") == LAYER for el in _walk_elements(data))


def is_geometry(data: Any, geometry_primitives: Optional[Iterable[str]] = None) -> bool:
    """True if ``data`` holds at least one renderable element."""
    prims = set(KNOWN_PRIMITIVES) | set(NON_STANDARD_ENTITIES)
    prims |= set(GEOMETRY_SCHEMAS if geometry_primitives is None else geometry_primitives)
    for element in _walk_elements(data):
        primitive = element.get("primitive")
        if primitive == REVIT_ELEMENT:
            if has_geometry(element):
                return True
        elif primitive in prims:
            return True
    return False


# ---------------------------------------------------------------------------
# Attribute inheritance

def inherited_attributes(source: Dict[str, Any]) -> Dict[str, Any]:
    """Attributes ``source`` hands down to its children.

    Layers contribute their colour as ``materialProperties.color`` and their
    label as ``layer``.
    """
    attrs = source.get("attributes")
    out = dict(attrs) if isinstance(attrs, dict) else {}
    if source.get("primitive") == LAYER:
        color = source.get("color")
        if color is not None:
            props = out.get("materialProperties")
            props = dict(props) if isinstance(props, dict) else {}
            props.setdefault("color", color)
            out["materialProperties"] = props
        if source.get("label") is not None:
            out.setdefault("layer", source["label"])
    return out


def merge_attributes(source: Dict[str, Any], target: Dict[str, Any]) -> Dict[str, Any]:
    """Return a clone of ``target`` inheriting ``source``'s attributes.

    Keys already on the target win; ``materialProperties`` is merged one
    level deep under the same rule.  Neither argument is modified.
    """
    clone = copy.deepcopy(target)
    extra = inherited_attributes(source)
    if not extra:
        return clone
    attrs = clone.get("attributes")
    if not isinstance(attrs, dict):
        attrs = {}
        clone["attributes"] = attrs
    for key, value in extra.items():
        if key not in attrs:
            attrs[key] = copy.deepcopy(value)
        elif key == "materialProperties" and isinstance(attrs[key], dict) and isinstance(value, dict):
            for prop, prop_value in value.items():
                attrs[key].setdefault(prop, copy.deepcopy(prop_value))
    return clone
