"""Schema checking for scene elements and material properties.

This module is the default schema-checking collaborator used by
:mod:`sceneprep.prep`.  Any object exposing ``validate(primitive, element)``
and ``check_material(props)`` returning a :class:`ValidationReport` can be
injected instead.

Schema Version: scene-entity-schema-v0.1
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Union

__all__ = [
    "SchemaError",
    "ValidationReport",
    "SchemaValidator",
    "GEOMETRY_SCHEMAS",
    "SCENE_SCHEMAS",
    "MATERIAL_PROPERTIES_SCHEMA",
    "NON_STANDARD_ENTITIES",
    "serialize_errors",
]


@dataclass
class SchemaError:
    """Represents a schema validation error."""

    path: str
    message: str

    def __str__(self) -> str:
        if self.path:
            return f"{self.path}: {self.message}"
        return self.message


@dataclass
class ValidationReport:
    """Result of checking one element against its schema."""

    valid: bool
    errors: List[SchemaError] = field(default_factory=list)
    schema_version: str = "scene-entity-schema-v0.1"

    def __bool__(self) -> bool:
        return self.valid

    def __str__(self) -> str:
        if self.valid:
            return "Schema validation passed"
        return serialize_errors(self.errors)


def serialize_errors(errors: Sequence[SchemaError]) -> str:
    """Join errors into the single message recorded on a StatusMap."""
    return ", ".join(str(err) for err in errors)


# -----------------------------------------------------------------------------
# Schema Definitions
# -----------------------------------------------------------------------------

# Renderable entities outside the entity schema; never schema checked
NON_STANDARD_ENTITIES = ("stl", "obj", "text")

Kind = Union[str, Tuple[str, Tuple[str, ...]]]

_COMMON: Dict[str, Kind] = {
    "id": "string",
    "primitive": "string",
    "attributes": "object",
    "units": "units",
}


def _schema(required: Sequence[str], properties: Mapping[str, Kind],
            additional: bool = True) -> Dict[str, Any]:
    props = dict(_COMMON)
    props.update(properties)
    return {"required": tuple(required), "properties": props, "additional": additional}


GEOMETRY_SCHEMAS: Dict[str, Dict[str, Any]] = {
    "brep": _schema(["content", "format"], {
        "content": "string",
        "format": ("enum", ("x_b", "x_t", "iges", "step", "sat", "sab", "stl", "3dm")),
        "isCompressed": "boolean",
        "isBase64": "boolean",
    }),
    "vector": _schema(["coords"], {"coords": "position"}),
    "point": _schema(["point"], {"point": "position"}),
    "plane": _schema(["origin", "normal"], {"origin": "position", "normal": "position"}),
    "line": _schema(["start", "end"], {"start": "position", "end": "position"}),
    "polyline": _schema(["points"], {"points": "polyline_points"}),
    "circle": _schema(["origin", "radius"], {
        "origin": "position", "radius": "distance_nonzero", "axis": "position",
    }),
    "ellipse": _schema(["origin", "majorRadius", "minorRadius"], {
        "origin": "position",
        "majorRadius": "distance_nonzero",
        "minorRadius": "distance_nonzero",
        "axis": "position",
        "reference": "position",
    }),
    "curve": _schema(["degree", "controlPoints", "knots"], {
        "degree": "index_nonzero",
        "controlPoints": "positions",
        "knots": "numbers",
        "weights": "numbers",
    }),
    "arc": _schema(["start", "middle", "end"], {
        "start": "position", "middle": "position", "end": "position",
    }),
    "rectangle": _schema(["origin", "dimensions"], {
        "origin": "position",
        "dimensions": "dimensions2",
        "axis": "position",
        "reference": "position",
    }),
    "polycurve": _schema(["curves"], {"curves": "curves"}),
    "surface": _schema(["uDegree", "vDegree", "uKnots", "vKnots", "controlPoints"], {
        "uDegree": "index_nonzero",
        "vDegree": "index_nonzero",
        "uKnots": "numbers",
        "vKnots": "numbers",
        "controlPoints": "position_grid",
        "weights": "numbers",
    }),
    "polysurface": _schema(["surfaces"], {"surfaces": "surfaces"}),
    "block": _schema(["origin", "dimensions"], {
        "origin": "position",
        "dimensions": "dimensions3",
        "axis": "position",
        "reference": "position",
    }),
    "sphere": _schema(["origin", "radius"], {"origin": "position", "radius": "distance_nonzero"}),
    "mesh": _schema(["vertices", "faces"], {
        "vertices": "positions",
        "faces": "faces",
        "color": "colors",
        "normal": "positions",
        "uv": "uvs",
        "isSolid": "boolean",
    }),
}

SCENE_SCHEMAS: Dict[str, Dict[str, Any]] = {
    "instance": _schema(["id", "entity"], {
        "matrix": "matrix",
        "label": "string",
        "material": "string",
        "entity": "string",
    }, additional=False),
    "geometryList": _schema(["id", "entities"], {"entities": "array"}, additional=False),
    "group": _schema(["id", "children"], {
        "matrix": "matrix",
        "label": "string",
        "material": "string",
        "children": "ids",
    }),
    "layer": _schema(["id", "elements"], {
        "label": "string",
        "color": "color",
        "visible": "boolean",
        "elements": "ids",
    }, additional=False),
    "camera": _schema(["id", "type"], {
        "type": ("enum", ("orthographic", "perspective")),
        "nearClip": "distance",
        "farClip": "distance",
        "focalLength": "distance",
    }, additional=False),
    "light": _schema(["id", "type"], {
        "type": ("enum", ("point", "directional", "spot")),
        "color": "color",
        "intensity": "number",
        "coneAngle": "number",
    }, additional=False),
    "material": _schema(["id"], {
        "color": "color",
        "colorMap": "string",
        "reflectivity": "unit_number",
        "glossiness": "unit_number",
        "transparency": "unit_number",
        "transparencyIOR": "distance",
        "emissionColor": "color",
        "transparencyColor": "color",
        "reflectivityColor": "color",
    }, additional=False),
    "texture": _schema(["id", "image"], {"image": "string"}, additional=False),
    "revitElement": _schema([], {
        "fluxId": "string",
        "familyInfo": "object",
        "geometryParameters": "object",
        "instanceParameters": "object",
        "typeParameters": "object",
        "customParameters": "object",
    }),
}

MATERIAL_PROPERTIES_SCHEMA: Dict[str, Kind] = {
    "color": "color",
    "reflectivity": "unit_number",
    "glossiness": "unit_number",
    "transparency": "unit_number",
    "transparencyIOR": "distance",
    "emissionColor": "color",
    "transparencyColor": "color",
    "reflectivityColor": "color",
}

_CURVE_PRIMITIVES = ("line", "polyline", "curve", "arc")


# -----------------------------------------------------------------------------
# Type checks
# -----------------------------------------------------------------------------


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _is_numbers(value: Any, size: Optional[int] = None) -> bool:
    if not isinstance(value, list):
        return False
    if size is not None and len(value) != size:
        return False
    return all(_is_number(v) for v in value)


def _is_index(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value >= 0


_SIMPLE_CHECKS = {
    "string": (lambda v: isinstance(v, str), "Expected string"),
    "number": (_is_number, "Expected number"),
    "boolean": (lambda v: isinstance(v, bool), "Expected boolean"),
    "object": (lambda v: isinstance(v, dict), "Expected object"),
    "array": (lambda v: isinstance(v, list), "Expected array"),
    "position": (lambda v: _is_numbers(v, 3), "Expected array of 3 numbers"),
    "color": (lambda v: _is_numbers(v, 3), "Expected [r, g, b] array of 3 numbers"),
    "matrix": (lambda v: _is_numbers(v, 16), "Expected array of 16 numbers"),
    "numbers": (lambda v: _is_numbers(v), "Expected array of numbers"),
    "distance": (lambda v: _is_number(v) and v >= 0, "Expected number >= 0"),
    "distance_nonzero": (lambda v: _is_number(v) and v > 0, "Expected number > 0"),
    "unit_number": (lambda v: _is_number(v) and 0 <= v <= 1, "Expected number in [0, 1]"),
    "index_nonzero": (lambda v: _is_index(v) and v > 0, "Expected integer > 0"),
    "units": (
        lambda v: isinstance(v, dict) and all(isinstance(u, str) for u in v.values()),
        "Expected mapping of path to unit name",
    ),
    "ids": (
        lambda v: isinstance(v, list) and all(isinstance(i, str) for i in v),
        "Expected array of id strings",
    ),
    "positions": (
        lambda v: isinstance(v, list) and all(_is_numbers(p, 3) for p in v),
        "Expected array of 3-number positions",
    ),
    "polyline_points": (
        lambda v: isinstance(v, list) and len(v) >= 2 and all(_is_numbers(p, 3) for p in v),
        "Expected at least 2 positions",
    ),
    "position_grid": (
        lambda v: isinstance(v, list)
        and all(isinstance(row, list) and all(_is_numbers(p, 3) for p in row) for row in v),
        "Expected array of arrays of positions",
    ),
    "colors": (
        lambda v: isinstance(v, list) and all(_is_numbers(c, 3) for c in v),
        "Expected array of [r, g, b] colors",
    ),
    "uvs": (
        lambda v: isinstance(v, list) and all(_is_numbers(c, 2) for c in v),
        "Expected array of [u, v] pairs",
    ),
    "faces": (
        lambda v: isinstance(v, list)
        and all(isinstance(f, list) and len(f) >= 3 and all(_is_index(i) for i in f) for f in v),
        "Expected array of faces with at least 3 vertex indices",
    ),
    "dimensions2": (
        lambda v: _is_numbers(v, 2) and all(d > 0 for d in v),
        "Expected 2 positive numbers",
    ),
    "dimensions3": (
        lambda v: _is_numbers(v, 3) and all(d > 0 for d in v),
        "Expected 3 positive numbers",
    ),
}


class SchemaValidator:
    """Check elements against the built-in entity and scene schemas."""

    def __init__(self, geometry: Optional[Mapping[str, Dict[str, Any]]] = None,
                 scene: Optional[Mapping[str, Dict[str, Any]]] = None) -> None:
        self.geometry = dict(GEOMETRY_SCHEMAS if geometry is None else geometry)
        self.scene = dict(SCENE_SCHEMAS if scene is None else scene)

    def geometry_primitives(self) -> Tuple[str, ...]:
        return tuple(self.geometry) + NON_STANDARD_ENTITIES

    def knows(self, primitive: str) -> bool:
        return primitive in self.geometry or primitive in self.scene

    def validate(self, primitive: str, element: Any) -> ValidationReport:
        """Return a report for ``element`` checked against ``primitive``'s schema."""
        if primitive in NON_STANDARD_ENTITIES:
            return ValidationReport(valid=True)
        schema = self.geometry.get(primitive) or self.scene.get(primitive)
        if schema is None:
            return ValidationReport(valid=False, errors=[SchemaError("", "Unknown primitive type.")])
        errors: List[SchemaError] = []
        self._check(element, schema, primitive, "", errors)
        return ValidationReport(valid=not errors, errors=errors)

    def check_material(self, props: Any) -> ValidationReport:
        errors: List[SchemaError] = []
        if not isinstance(props, dict):
            errors.append(SchemaError("", f"Expected object, got {type(props).__name__}"))
        else:
            for name, kind in MATERIAL_PROPERTIES_SCHEMA.items():
                if name in props:
                    self._check_value(props[name], kind, f"/{name}", errors)
        return ValidationReport(valid=not errors, errors=errors)

    def _check(self, element: Any, schema: Dict[str, Any], primitive: str,
               path: str, errors: List[SchemaError]) -> None:
        if not isinstance(element, dict):
            errors.append(SchemaError(path, f"Expected object, got {type(element).__name__}"))
            return
        if element.get("primitive") != primitive:
            errors.append(SchemaError(f"{path}/primitive", f"should be equal to '{primitive}'"))
        for name in schema["required"]:
            if name not in element:
                errors.append(SchemaError(path, f"should have required property '{name}'"))
        props = schema["properties"]
        for name, value in element.items():
            kind = props.get(name)
            if kind is None:
                if not schema["additional"]:
                    errors.append(SchemaError(path, f"should NOT have additional property '{name}'"))
                continue
            self._check_value(value, kind, f"{path}/{name}", errors)

    def _check_value(self, value: Any, kind: Kind, path: str, errors: List[SchemaError]) -> None:
        if isinstance(kind, tuple):
            _, allowed = kind
            if value not in allowed:
                errors.append(SchemaError(path, f"should be one of: {', '.join(allowed)}"))
            return
        if kind == "curves":
            self._check_members(value, _CURVE_PRIMITIVES, path, errors)
            return
        if kind == "surfaces":
            self._check_members(value, ("surface",), path, errors)
            return
        check, message = _SIMPLE_CHECKS[kind]
        if not check(value):
            errors.append(SchemaError(path, message))

    def _check_members(self, value: Any, allowed: Sequence[str], path: str,
                       errors: List[SchemaError]) -> None:
        if not isinstance(value, list) or not value:
            errors.append(SchemaError(path, "Expected non-empty array"))
            return
        for index, item in enumerate(value):
            item_path = f"{path}/{index}"
            primitive = item.get("primitive") if isinstance(item, dict) else None
            if primitive not in allowed:
                errors.append(SchemaError(item_path, f"should be one of: {', '.join(allowed)}"))
                continue
            self._check(item, self.geometry[primitive], primitive, item_path, errors)
