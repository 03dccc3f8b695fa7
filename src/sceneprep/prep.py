"""Clean up raw scene data before validation and flattening.

:func:`prep` takes arbitrary (possibly nested, possibly non-conformant)
scene JSON and returns a new flat list of normalized elements.  Problems
with individual elements never raise: the element is dropped or repaired
and a message is recorded on the :class:`~sceneprep.status.StatusMap`.

The stages run in a fixed order::

    clone -> flatten lists -> layer colours -> revit elements -> containers
    -> colour names -> materials -> nulls -> schema -> triangulate
    -> compact -> units
"""

from __future__ import annotations

import copy
import json
import logging
from collections import deque
from typing import Any, Callable, Dict, List, Optional

from sceneprep import elements as el
from sceneprep.colors import color_to_array
from sceneprep.mesh import triangulate_mesh
from sceneprep.revit import extract_geom
from sceneprep.schema import SchemaValidator, serialize_errors
from sceneprep.status import StatusMap
from sceneprep.units import UnitConverter

__all__ = ["ScenePrep", "prep", "flatten_list", "remove_nulls"]

LOG = logging.getLogger(__name__)

MATERIAL_KEY = "materialProperties"


def flatten_list(data: Any, result: Optional[List[Any]] = None) -> List[Any]:
    """Flatten arbitrarily nested lists into one list, dropping ``None``."""
    if result is None:
        result = []
    if data is None:
        return result
    if isinstance(data, (list, tuple)):
        for item in data:
            flatten_list(item, result)
    else:
        result.append(data)
    return result


def remove_nulls(obj: Any) -> bool:
    """Delete ``None`` values from dicts and lists under ``obj`` in place.

    Returns True if anything was removed.
    """
    changed = False
    if isinstance(obj, dict):
        for key in [k for k, v in obj.items() if v is None]:
            del obj[key]
            changed = True
        for value in obj.values():
            changed = remove_nulls(value) or changed
    elif isinstance(obj, list):
        if any(item is None for item in obj):
            obj[:] = [item for item in obj if item is not None]
            changed = True
        for item in obj:
            changed = remove_nulls(item) or changed
    return changed


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


class ScenePrep:
    """The prep pipeline with its collaborators injected.

    ``converter`` supplies unit conversion, ``schema`` checks elements and
    material properties, and ``color_resolver`` turns colour names into RGB
    triples.  Each defaults to the implementation bundled with sceneprep.

    A ``color_resolver`` signals a name it can not resolve by raising
    ``ValueError``, ``LookupError`` or ``TypeError``; the colour is then
    removed and a warning recorded.  Any other exception propagates.
    """

    def __init__(self, converter: Optional[UnitConverter] = None,
                 schema: Optional[SchemaValidator] = None,
                 color_resolver: Optional[Callable[[str], List[float]]] = None) -> None:
        self.converter = converter if converter is not None else UnitConverter()
        self.schema = schema if schema is not None else SchemaValidator()
        self.color_resolver = color_resolver if color_resolver is not None else color_to_array

    def __call__(self, data: Any, status_map: Optional[StatusMap] = None) -> List[Dict[str, Any]]:
        return self.prep(data, status_map)

    def prep(self, data: Any, status_map: Optional[StatusMap] = None) -> List[Dict[str, Any]]:
        """Return a normalized deep copy of ``data`` as a flat element list."""
        status = status_map if status_map is not None else StatusMap()

        entities = flatten_list(copy.deepcopy(data))
        LOG.debug("prep: %d elements after flattening", len(entities))
        scene = el.is_scene(entities)

        changed = self._clean_layer_colors(entities)
        entities = self._explode_revit(entities, scene)
        entities = self._explode_containers(entities, scene, status)
        LOG.debug("prep: %d elements after explosion", len(entities))

        self._convert_colors(entities, status)
        changed = self._check_materials(entities, status) or changed
        changed = remove_nulls(entities) or changed

        entities, dropped = self._check_schema(entities, status)
        changed = changed or dropped

        for entity in entities:
            if entity.get("primitive") == "mesh":
                triangulate_mesh(entity)

        if changed:
            entities = json.loads(json.dumps(entities))

        self._convert_units(entities, status)
        LOG.debug("prep: %d elements out", len(entities))
        return entities

    # -- stages ----------------------------------------------------------------

    @staticmethod
    def _clean_layer_colors(entities: List[Any]) -> bool:
        changed = False
        for entity in entities:
            if isinstance(entity, dict) and entity.get("primitive") == el.LAYER \
                    and entity.get("color") == el.NO_COLOR:
                del entity["color"]
                changed = True
        return changed

    @staticmethod
    def _replace_in_scene(entities: List[Any], element: Dict[str, Any],
                          children: List[Dict[str, Any]]) -> Dict[str, Any]:
        """Append ``children`` wrapped in instances; return the replacement group."""
        ids = []
        for index, child in enumerate(children):
            child["id"] = f"{element['id']}-child-{index}"
            wrapper = {
                "primitive": el.INSTANCE,
                "id": f"{element['id']}-instance-{index}",
                "entity": child["id"],
            }
            entities.append(child)
            entities.append(wrapper)
            ids.append(wrapper["id"])
        return el.group(ids, element["id"])

    @staticmethod
    def _retarget_instances(entities: List[Any], converted: set) -> None:
        # an instance can not place a group, so the instance becomes a group
        for entity in entities:
            if isinstance(entity, dict) and entity.get("primitive") == el.INSTANCE \
                    and entity.get("entity") in converted:
                entity["primitive"] = el.GROUP
                entity["children"] = [entity.pop("entity")]

    def _explode_revit(self, entities: List[Any], scene: bool) -> List[Any]:
        converted = set()
        out: List[Any] = []
        appended: List[Any] = []
        for entity in entities:
            if not (isinstance(entity, dict) and entity.get("primitive") == el.REVIT_ELEMENT):
                out.append(entity)
                continue
            geoms = extract_geom(entity)
            if entity.get("id") and scene:
                out.append(self._replace_in_scene(appended, entity, geoms))
                converted.add(entity["id"])
            else:
                appended.extend(geoms)
        out.extend(appended)
        self._retarget_instances(out, converted)
        return out

    def _explode_containers(self, entities: List[Any], scene: bool,
                            status: StatusMap) -> List[Any]:
        converted = set()
        out: List[Any] = []
        # spliced children are queued too, so nested containers are exploded
        queue = deque(entities)
        while queue:
            entity = queue.popleft()
            if not isinstance(entity, dict):
                out.append(entity)
                continue
            primitive = entity.get("primitive")
            if primitive == el.GEOMETRY_LIST and isinstance(entity.get("entities"), list):
                entity["entities"] = self._prep_list_items(entity["entities"], status)
                out.append(entity)
                continue
            member = el.CONTAINER_PRIM_MAP.get(primitive)
            if member is None:
                out.append(entity)
                continue
            children = [c for c in entity.get(member) or [] if isinstance(c, dict)]
            if entity.get("id") and scene:
                out.append(self._replace_in_scene(queue, entity, children))
                converted.add(entity["id"])
            else:
                self.converter.convert_units(entity, status)
                attrs = entity.get("attributes")
                for child in children:
                    if isinstance(attrs, dict):
                        child_attrs = child.setdefault("attributes", {})
                        for key, value in attrs.items():
                            child_attrs.setdefault(key, copy.deepcopy(value))
                    queue.append(child)
        self._retarget_instances(out, converted)
        return out

    def _prep_list_items(self, items: List[Any], status: StatusMap) -> List[Dict[str, Any]]:
        # ids inside a geometryList would collide with the scene namespace
        prepped = self.prep(items, status)
        for item in prepped:
            item.pop("id", None)
        return prepped

    def _convert_colors(self, obj: Any, status: StatusMap) -> None:
        if isinstance(obj, dict):
            for key in list(obj):
                value = obj[key]
                if key == "color" and isinstance(value, str):
                    try:
                        obj[key] = self.color_resolver(value)
                    except (ValueError, LookupError, TypeError):
                        owner = el.descriptor(obj) if "primitive" in obj else key
                        LOG.warning("%s: unknown colour %r removed", owner, value)
                        status.append_warning(owner, f"Unknown color '{value}'")
                        del obj[key]
                else:
                    self._convert_colors(value, status)
        elif isinstance(obj, list):
            for item in obj:
                self._convert_colors(item, status)

    def _check_materials(self, obj: Any, status: StatusMap) -> bool:
        changed = False
        if isinstance(obj, dict):
            for key in list(obj):
                value = obj[key]
                if key == MATERIAL_KEY and value is not None:
                    changed = self._fix_material(obj, value, status) or changed
                else:
                    changed = self._check_materials(value, status) or changed
        elif isinstance(obj, list):
            for item in obj:
                changed = self._check_materials(item, status) or changed
        return changed

    def _fix_material(self, owner: Dict[str, Any], props: Any,
                      status: StatusMap) -> bool:
        changed = False
        problems = []
        for legacy, current in el.LEGACY_INVERSE_PROPERTIES.items():
            if not isinstance(props, dict) or legacy not in props:
                continue
            value = props.pop(legacy)
            changed = True
            if _is_number(value):
                props[current] = 1 - value
            elif value is not None:
                problems.append(f"/{legacy}: Expected number")
        report = self.schema.check_material(props)
        if not report.valid:
            problems.append(serialize_errors(report.errors))
        if problems:
            message = ", ".join(problems)
            LOG.warning("invalid materialProperties replaced: %s", message)
            status.append_error(MATERIAL_KEY, message)
            owner[MATERIAL_KEY] = {}
            changed = True
        return changed

    def _check_schema(self, entities: List[Any], status: StatusMap):
        kept: List[Dict[str, Any]] = []
        dropped = False
        for entity in entities:
            if not isinstance(entity, dict) or not isinstance(entity.get("primitive"), str):
                LOG.warning("dropping element without a primitive: %r", entity)
                status.append_error("element", "Element has no primitive")
                dropped = True
                continue
            key = el.descriptor(entity)
            report = self.schema.validate(entity["primitive"], entity)
            if report.valid:
                kept.append(entity)
                continue
            message = serialize_errors(report.errors)
            LOG.warning("dropping %s: %s", key, message)
            status.append_error(key, message)
            dropped = True
        return kept, dropped

    def _convert_units(self, obj: Any, status: StatusMap) -> None:
        if isinstance(obj, dict):
            if "primitive" not in obj:
                for value in obj.values():
                    self._convert_units(value, status)
                return
            self.converter.convert_units(obj, status)
            primitive = obj["primitive"]
            member = el.CONTAINER_PRIM_MAP.get(primitive)
            if member is not None:
                self._convert_units(obj.get(member), status)
            elif primitive == el.REVIT_ELEMENT:
                params = obj.get("geometryParameters")
                if isinstance(params, dict):
                    self._convert_units(params.get("geometry"), status)
        elif isinstance(obj, list):
            for item in obj:
                self._convert_units(item, status)


def prep(data: Any, status_map: Optional[StatusMap] = None, **services) -> List[Dict[str, Any]]:
    """Normalize ``data`` with a :class:`ScenePrep` built from ``services``.

    ``services`` are passed to :class:`ScenePrep` (``converter``, ``schema``,
    ``color_resolver``).
    """
    return ScenePrep(**services).prep(data, status_map)
