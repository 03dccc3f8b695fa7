"""Structural validation of prepped scenes.

:meth:`Validator.validate_json` checks id uniqueness, that every reference
resolves to an element of an allowed primitive, the per-primitive semantic
rules and finally that the group graph has no cycles.  The first failure
wins and is returned, never raised.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Set

from sceneprep import elements as el
from sceneprep.schema import GEOMETRY_SCHEMAS, NON_STANDARD_ENTITIES

__all__ = ["Validator", "ValidatorResult"]

LOG = logging.getLogger(__name__)

# Primitives an instance may place besides geometry
INSTANCEABLE = (el.GEOMETRY_LIST, el.TEXTURE, el.CAMERA, el.LIGHT)

# Primitives allowed under groups and layers
TREE_NODES = (el.GROUP, el.INSTANCE)

_PROCESSING = 1
_DONE = 2


@dataclass
class ValidatorResult:
    """Verdict of :meth:`Validator.validate_json`; ``message`` is empty when valid."""

    valid: bool
    message: str = ""

    def __bool__(self) -> bool:
        return self.valid


def _ok() -> ValidatorResult:
    return ValidatorResult(True)


def _error(message: str) -> ValidatorResult:
    LOG.debug("scene invalid: %s", message)
    return ValidatorResult(False, message)


def _invalid_id(ref: Any) -> ValidatorResult:
    return _error(f"No element found with ID={ref}")


def _primitive_error() -> ValidatorResult:
    return _error("Element referenced by ID has no primitive attribute")


def is_acyclic(groups: Dict[str, Dict[str, Any]]) -> bool:
    """True if no group is (transitively) its own child.

    Iterative depth first search with an explicit stack; ``groups`` maps id
    to group element and only children that are themselves groups count.
    """
    stack: List[str] = list(groups)
    parent: Dict[str, str] = {}
    state: Dict[str, int] = {}

    def group_children(gid: str) -> List[str]:
        return [c for c in groups[gid].get("children", []) if c in groups]

    while stack:
        gid = stack.pop()
        if state.get(gid) == _DONE:
            continue
        if state.get(gid) == _PROCESSING:
            return False
        state[gid] = _PROCESSING

        pending = 0
        for child in group_children(gid):
            if state.get(child) != _DONE:
                stack.append(child)
                parent[child] = gid
                pending += 1
        if pending:
            continue

        # walk up while every group child of the node is finished
        done: Optional[str] = gid
        while done is not None and state.get(done) == _PROCESSING:
            if any(state.get(c) != _DONE for c in group_children(done)):
                break
            state[done] = _DONE
            done = parent.get(done)
    return True


class Validator:
    """Decide whether a prepped scene is structurally valid."""

    def __init__(self, geometry_primitives: Optional[Iterable[str]] = None) -> None:
        prims = GEOMETRY_SCHEMAS if geometry_primitives is None else geometry_primitives
        self.geometry_primitives: Set[str] = set(prims) | set(NON_STANDARD_ENTITIES)
        self.used_instance_ids: Set[str] = set()
        self._index: Dict[str, Dict[str, Any]] = {}

    def validate_json(self, scene: Any) -> ValidatorResult:
        """Return the first structural problem found in ``scene``, if any."""
        self.used_instance_ids = set()
        self._index = {}

        if not isinstance(scene, list) or not el.is_scene(scene):
            return _error("The element is not a scene")
        nodes = [node for node in scene if isinstance(node, dict)]

        result = self.cache_ids(nodes)
        if not result:
            return result

        groups: Dict[str, Dict[str, Any]] = {}
        layer_count = 0
        for node in nodes:
            primitive = node.get("primitive")
            if primitive == el.INSTANCE:
                result = self._validate_instance(node)
            elif primitive == el.MATERIAL:
                result = self._validate_material(node)
            elif primitive == el.GROUP:
                result = self._validate_group(node)
                if result and isinstance(node.get("id"), str):
                    groups[node["id"]] = node
            elif primitive == el.LAYER:
                result = self._validate_layer(node)
                layer_count += 1
            elif primitive == el.CAMERA:
                result = self._validate_camera(node)
            elif primitive == el.LIGHT:
                result = self._validate_light(node)
            else:
                continue
            if not result:
                return result

        if layer_count < 1:
            return _error("Scene has no valid layers")
        if not is_acyclic(groups):
            return _error("Cycle found in groups")
        return _ok()

    def cache_ids(self, nodes: List[Dict[str, Any]]) -> ValidatorResult:
        """Index elements by id; fail on the first duplicate."""
        for node in nodes:
            node_id = node.get("id")
            if not isinstance(node_id, str):
                continue
            if node_id in self._index:
                return _error(f"The id {node_id} is not unique")
            self._index[node_id] = node
        return _ok()

    def _lookup(self, ref: Any):
        node = self._index.get(ref) if isinstance(ref, str) else None
        if node is None:
            return None, _invalid_id(ref)
        if not node.get("primitive"):
            return None, _primitive_error()
        return node, None

    def _validate_child(self, node: Dict[str, Any], parent: Dict[str, Any],
                        kind: str) -> ValidatorResult:
        if node.get("id") == parent.get("id"):
            return _error(f"Node {node.get('id')} has ID equal to parent ID")
        if node["primitive"] not in TREE_NODES:
            return _error(f"{kind} can only contain instances or groups: "
                          f"{node.get('id')} has primitive {node['primitive']}")
        return _ok()

    def _validate_instance(self, instance: Dict[str, Any]) -> ValidatorResult:
        node, failure = self._lookup(instance.get("entity"))
        if failure:
            return failure
        if node.get("id") == instance.get("id"):
            return _error(f"Node {node.get('id')} has ID equal to parent ID")
        primitive = node["primitive"]
        if primitive not in self.geometry_primitives and primitive not in INSTANCEABLE:
            return _error(f"Instance {instance.get('id')} references {node.get('id')} "
                          f"with primitive {primitive} which can not be instanced")
        if "material" in instance:
            material, failure = self._lookup(instance["material"])
            if failure:
                return failure
            if material["primitive"] != el.MATERIAL:
                return _error(f"Instance {instance.get('id')} material {material.get('id')} "
                              f"has primitive {material['primitive']}")
        return _ok()

    def _validate_material(self, material: Dict[str, Any]) -> ValidatorResult:
        if "colorMap" not in material:
            return _ok()
        node, failure = self._lookup(material["colorMap"])
        if failure:
            return failure
        if node["primitive"] not in (el.INSTANCE, el.TEXTURE):
            return _error(f"Material {material.get('id')} colorMap must reference an "
                          f"instance or texture: {node.get('id')} has primitive {node['primitive']}")
        return _ok()

    def _validate_group(self, group: Dict[str, Any]) -> ValidatorResult:
        children = group.get("children")
        if not isinstance(children, list):
            return _error("Group must have array of children")
        for ref in children:
            node, failure = self._lookup(ref)
            if failure:
                return failure
            result = self._validate_child(node, group, "Group")
            if not result:
                return result
            if node["primitive"] == el.INSTANCE:
                if node["id"] in self.used_instance_ids:
                    return _error(f"Instance with id = {node['id']} is referenced more than once")
                self.used_instance_ids.add(node["id"])
        return _ok()

    def _validate_layer(self, layer: Dict[str, Any]) -> ValidatorResult:
        elements = layer.get("elements")
        if not isinstance(elements, list):
            return _error("Layer must have array of elements")
        for ref in elements:
            node, failure = self._lookup(ref)
            if failure:
                return failure
            result = self._validate_child(node, layer, "Layer")
            if not result:
                return result
        return _ok()

    @staticmethod
    def _validate_camera(camera: Dict[str, Any]) -> ValidatorResult:
        if camera.get("type") == "orthographic" and "focalLength" in camera:
            return _error(f"Orthographic camera {camera.get('id')} can not have a focalLength")
        return _ok()

    @staticmethod
    def _validate_light(light: Dict[str, Any]) -> ValidatorResult:
        if "coneAngle" in light and light.get("type") != "spot":
            return _error(f"Light {light.get('id')} can only have a coneAngle when its type is spot")
        return _ok()
