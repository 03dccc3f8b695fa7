"""Resolve a scene graph into flat lists of leaf entities and transforms."""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from sceneprep import elements as el
from sceneprep import xform
from sceneprep.errors import FlattenError
from sceneprep.prep import ScenePrep
from sceneprep.status import StatusMap
from sceneprep.validator import Validator

__all__ = ["FlattenResult", "Flattener", "flatten"]

LOG = logging.getLogger(__name__)

# Material fields copied onto the leaf's materialProperties
VISUAL_MATERIAL_FIELDS = (
    "color",
    "reflectivity",
    "glossiness",
    "transparency",
    "transparencyIOR",
    "emissionColor",
    "transparencyColor",
    "reflectivityColor",
)


@dataclass
class FlattenResult:
    """Index-aligned render lists; ``transforms[i]`` places ``entities[i]``."""

    entities: List[Dict[str, Any]] = field(default_factory=list)
    transforms: List[Optional[List[float]]] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.entities)

    def pairs(self):
        return list(zip(self.entities, self.transforms))


def _merge_material(material: Dict[str, Any], target: Dict[str, Any]) -> Dict[str, Any]:
    clone = copy.deepcopy(target)
    attrs = clone.setdefault("attributes", {})
    props = attrs.get("materialProperties")
    if not isinstance(props, dict):
        props = {}
        attrs["materialProperties"] = props
    for name in VISUAL_MATERIAL_FIELDS:
        if name in material:
            props.setdefault(name, copy.deepcopy(material[name]))
    return clone


class Flattener:
    """Turn a raw scene into a :class:`FlattenResult`.

    The scene is always re-prepped and re-validated first; a scene that does
    not validate raises :class:`~sceneprep.errors.FlattenError`.
    """

    def __init__(self, prep: Optional[ScenePrep] = None,
                 validator: Optional[Validator] = None) -> None:
        self.prep = prep if prep is not None else ScenePrep()
        self.validator = validator if validator is not None else Validator()
        self._index: Dict[str, Dict[str, Any]] = {}

    def flatten(self, raw: Any) -> FlattenResult:
        status = StatusMap()
        scene = self.prep.prep(raw, status)
        result = self.validator.validate_json(scene)
        if not result.valid:
            summary = status.invalid_key_summary()
            message = " ".join(m for m in (summary, result.message) if m)
            raise FlattenError(message, status=status, result=result)

        self._index = {node["id"]: node for node in scene if isinstance(node.get("id"), str)}
        out = FlattenResult()
        for node in scene:
            if node.get("primitive") != el.LAYER:
                continue
            for ref in node.get("elements", []):
                child = el.merge_attributes(node, self._index[ref])
                if child["primitive"] == el.GROUP:
                    leaves = self._flatten_group(child)
                else:
                    leaves = [child]
                for leaf in leaves:
                    self._emit(leaf, out)
        LOG.debug("flatten: %d entities", len(out))
        return out

    def _flatten_group(self, group: Dict[str, Any]) -> List[Dict[str, Any]]:
        """Return the instances under ``group`` with world matrices applied."""
        leaves: List[Dict[str, Any]] = []
        parent_matrix = group.get("matrix")
        for ref in group.get("children", []):
            child = el.merge_attributes(group, self._index[ref])
            if xform.is_matrix16(parent_matrix):
                if xform.is_matrix16(child.get("matrix")):
                    child["matrix"] = xform.multiply(parent_matrix, child["matrix"])
                else:
                    child["matrix"] = list(parent_matrix)
            if child["primitive"] == el.GROUP:
                leaves.extend(self._flatten_group(child))
            else:
                leaves.append(child)
        return leaves

    def _emit(self, instance: Dict[str, Any], out: FlattenResult) -> None:
        target = self._index[instance["entity"]]
        # the entity's own material wins over the instance's material reference,
        # which wins over anything inherited from groups and layers
        material = self._index.get(instance.get("material"))
        if material is not None:
            target = _merge_material(material, target)

        matrix = instance.get("matrix")
        matrix = list(matrix) if matrix is not None else None
        if target["primitive"] == el.GEOMETRY_LIST:
            for item in target.get("entities", []):
                entity = el.merge_attributes(instance, el.merge_attributes(target, item))
                entity.pop("id", None)
                out.entities.append(entity)
                out.transforms.append(list(matrix) if matrix is not None else None)
        else:
            entity = el.merge_attributes(instance, target)
            entity.pop("id", None)
            out.entities.append(entity)
            out.transforms.append(matrix)


def flatten(scene: Any, **kwargs) -> FlattenResult:
    """Flatten ``scene`` with a default :class:`Flattener`."""
    return Flattener(**kwargs).flatten(scene)
