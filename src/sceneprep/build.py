"""Build scenes from loose geometry and merge scenes together."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Sequence

from sceneprep import elements as el
from sceneprep.prep import ScenePrep
from sceneprep.status import StatusMap

__all__ = ["make_layer_scene", "make_list_scene", "merge_scenes", "uniquify_scene"]

LOG = logging.getLogger(__name__)

DEFAULT_ELEMENT_PREFIX = "MyElement"

# Element fields holding references to other element ids
REFERENCE_FIELDS = ("entity", "material", "colorMap", "children", "elements")


def _prep(geometry: Any, preparer: Optional[ScenePrep],
          status_map: Optional[StatusMap] = None) -> List[Dict[str, Any]]:
    preparer = preparer if preparer is not None else ScenePrep()
    return preparer.prep(geometry, status_map)


def make_layer_scene(geometry: Any, layer_name: str, element_prefix: Optional[str] = None,
                     preparer: Optional[ScenePrep] = None,
                     status_map: Optional[StatusMap] = None) -> List[Dict[str, Any]]:
    """Wrap every prepped geometry item in an instance on a single visible layer.

    Each item gets a fresh id; instances are labelled ``<prefix><index>``.
    """
    data = _prep(geometry, preparer, status_map)
    prefix = str(element_prefix) if element_prefix else DEFAULT_ELEMENT_PREFIX
    members: List[str] = []
    scene = [el.layer(members, color=el.NO_COLOR, label=layer_name, visible=True)]
    for index, item in enumerate(data):
        item["id"] = el.new_id()
        scene.append(item)
        inst = el.instance(item["id"], label=f"{prefix}{index}")
        scene.append(inst)
        members.append(inst["id"])
    return scene


def make_list_scene(geometry: Any, layer_name: str, element_prefix: Optional[str] = None,
                    preparer: Optional[ScenePrep] = None,
                    status_map: Optional[StatusMap] = None) -> List[Dict[str, Any]]:
    """Put all prepped geometry in one geometryList placed by one instance."""
    data = _prep(geometry, preparer, status_map)
    for item in data:
        item.pop("id", None)
    prefix = str(element_prefix) if element_prefix else DEFAULT_ELEMENT_PREFIX
    items = el.geometry_list(data)
    inst = el.instance(items["id"], label=prefix)
    scene = [el.layer([inst["id"]], color=el.NO_COLOR, label=layer_name, visible=True)]
    scene.append(inst)
    scene.append(items)
    return scene


def _rename(value: Any, id_map: Dict[str, str]) -> Any:
    if isinstance(value, str):
        return id_map.get(value, value)
    if isinstance(value, list):
        return [id_map.get(v, v) if isinstance(v, str) else v for v in value]
    return value


def uniquify_scene(scene: List[Dict[str, Any]], prefix: Optional[str] = None) -> Dict[str, str]:
    """Prefix every id in ``scene`` and the references to it, in place.

    Returns the map from old to new id.
    """
    prefix = prefix if prefix is not None else el.new_id()
    id_map: Dict[str, str] = {}
    for element in scene:
        if isinstance(element.get("id"), str) and element["id"]:
            new = prefix + element["id"]
            id_map[element["id"]] = new
            element["id"] = new
    for element in scene:
        for name in REFERENCE_FIELDS:
            if name in element:
                element[name] = _rename(element[name], id_map)
    return id_map


def merge_scenes(scenes: Sequence[Any], status_map: Optional[StatusMap] = None,
                 preparer: Optional[ScenePrep] = None) -> List[Dict[str, Any]]:
    """Prep each scene and concatenate them with ids made unique per scene."""
    preparer = preparer if preparer is not None else ScenePrep()
    merged: List[Dict[str, Any]] = []
    for scene in scenes:
        if scene is None:
            continue
        copy = preparer.prep(scene, status_map)
        uniquify_scene(copy)
        merged.extend(copy)
    LOG.debug("merged %d scenes into %d elements", len(scenes), len(merged))
    return merged
