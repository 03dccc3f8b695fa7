# -*- coding: utf-8 -*-
"""Scene normalization, validation and flattening for JSON CAD/BIM scenes."""

from importlib.metadata import PackageNotFoundError, version

from .errors import ElementError, FlattenError, SceneError, UnitDataError
from .status import StatusMap
from .prep import ScenePrep, prep
from .validator import Validator, ValidatorResult
from .flattener import FlattenResult, Flattener, flatten
from .build import make_layer_scene, make_list_scene, merge_scenes
from .elements import is_geometry, is_scene

try:
    __version__ = version("sceneprep")
except PackageNotFoundError:  # pragma: no cover - handled when package not installed
    __version__ = "unknown"

__all__ = [
    "ElementError",
    "FlattenError",
    "FlattenResult",
    "Flattener",
    "SceneError",
    "ScenePrep",
    "StatusMap",
    "UnitDataError",
    "Validator",
    "ValidatorResult",
    "flatten",
    "is_geometry",
    "is_scene",
    "make_layer_scene",
    "make_list_scene",
    "merge_scenes",
    "prep",
]
