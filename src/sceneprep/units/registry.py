"""Table-driven unit registry.

Unit tables are YAML documents (see ``data/standard.yaml``) mapping
dimensions to unit names/aliases plus a list of one-hop scale factors.
Deployments can extend the bundled table without code changes:

Search order for a table named ``<name>.yaml``:
    1. Directories from the SCENEPREP_UNIT_DATA environment variable
       (``os.pathsep`` separated)
    2. User config directory (~/.config/sceneprep/units/)
    3. Bundled data directory

Example:
    export SCENEPREP_UNIT_DATA="/path/to/my/units"
"""

from __future__ import annotations

import logging
import os
import sys
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple

import yaml

from sceneprep.errors import UnitDataError

__all__ = [
    "SCENEPREP_UNIT_DATA",
    "DEFAULT_UNITS",
    "UnitRegistry",
    "load_unit_table",
    "clear_cache",
]

LOG = logging.getLogger(__name__)

# Environment variable name for custom data paths
SCENEPREP_UNIT_DATA = "SCENEPREP_UNIT_DATA"

# Base unit every length is normalized to
DEFAULT_UNITS = "meters"

_BUNDLED_DATA_DIR = Path(__file__).parent / "data"
_STANDARD_TABLE = "standard"


def clear_cache() -> None:
    """Forget cached table lookups; call after editing external tables."""
    _get_data_dirs.cache_clear()
    _load_table_cached.cache_clear()


@lru_cache(maxsize=None)
def _get_data_dirs() -> Tuple[Path, ...]:
    dirs: List[Path] = []

    env_path = os.environ.get(SCENEPREP_UNIT_DATA)
    if env_path:
        for p in env_path.split(os.pathsep):
            p = p.strip()
            if p:
                path = Path(p).expanduser().resolve()
                if path.is_dir():
                    dirs.append(path)

    if sys.platform == "win32":
        config_base = Path(os.environ.get("APPDATA", "~")).expanduser()
    else:
        config_base = Path.home() / ".config"

    user_config = config_base / "sceneprep" / "units"
    if user_config.is_dir():
        dirs.append(user_config)

    if _BUNDLED_DATA_DIR.is_dir():
        dirs.append(_BUNDLED_DATA_DIR)

    return tuple(dirs)


def _load_yaml(path: Path) -> Dict[str, Any]:
    try:
        with path.open("r", encoding="utf-8") as fp:
            data = yaml.safe_load(fp)
    except yaml.YAMLError as exc:
        raise UnitDataError(f"YAML parse error in unit table {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise UnitDataError(f"unit table {path} must be a mapping at the root")
    for section in ("dimensions", "conversions"):
        if section not in data:
            raise UnitDataError(f"unit table {path} has no '{section}' section")
    return data


@lru_cache(maxsize=16)
def _load_table_cached(name: str, custom_path_str: Optional[str]) -> Dict[str, Any]:
    if custom_path_str:
        custom_path = Path(custom_path_str)
        if not custom_path.exists():
            raise UnitDataError(f"Custom unit table not found: {custom_path}")
        return _load_yaml(custom_path)

    filename = f"{name}.yaml"
    for data_dir in _get_data_dirs():
        path = data_dir / filename
        if path.exists():
            LOG.debug("loading unit table %s", path)
            return _load_yaml(path)

    raise UnitDataError(f"Unit table '{name}' not found in {list(_get_data_dirs())}")


def load_unit_table(name: str = _STANDARD_TABLE, path: Optional[Path | str] = None) -> Dict[str, Any]:
    """Return the raw dimension/conversion table.

    ``path`` bypasses the directory search.  The returned mapping is cached
    and shared; do not modify it.
    """
    return _load_table_cached(name, str(path) if path else None)


class UnitRegistry:
    """Unit names, aliases and one-hop scale factors.

    Build one with :meth:`standard` or populate an empty registry with
    :meth:`add_unit` / :meth:`add_conversion`.  A registry is never shared
    implicitly; every :meth:`standard` call returns a fresh object.
    """

    def __init__(self) -> None:
        self.dimensions: set[str] = set()
        # unit -> dimension
        self.units: Dict[str, str] = {}
        # alias -> unit
        self.aliases: Dict[str, str] = {}
        # unit -> {unit -> scale}
        self.conversions: Dict[str, Dict[str, float]] = {}

    @classmethod
    def standard(cls, path: Optional[Path | str] = None) -> "UnitRegistry":
        return cls.from_table(load_unit_table(path=path))

    @classmethod
    def from_table(cls, table: Dict[str, Any]) -> "UnitRegistry":
        registry = cls()
        for dim, units in (table.get("dimensions") or {}).items():
            registry.add_dimension(dim)
            for entry in units or []:
                names = [str(n) for n in entry]
                if names:
                    registry.add_unit(names[0], dim, names[1:])
        for conv in table.get("conversions") or []:
            registry.add_conversion(str(conv["from"]), str(conv["to"]), float(conv["factor"]))
        return registry

    def add_dimension(self, dim: str) -> None:
        self.dimensions.add(dim)

    def add_unit(self, unit: str, dim: str, aliases: Iterable[str] = ()) -> None:
        """Register ``unit`` as a known unit of ``dim`` with alternative names."""
        self.dimensions.add(dim)
        self.units[unit] = dim
        for alias in aliases:
            self.aliases[alias] = unit

    def add_conversion(self, from_unit: str, to_unit: str, scale: float) -> None:
        """Register a scale factor; the first registration for a pair wins."""
        self.conversions.setdefault(from_unit, {}).setdefault(to_unit, scale)

    def canonical(self, name: str) -> str:
        return self.aliases.get(name, name)

    def dimension(self, name: str) -> Optional[str]:
        return self.units.get(self.canonical(name))

    def is_known(self, name: str) -> bool:
        return self.canonical(name) in self.units

    def factor(self, from_unit: str, to_unit: str) -> Optional[float]:
        """Return the multiplier converting ``from_unit`` values to ``to_unit``.

        Same (or alias-equal) units give 1.0, as do two known units without a
        tabulated conversion.  ``None`` means the pair cannot be resolved and
        the caller should leave the value alone.
        """
        std_from = self.canonical(from_unit)
        std_to = self.canonical(to_unit)
        if from_unit == to_unit or std_from == std_to:
            return 1.0

        table = self.conversions.get(from_unit) or self.conversions.get(std_from)
        if table:
            if to_unit in table:
                return table[to_unit]
            if std_to in table:
                return table[std_to]

        if std_from in self.units and std_to in self.units:
            return 1.0
        return None
