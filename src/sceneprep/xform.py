"""Row-major 4x4 homogeneous transforms stored as flat 16-number lists.

Scene matrices are serialized as ``[m00, m01, m02, m03, m10, ...]``.  The
helpers below convert to numpy for the arithmetic and hand back plain
lists so results stay JSON serializable.
"""

from __future__ import annotations

from typing import Any, List, Optional, Sequence

import numpy as np

__all__ = ["identity", "is_matrix16", "to_array", "to_list", "multiply",
           "translation", "scale"]


def identity() -> List[float]:
    return to_list(np.eye(4))


def is_matrix16(value: Any) -> bool:
    """True for a list/tuple of exactly 16 real numbers."""
    if not isinstance(value, (list, tuple)) or len(value) != 16:
        return False
    return all(isinstance(v, (int, float)) and not isinstance(v, bool) for v in value)


def to_array(matrix: Sequence[float]) -> np.ndarray:
    return np.asarray(matrix, dtype=float).reshape(4, 4)


def to_list(array: np.ndarray) -> List[float]:
    return [float(v) for v in np.asarray(array).reshape(16)]


def multiply(parent: Sequence[float], child: Sequence[float]) -> List[float]:
    """Return ``parent x child``: apply ``child`` first, then ``parent``."""
    return to_list(to_array(parent) @ to_array(child))


def translation(dx: float, dy: float, dz: float) -> List[float]:
    mat = np.eye(4)
    mat[0:3, 3] = (dx, dy, dz)
    return to_list(mat)


def scale(sx: float, sy: Optional[float] = None, sz: Optional[float] = None) -> List[float]:
    sy = sx if sy is None else sy
    sz = sx if sz is None else sz
    return to_list(np.diag((sx, sy, sz, 1.0)))
