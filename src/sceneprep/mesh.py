"""Triangulation helpers for ``mesh`` scene elements."""

from __future__ import annotations

from typing import Any, Dict, List, Sequence

__all__ = ["fan_triangulate", "triangulate_faces", "triangulate_mesh"]


def fan_triangulate(face: Sequence[int]) -> List[List[int]]:
    """Split a polygon into triangles fanning out from its first vertex.

    Assumes the face is planar and convex; ``[0, 3, 2, 1]`` becomes
    ``[[0, 3, 2], [0, 2, 1]]``.  Faces with three or fewer indices are
    returned unchanged.
    """

    if len(face) <= 3:
        return [list(face)]
    first = face[0]
    return [[first, face[k], face[k + 1]] for k in range(1, len(face) - 1)]


def triangulate_faces(faces: Sequence[Sequence[int]]) -> List[List[int]]:
    out: List[List[int]] = []
    for face in faces:
        out.extend(fan_triangulate(face))
    return out


def triangulate_mesh(mesh: Dict[str, Any]) -> bool:
    """Triangulate ``mesh['faces']`` in place; return True if anything changed.

    Per-vertex arrays (``color``, ``normal``, ``uv``) are indexed by vertex
    and stay as they are.
    """

    faces = mesh.get("faces")
    if not isinstance(faces, list) or all(len(face) <= 3 for face in faces):
        return False
    mesh["faces"] = triangulate_faces(faces)
    return True
