"""Exceptions raised by sceneprep.

Only configuration mistakes and broken caller preconditions raise; problems
in the scene data itself are reported through :class:`~sceneprep.status.StatusMap`
or :class:`~sceneprep.validator.ValidatorResult`.
"""

from __future__ import annotations

from typing import Optional


class SceneError(Exception):
    """Base class for all sceneprep errors."""

    def __init__(self, message: Optional[str] = None) -> None:
        self.message = message or "Invalid or degenerate scene specified."
        super().__init__(self.message)


class ElementError(SceneError, ValueError):
    """Raised when an element constructor receives invalid arguments."""


class UnitDataError(SceneError):
    """Raised when a unit table cannot be found or parsed."""


class FlattenError(SceneError):
    """Raised when a scene handed to the flattener is not a valid scene.

    ``status`` holds the :class:`StatusMap` filled during the internal prep
    pass and ``result`` the failing :class:`ValidatorResult`.
    """

    def __init__(self, message: str, status=None, result=None) -> None:
        super().__init__(message)
        self.status = status
        self.result = result


__all__ = ["SceneError", "ElementError", "UnitDataError", "FlattenError"]
