"""Per-key error accumulator shared by the scene processing stages."""

from __future__ import annotations

from typing import Dict, List


class StatusMap:
    """Map from a key (usually ``primitive`` or ``primitive:id``) to messages.

    A key with an empty list was seen and is valid; a key with messages is
    invalid.  Warnings are tracked separately and never invalidate a key.
    One map is meant to be filled by a single scene-processing call.
    """

    NO_ERROR = ""

    def __init__(self) -> None:
        self.errors: Dict[str, List[str]] = {}
        self._warnings: Dict[str, List[str]] = {}

    def __repr__(self) -> str:
        return f"StatusMap({self.errors!r})"

    def clear(self) -> None:
        self.errors = {}
        self._warnings = {}

    def append_error(self, key: str, message: str) -> None:
        """Record ``message`` under ``key``; empty and duplicate messages are ignored."""
        self.append_valid(key)
        if message and message not in self.errors[key]:
            self.errors[key].append(message)

    def append_valid(self, key: str) -> None:
        """Mark ``key`` as processed without touching existing messages."""
        if key not in self.errors:
            self.errors[key] = []

    def append_warning(self, key: str, message: str) -> None:
        if not message:
            return
        bucket = self._warnings.setdefault(key, [])
        if message not in bucket:
            bucket.append(message)

    def warnings(self, key: str | None = None) -> List[str]:
        """Return warnings for ``key``, or every warning when ``key`` is None."""
        if key is not None:
            return list(self._warnings.get(key, []))
        out: List[str] = []
        for msgs in self._warnings.values():
            out.extend(msgs)
        return out

    def valid_key(self, key: str) -> bool:
        return not self.errors.get(key)

    def invalid_key(self, key: str) -> bool:
        return not self.valid_key(key)

    def invalid_keys(self) -> List[str]:
        return [key for key in self.errors if self.invalid_key(key)]

    def invalid_key_summary(self) -> str:
        """Human readable summary, e.g. ``"sphere:a (m1, m2), mesh (m3)"``."""
        return ", ".join(
            f"{key} ({', '.join(self.errors[key])})" for key in self.invalid_keys()
        )

    def merge(self, other: "StatusMap") -> None:
        """Fold ``other`` into this map.

        Messages for a shared key are appended in order, skipping ones this
        map already holds.
        """
        for key, messages in other.errors.items():
            self.append_valid(key)
            for message in messages:
                self.append_error(key, message)
        for key, messages in other._warnings.items():
            for message in messages:
                self.append_warning(key, message)


__all__ = ["StatusMap"]
