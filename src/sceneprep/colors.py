"""Colour-name resolution for scene ``color`` properties."""

from __future__ import annotations

from typing import List

import webcolors

__all__ = ["color_to_array"]


def color_to_array(value: str) -> List[float]:
    """Return ``[r, g, b]`` in 0..1 for a CSS colour name or hex string.

    Raises ``ValueError`` when the string names no known colour.
    """

    text = value.strip()
    if text.startswith("#"):
        rgb = webcolors.hex_to_rgb(text)
    else:
        try:
            rgb = webcolors.name_to_rgb(text.lower())
        except ValueError:
            # bare hex without the leading '#'
            rgb = webcolors.hex_to_rgb("#" + text)
    return [rgb.red / 255.0, rgb.green / 255.0, rgb.blue / 255.0]
