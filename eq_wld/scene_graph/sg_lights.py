"""Light extraction from WLD fragments.

Handles the chain:
    PointLight (0x28) -> Light (0x1C) -> LightDef (0x1B)

PointLight carries the placement (position, radius). The colour and level
live on the LightDef, one entry per frame; only frame 0 is used here.

LightDef flags:
    0x01  current_frame present
    0x02  sleep present
    0x04  per-frame light levels present
    0x10  per-frame RGB colours present
"""

import logging

from ..wld_format.wld_errors import BrokenReferenceError
from ..wld_format.wld_fragments import PointLight

_log = logging.getLogger("wld_light")


class ParsedPointLight:
    """Container for a placed point light."""

    __slots__ = (
        'index', 'name', 'flags', 'position', 'radius', 'color', 'level',
        'light_def_index',
    )

    def __init__(self):
        self.index = 0
        self.name = None
        self.flags = 0
        self.position = (0.0, 0.0, 0.0)
        self.radius = 0.0
        self.color = (1.0, 1.0, 1.0)
        self.level = 1.0
        self.light_def_index = None

    def __repr__(self):
        return (f"ParsedPointLight({self.name!r}, pos={self.position}, "
                f"radius={self.radius}, color={self.color})")


def extract_point_light(document, light):
    """Extract one PointLight with its LightDef colour.

    Raises:
        BrokenReferenceError: if the Light link exists but does not reach
            a LightDef.
    """
    if not isinstance(light, PointLight):
        raise TypeError(f"Not a PointLight: {light!r}")

    parsed = ParsedPointLight()
    parsed.index = light.index
    parsed.name = document.name_of(light)
    parsed.flags = light.flags
    parsed.position = tuple(light.position)
    parsed.radius = light.radius

    light_ref = document.get(light.reference)
    if light_ref is None:
        return parsed

    light_def = document.get(light_ref.reference)
    if light_def is None:
        raise BrokenReferenceError(
            "Light does not resolve to a LightDef",
            light_ref.index, document.name_of(light_ref),
        )

    parsed.light_def_index = light_def.index
    if light_def.colors:
        parsed.color = tuple(light_def.colors[0])
    if light_def.light_levels:
        parsed.level = light_def.light_levels[0]
    return parsed


def extract_point_lights(document):
    """Extract every PointLight in the document.

    A light with a broken chain is logged and skipped.
    """
    lights = []
    for light in document.iter_of_kind(PointLight):
        try:
            lights.append(extract_point_light(document, light))
        except BrokenReferenceError as e:
            _log.warning("Skipping point light: %s", e)
    return lights
