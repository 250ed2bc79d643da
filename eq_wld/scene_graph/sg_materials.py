"""Material and texture-filename extraction from WLD fragments.

Handles the chain:
    MaterialDef (0x30) -> SimpleSprite (0x05) -> SimpleSpriteDef (0x04)
        -> BmInfo (0x03)[frame] -> image filenames

MaterialDef fields used here:
    render_method:  0 means the material is invisible. When bit 31 is set
                    the method is user defined and the low bits carry a
                    shader type id.
    simple_sprite_ref: required; every material names its texture.

SimpleSpriteDef frames are animated textures; each frame points at one
BmInfo, and sleep gives the delay between frames in milliseconds.

Pixel payloads live in the surrounding archive and are decoded elsewhere;
fetch_texture_payloads() only looks them up by name.
"""

import logging

from ..wld_format.wld_constants import RENDER_METHOD_USER_DEFINED
from ..wld_format.wld_errors import BrokenReferenceError
from ..wld_format.wld_fragments import MaterialDef

_log = logging.getLogger("wld_material")


class ParsedMaterial:
    """Container for extracted material properties."""

    __slots__ = (
        'index', 'name', 'flags', 'render_method', 'rgb_pen',
        'brightness', 'scaled_ambient', 'texture_filenames', 'delay',
    )

    def __init__(self):
        self.index = 0
        self.name = None
        self.flags = 0
        self.render_method = 0
        self.rgb_pen = 0
        self.brightness = 0.0
        self.scaled_ambient = 0.0
        self.texture_filenames = []     # lower-cased, one per animation frame
        self.delay = 0.0                # seconds between texture frames

    @property
    def visible(self):
        return self.render_method != 0

    @property
    def shader_type_id(self):
        """Shader type for user-defined render methods, else None."""
        if self.render_method & RENDER_METHOD_USER_DEFINED:
            return self.render_method & ~RENDER_METHOD_USER_DEFINED
        return None

    @property
    def texture_filename(self):
        """First texture frame, or None when the chain holds no images."""
        return self.texture_filenames[0] if self.texture_filenames else None

    @property
    def is_animated(self):
        return len(self.texture_filenames) > 1

    def __repr__(self):
        return (f"ParsedMaterial({self.name!r}, render_method=0x{self.render_method:08x}, "
                f"textures={self.texture_filenames})")


def extract_material(document, material):
    """Extract a MaterialDef and its texture chain.

    Args:
        document: WLDDocument that owns the fragment.
        material: MaterialDef fragment.

    Returns:
        ParsedMaterial

    Raises:
        BrokenReferenceError: if any link of the texture chain is missing,
            the texture reference itself included.
    """
    if not isinstance(material, MaterialDef):
        raise TypeError(f"Not a MaterialDef: {material!r}")

    mat = ParsedMaterial()
    mat.index = material.index
    mat.name = document.name_of(material)
    mat.flags = material.flags
    mat.render_method = material.render_method
    mat.rgb_pen = material.rgb_pen
    mat.brightness = material.brightness
    mat.scaled_ambient = material.scaled_ambient

    mat.texture_filenames, mat.delay = _resolve_texture_chain(document, material, mat.name)

    return mat


def _resolve_texture_chain(document, material, material_name):
    """Follow SimpleSprite -> SimpleSpriteDef -> BmInfo to filenames."""
    if material.simple_sprite_ref is None:
        raise BrokenReferenceError(
            "Material has no texture reference", material.index, material_name,
        )
    sprite = document.get(material.simple_sprite_ref)
    if sprite is None:
        raise BrokenReferenceError(
            "Material texture reference does not resolve to a SimpleSprite",
            material.index, material_name,
        )

    sprite_def = document.get(sprite.reference)
    if sprite_def is None:
        raise BrokenReferenceError(
            "SimpleSprite does not resolve to a SimpleSpriteDef",
            sprite.index, document.name_of(sprite),
        )

    filenames = []
    for frame_ref in sprite_def.frame_refs:
        bitmap = document.get(frame_ref)
        if bitmap is None:
            raise BrokenReferenceError(
                "SimpleSpriteDef frame does not resolve to a BmInfo",
                sprite_def.index, document.name_of(sprite_def),
            )
        filenames.extend(name.lower() for name in bitmap.filenames)

    if not filenames:
        _log.debug("Material %r has a texture chain with no images", material_name)

    delay = sprite_def.sleep * 0.001 if sprite_def.sleep else 0.0
    return filenames, delay


def fetch_texture_payloads(archive, material):
    """Look up every texture filename of a material in an archive.

    The archive only needs ``get(name) -> bytes or None``. Archive entry
    names may be stored in any case, so a miss is retried against
    ``archive.filenames`` case-insensitively when that attribute exists.

    Returns:
        Dict mapping filename -> bytes, or None for names the archive
        does not contain.
    """
    payloads = {}
    lowered = None
    for filename in material.texture_filenames:
        data = archive.get(filename)
        if data is None:
            if lowered is None:
                lowered = {
                    name.lower(): name for name in getattr(archive, "filenames", ())
                }
            stored = lowered.get(filename)
            if stored is not None:
                data = archive.get(stored)
        if data is None:
            _log.warning("Texture %r for material %r not found in archive",
                         filename, material.name)
        payloads[filename] = data
    return payloads
