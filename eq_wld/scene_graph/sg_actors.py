"""Actor definition and actor instance extraction.

ActorDef (0x14) ties the pieces of a model together through fragment_refs:
    DmSprite (0x2D)           -> mesh (index form only)
    HierarchicalSprite (0x11) -> skeleton (HierarchicalSpriteDef)
Other referenced kinds (2D sprites, particle clouds) are ignored.

Actor (0x15) places a model in a zone. Its ActorDef is referenced by name,
and that ActorDef usually lives in a different WLD (objects.wld places
models defined in <zone>_obj.wld), so only the name is resolved here.

Actor rotation is stored as three angles in units of 1/512 of a turn.
"""

import logging
import math

from ..wld_format.wld_constants import ROTATION_UNITS_PER_TURN
from ..wld_format.wld_errors import BrokenReferenceError
from ..wld_format.wld_fragments import (
    Actor, ActorDef, DmSprite, HierarchicalSprite,
)
from .sg_geometry import decode_color

_log = logging.getLogger("wld_actor")


class ParsedActorDef:
    """Container for an actor definition."""

    __slots__ = (
        'index', 'name', 'callback_name', 'mesh_indices', 'skeleton_index',
        'lod_distances', 'current_action',
    )

    def __init__(self):
        self.index = 0
        self.name = None
        self.callback_name = None
        self.mesh_indices = []          # DmSpriteDef2 / DmSpriteDef fragment indices
        self.skeleton_index = None      # HierarchicalSpriteDef fragment index
        self.lod_distances = []         # one list per action
        self.current_action = None

    @property
    def is_skinned(self):
        return self.skeleton_index is not None

    def __repr__(self):
        return (f"ParsedActorDef({self.name!r}, meshes={self.mesh_indices}, "
                f"skeleton={self.skeleton_index})")


class ParsedActorInstance:
    """Container for a placed actor."""

    __slots__ = (
        'index', 'name', 'actordef_name', 'position', 'rotation',
        'quaternion', 'scale_factor', 'bounding_radius', 'vertex_colors',
        'current_action',
    )

    def __init__(self):
        self.index = 0
        self.name = None
        self.actordef_name = None
        self.position = (0.0, 0.0, 0.0)
        self.rotation = (0.0, 0.0, 0.0)     # raw (x, y, z), 512 units per turn
        self.quaternion = None              # mathutils.Quaternion
        self.scale_factor = 1.0
        self.bounding_radius = None
        self.vertex_colors = []             # RGBA, 0.0-1.0
        self.current_action = None

    def __repr__(self):
        return (f"ParsedActorInstance({self.actordef_name!r}, pos={self.position}, "
                f"scale={self.scale_factor})")


def extract_actordef(document, actordef):
    """Extract an ActorDef with its meshes and skeleton.

    Raises:
        BrokenReferenceError: if a DmSprite or HierarchicalSprite does not
            resolve to its definition.
    """
    if not isinstance(actordef, ActorDef):
        raise TypeError(f"Not an ActorDef: {actordef!r}")

    parsed = ParsedActorDef()
    parsed.index = actordef.index
    parsed.name = document.name_of(actordef)
    parsed.callback_name = document.get_string(actordef.callback_name_ref, actordef.index)
    parsed.current_action = actordef.current_action
    parsed.lod_distances = [list(a.lod_distances) for a in actordef.actions]

    for ref in actordef.fragment_refs:
        target = document.get(ref)
        if isinstance(target, DmSprite):
            if target.reference is None or target.reference.is_by_name:
                _log.debug("DmSprite %d in %r has no index reference",
                           target.index, parsed.name)
                continue
            parsed.mesh_indices.append(_follow(document, target, "mesh").index)
        elif isinstance(target, HierarchicalSprite):
            parsed.skeleton_index = _follow(document, target, "HierarchicalSpriteDef").index

    return parsed


def _follow(document, sprite, what):
    resolved = document.get(sprite.reference)
    if resolved is None:
        raise BrokenReferenceError(
            f"{sprite.kind_name} does not resolve to a {what}",
            sprite.index, document.name_of(sprite),
        )
    return resolved


def extract_actor_instance(document, actor):
    """Extract a placed Actor.

    The vertex-colour chain Actor -> DmRGBTrack -> DmRGBTrackDef is
    optional; an instance without it has no vertex colours.
    """
    from mathutils import Euler

    if not isinstance(actor, Actor):
        raise TypeError(f"Not an Actor: {actor!r}")

    inst = ParsedActorInstance()
    inst.index = actor.index
    inst.name = document.name_of(actor)
    inst.current_action = actor.current_action
    inst.bounding_radius = actor.bounding_radius
    if actor.scale_factor is not None:
        inst.scale_factor = actor.scale_factor

    ref = actor.actor_def_ref
    if ref is not None:
        if ref.is_by_name:
            inst.actordef_name = document.get_string(ref.name_ref, actor.index)
        else:
            inst.actordef_name = document.name_of(document.get(ref))

    loc = actor.location
    if loc is not None:
        inst.position = (loc.x, loc.y, loc.z)
        inst.rotation = (loc.rotate_x, loc.rotate_y, loc.rotate_z)
    to_radians = 2.0 * math.pi / ROTATION_UNITS_PER_TURN
    inst.quaternion = Euler(
        tuple(r * to_radians for r in inst.rotation), 'XYZ'
    ).to_quaternion()

    track = document.get(actor.vertex_color_ref)
    if track is not None:
        colors = document.get(track.reference)
        if colors is None:
            raise BrokenReferenceError(
                "DmRGBTrack does not resolve to a DmRGBTrackDef",
                track.index, document.name_of(track),
            )
        inst.vertex_colors = [decode_color(c) for c in colors.vertex_colors]

    return inst
