"""Build bone hierarchies from WLD HierarchicalSpriteDef fragments.

A skeleton is stored flat: an array of Dag records, each naming a rest
track and listing the array positions of its children. This module turns
that array into a parent-indexed bone list with a decoded rest pose.

HierarchicalSpriteDef (0x10):
    dags[i].name_ref         - full bone name, e.g. "HUMBI_L_DAG"
    dags[i].track_ref        - Track (0x13) -> TrackDef (0x12), or a TrackDef
                               directly in older files; frame 0 is the rest pose
    dags[i].mesh_or_sprite_ref - attachment, kept as a reference
    dags[i].sub_dags         - child positions in the same array
    dm_sprites[]             - skins, DmSprite (0x2D) -> mesh

Bone names:
    The actor tag is the skeleton's own name with the profile marker
    removed ("HUM_HS_DEF" -> "HUM"). The generic bone name is the DAG name
    with the tag stripped using the profile's naming strategy:
        substring: "HUMBI_L_DAG" -> remove "HUM" -> remove "_DAG" -> "BI_L"
        prefix:    "HUM_BI_L"    -> remove leading "HUM_"       -> "BI_L"
    An empty result is the root bone ("ROOT").

Frame decode (native axes, no conversion):
    translation = (shift_x, shift_y, shift_z) / shift_denominator,
                  zero vector when the denominator is 0
    rotation    = normalised (rotate_denominator, rotate_x, rotate_y, rotate_z)
                  as (w, x, y, z); an all-zero quaternion is identity
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional

from ..format_profiles import NAMING_PREFIX, resolve_profile
from ..wld_format.wld_errors import BrokenReferenceError, DataIntegrityWarning, WLDError
from ..wld_format.wld_fragments import (
    FragmentRef, HierarchicalSpriteDef, Track, TrackDef,
)

_log = logging.getLogger("wld_skeleton")


@dataclass
class ParsedBone:
    """A single bone in the skeleton hierarchy."""
    full_name: str                  # DAG name as stored
    name: str                       # generic name, actor tag stripped
    index: int                      # position in the DAG array
    parent_index: int               # -1 for root
    rest_position: object           # mathutils.Vector, local offset from parent
    rest_quaternion: object         # mathutils.Quaternion (w, x, y, z)
    attachment_ref: Optional[FragmentRef] = None
    track_index: int = 0            # fragment index of the rest Track (or TrackDef)
    track_def_index: int = 0        # fragment index of the rest TrackDef
    rest_track_name: Optional[str] = None


@dataclass
class ParsedSkeleton:
    """Complete skeleton extracted from a HierarchicalSpriteDef."""
    index: int
    name: Optional[str]
    tag: str
    bones: List[ParsedBone]
    mesh_indices: List[int]
    profile_id: str = ""
    warnings: List[DataIntegrityWarning] = field(default_factory=list, compare=False)

    @property
    def root(self) -> Optional[ParsedBone]:
        for bone in self.bones:
            if bone.parent_index == -1:
                return bone
        return None

    def find_bone_by_name(self, name: str) -> Optional[ParsedBone]:
        """Find a bone by generic name, falling back to the full DAG name."""
        for bone in self.bones:
            if bone.name == name:
                return bone
        for bone in self.bones:
            if bone.full_name == name:
                return bone
        return None

    def get_children(self, bone_idx: int) -> List[int]:
        """Get indices of all direct children of a bone."""
        return [b.index for b in self.bones if b.parent_index == bone_idx]

    def bone_names(self) -> List[str]:
        return [b.name for b in self.bones]


# ---------------------------------------------------------------------------
# Frame decode
# ---------------------------------------------------------------------------

def frame_position(frame):
    """Translation of one TrackDef frame as a Vector."""
    from mathutils import Vector

    denom = frame.shift_denominator
    if denom == 0:
        return Vector((0.0, 0.0, 0.0))
    return Vector((frame.shift_x / denom, frame.shift_y / denom, frame.shift_z / denom))


def frame_quaternion(frame):
    """Rotation of one TrackDef frame as a unit Quaternion."""
    from mathutils import Quaternion

    w, x, y, z = (frame.rotate_denominator, frame.rotate_x,
                  frame.rotate_y, frame.rotate_z)
    if w == 0 and x == 0 and y == 0 and z == 0:
        return Quaternion((1.0, 0.0, 0.0, 0.0))
    return Quaternion((float(w), float(x), float(y), float(z))).normalized()


# ---------------------------------------------------------------------------
# Naming
# ---------------------------------------------------------------------------

def bone_name_from_dag(dag_name, tag, naming):
    """Derive the generic bone name from a DAG name.

    Args:
        dag_name: Full DAG name.
        tag: Actor tag derived from the skeleton name.
        naming: NamingConfig of the active profile.

    Returns:
        Generic bone name, or naming.root_bone_name when nothing is left.
    """
    name = dag_name or ""
    if naming.strategy == NAMING_PREFIX:
        if tag:
            if name == tag:
                name = ""
            elif name.startswith(tag + "_"):
                name = name[len(tag) + 1:]
        if naming.dag_marker and name.endswith(naming.dag_marker):
            name = name[:-len(naming.dag_marker)]
    else:
        if tag:
            name = name.replace(tag, "")
        if naming.dag_marker:
            name = name.replace(naming.dag_marker, "")
    return name or naming.root_bone_name


# ---------------------------------------------------------------------------
# Extraction
# ---------------------------------------------------------------------------

def resolve_rest_track(document, dag, skeleton):
    """Resolve a DAG's rest track.

    Returns:
        (match_fragment, track_def) where match_fragment is the Track the
        DAG points at, or the TrackDef itself when referenced directly.

    Raises:
        BrokenReferenceError: if the chain cannot be followed to a TrackDef.
    """
    skel_name = document.name_of(skeleton)
    target = document.get(dag.track_ref)
    if target is None:
        raise BrokenReferenceError(
            f"DAG {document.get_string(dag.name_ref)!r} has no rest track",
            skeleton.index, skel_name,
        )
    if isinstance(target, TrackDef):
        return target, target

    track_def = document.get(target.reference)
    if track_def is None:
        raise BrokenReferenceError(
            "Rest Track does not resolve to a TrackDef",
            target.index, document.name_of(target),
        )
    return target, track_def


def extract_skeleton(document, skeleton, profile=None) -> ParsedSkeleton:
    """Build a ParsedSkeleton from a HierarchicalSpriteDef.

    Args:
        document: WLDDocument that owns the fragment.
        skeleton: HierarchicalSpriteDef fragment.
        profile: FormatProfile, profile id, or None to auto-detect.

    Returns:
        ParsedSkeleton

    Raises:
        BrokenReferenceError: if a rest track cannot be resolved or a DAG
            lists a child outside the array.
    """
    if not isinstance(skeleton, HierarchicalSpriteDef):
        raise TypeError(f"Not a HierarchicalSpriteDef: {skeleton!r}")

    profile = resolve_profile(document, profile)
    name = document.name_of(skeleton)
    tag = profile.actor_tag(name or "")

    parsed = ParsedSkeleton(
        index=skeleton.index,
        name=name,
        tag=tag,
        bones=[],
        mesh_indices=[],
        profile_id=profile.profile_id,
    )

    for i, dag in enumerate(skeleton.dags):
        full_name = document.get_string(dag.name_ref, skeleton.index) or ""
        match, track_def = resolve_rest_track(document, dag, skeleton)

        if track_def.frames:
            rest = track_def.frames[0]
            position = frame_position(rest)
            rotation = frame_quaternion(rest)
        else:
            parsed.warnings.append(DataIntegrityWarning(
                f"Rest TrackDef for bone {full_name!r} has no frames; using identity",
                track_def.index, document.name_of(track_def),
            ))
            from mathutils import Quaternion, Vector
            position = Vector((0.0, 0.0, 0.0))
            rotation = Quaternion((1.0, 0.0, 0.0, 0.0))

        parsed.bones.append(ParsedBone(
            full_name=full_name,
            name=bone_name_from_dag(full_name, tag, profile.naming),
            index=i,
            parent_index=-1,
            rest_position=position,
            rest_quaternion=rotation,
            attachment_ref=dag.mesh_or_sprite_ref,
            track_index=match.index,
            track_def_index=track_def.index,
            rest_track_name=document.name_of(match),
        ))

    _assign_parents(skeleton, parsed)
    _repair_tree(parsed)

    parsed.mesh_indices = [mesh.index for mesh in skeleton_meshes(document, skeleton, parsed.warnings)]

    for warning in parsed.warnings:
        _log.warning("%s", warning)

    return parsed


def _assign_parents(skeleton, parsed):
    """Second pass: children listed in sub_dags get the listing DAG as parent."""
    bones = parsed.bones
    count = len(bones)
    assigned = set()
    for i, dag in enumerate(skeleton.dags):
        for child in dag.sub_dags:
            if child >= count:
                raise BrokenReferenceError(
                    f"DAG {i} lists child {child}, skeleton has {count} bones",
                    skeleton.index, parsed.name,
                )
            if child == i:
                parsed.warnings.append(DataIntegrityWarning(
                    f"Bone {bones[i].name!r} lists itself as a child; ignored",
                    skeleton.index, parsed.name,
                ))
                continue
            if child == 0:
                parsed.warnings.append(DataIntegrityWarning(
                    f"Bone {bones[i].name!r} lists the root as a child; ignored",
                    skeleton.index, parsed.name,
                ))
                continue
            if child in assigned:
                parsed.warnings.append(DataIntegrityWarning(
                    f"Bone {bones[child].name!r} has parents {bones[child].parent_index} "
                    f"and {i}; keeping {i}",
                    skeleton.index, parsed.name,
                ))
            bones[child].parent_index = i
            assigned.add(child)


def _repair_tree(parsed):
    """Attach orphans and break cycles so the bones form one tree under bone 0."""
    bones = parsed.bones
    count = len(bones)
    if not count:
        parsed.warnings.append(DataIntegrityWarning(
            "Skeleton has no bones", parsed.index, parsed.name,
        ))
        return

    for bone in bones[1:]:
        if bone.parent_index == -1:
            parsed.warnings.append(DataIntegrityWarning(
                f"Bone {bone.name!r} has no parent; attached to root",
                parsed.index, parsed.name,
            ))
            bone.parent_index = 0

    for bone in bones[1:]:
        seen = set()
        current = bone.index
        while current != -1 and current not in seen:
            seen.add(current)
            current = bones[current].parent_index
        if current != -1:
            parsed.warnings.append(DataIntegrityWarning(
                f"Bone {bone.name!r} is part of a parent cycle; attached to root",
                parsed.index, parsed.name,
            ))
            bone.parent_index = 0


def skeleton_meshes(document, skeleton, warnings=None):
    """Mesh fragments skinned to a skeleton, through its DmSprite list.

    Unresolvable entries are skipped; when ``warnings`` is a list they are
    recorded there.
    """
    meshes = []
    for ref in skeleton.dm_sprites:
        sprite = document.get(ref)
        mesh = document.get(sprite.reference) if sprite is not None else None
        if mesh is None:
            if warnings is not None:
                warnings.append(DataIntegrityWarning(
                    "Skin entry does not resolve to a mesh",
                    skeleton.index, document.name_of(skeleton),
                ))
            continue
        meshes.append(mesh)
    return meshes


def extract_all_skeletons(document, profile=None) -> List[ParsedSkeleton]:
    """Extract every skeleton in the document.

    A skeleton that fails to build is logged and skipped.
    """
    profile = resolve_profile(document, profile)
    results = []
    for skeleton in document.skeletons():
        try:
            results.append(extract_skeleton(document, skeleton, profile))
        except WLDError as e:
            _log.warning("Skipping skeleton: %s", e)
    return results
