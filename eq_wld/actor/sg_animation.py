"""Discover and decode skeletal animations in WLD documents.

WLD has no animation container. Animations are inferred from Track names:
every bone's rest Track has a name such as "HUM_BL_R_TRACKDEF", and each
animation of that bone is another Track whose name ends with it, the
animation name being the leftover prefix:

    "HUM_BL_R_TRACKDEF"     -> REST
    "D02HUM_BL_R_TRACKDEF"  -> D02

The suffix rule is a naming convention, not a guarantee, so it is isolated
in variant_name() and build_variant_index().

Timing:
    Track (0x13) flag 0x01 carries sleep, milliseconds per frame. Without it
    (or with sleep 0) the profile default of 100 ms applies. Keyframe k sits
    at k * seconds_per_frame; an animation lasts max(frame_count *
    seconds_per_frame) over its bone tracks.

Tracks that share a TrackDef share one DecodedTrackDef per call.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from ..format_profiles import resolve_profile
from ..wld_format.wld_errors import DataIntegrityWarning
from ..wld_format.wld_fragments import Track, TrackDef
from .sg_skeleton import extract_skeleton, frame_position, frame_quaternion

_log = logging.getLogger("wld_anim")


@dataclass
class DecodedTrackDef:
    """Frames of one TrackDef, decoded once and shared by every Track using it."""
    index: int
    name: Optional[str]
    positions: Tuple            # mathutils.Vector per frame
    rotations: Tuple            # mathutils.Quaternion per frame

    @property
    def frame_count(self) -> int:
        return len(self.positions)


@dataclass
class ParsedKeyframe:
    """A single keyframe for one bone."""
    frame: int
    time: float                 # seconds
    translation: object         # mathutils.Vector
    quaternion: object          # mathutils.Quaternion (w, x, y, z)


@dataclass
class ParsedBoneTrack:
    """Animation track for one bone."""
    bone_index: int
    bone_name: str
    track_index: int            # fragment index of the Track (or TrackDef)
    track_name: Optional[str]
    definition: DecodedTrackDef
    seconds_per_frame: float

    @property
    def frame_count(self) -> int:
        return self.definition.frame_count

    @property
    def duration(self) -> float:
        return self.frame_count * self.seconds_per_frame

    @property
    def keyframes(self) -> List[ParsedKeyframe]:
        spf = self.seconds_per_frame
        d = self.definition
        return [
            ParsedKeyframe(frame=k, time=k * spf,
                           translation=d.positions[k], quaternion=d.rotations[k])
            for k in range(d.frame_count)
        ]


@dataclass
class ParsedAnimation:
    """A complete animation clip for one skeleton."""
    name: str
    tracks: Dict[int, ParsedBoneTrack]      # bone index -> track
    warnings: List[DataIntegrityWarning] = field(default_factory=list, compare=False)

    @property
    def duration(self) -> float:
        if not self.tracks:
            return 0.0
        return max(t.duration for t in self.tracks.values())

    @property
    def bone_indices(self) -> List[int]:
        return sorted(self.tracks)


# ---------------------------------------------------------------------------
# Name matching
# ---------------------------------------------------------------------------

def variant_name(candidate, rest_name, rest_label="REST"):
    """Animation name of ``candidate`` relative to a rest track name.

    Returns:
        The prefix before ``rest_name``, ``rest_label`` when the names are
        equal, or None when ``candidate`` does not end with ``rest_name``.
    """
    if not candidate or not rest_name or not candidate.endswith(rest_name):
        return None
    return candidate[:-len(rest_name)] or rest_label


def build_variant_index(document, rest_names, kind=Track):
    """Map each rest track name to every fragment of ``kind`` ending with it.

    Scans the whole document once. Each fragment name is checked against
    every one of its suffixes, so one fragment may appear under several
    rest names.

    Returns:
        Dict rest_name -> list of fragments in document order.
    """
    wanted = {name for name in rest_names if name}
    index = {name: [] for name in wanted}
    if not wanted:
        return index
    for fragment in document.iter_of_kind(kind):
        name = document.name_of(fragment)
        if not name:
            continue
        for start in range(len(name)):
            suffix = name[start:]
            if suffix in wanted:
                index[suffix].append(fragment)
    return index


def _variant_indexes(document, skeleton):
    """Variant indexes for bones whose rest track is a Track or a TrackDef."""
    by_kind = {Track: set(), TrackDef: set()}
    for bone in skeleton.bones:
        rest = document.get_by_index(bone.track_index)
        by_kind[Track if isinstance(rest, Track) else TrackDef].add(bone.rest_track_name)
    return {
        kind: build_variant_index(document, names, kind)
        for kind, names in by_kind.items() if names
    }


def _bone_candidates(document, bone, indexes):
    rest = document.get_by_index(bone.track_index)
    kind = Track if isinstance(rest, Track) else TrackDef
    if not bone.rest_track_name:
        # Unnamed rest track: only the rest pose itself is known
        return [rest]
    return indexes.get(kind, {}).get(bone.rest_track_name, [rest])


# ---------------------------------------------------------------------------
# Extraction
# ---------------------------------------------------------------------------

def decode_track_def(document, track_def, cache=None) -> DecodedTrackDef:
    """Decode a TrackDef, reusing ``cache`` ((document, fragment index) -> DecodedTrackDef).

    Fragment indices are only unique within one document, so the document
    itself is part of the key and one cache may serve several documents.
    """
    key = (document, track_def.index)
    if cache is not None and key in cache:
        return cache[key]
    decoded = DecodedTrackDef(
        index=track_def.index,
        name=document.name_of(track_def),
        positions=tuple(frame_position(f) for f in track_def.frames),
        rotations=tuple(frame_quaternion(f) for f in track_def.frames),
    )
    if cache is not None:
        cache[key] = decoded
    return decoded


def seconds_per_frame(track, default):
    """Frame interval of a Track in seconds."""
    sleep = getattr(track, "sleep", None)
    if sleep:
        return sleep / 1000.0
    return default


def extract_animations(document, skeleton, profile=None, parsed_skeleton=None,
                       track_cache=None) -> Dict[str, ParsedAnimation]:
    """Extract every animation of a skeleton.

    Args:
        document: WLDDocument that owns the fragment.
        skeleton: HierarchicalSpriteDef fragment.
        profile: FormatProfile, profile id, or None to auto-detect.
        parsed_skeleton: Already built ParsedSkeleton, to skip rebuilding it.
        track_cache: Optional dict shared across calls for TrackDef decode;
            keyed by (document, fragment index), so any number of documents
            may share it.

    Returns:
        Dict animation name -> ParsedAnimation, the rest animation first,
        then the others sorted by name.

    Raises:
        BrokenReferenceError: if a rest track cannot be resolved.
    """
    profile = resolve_profile(document, profile)
    if parsed_skeleton is None:
        parsed_skeleton = extract_skeleton(document, skeleton, profile)
    if track_cache is None:
        track_cache = {}

    rest_label = profile.animation.rest_animation_name
    default_spf = profile.animation.default_seconds_per_frame
    indexes = _variant_indexes(document, parsed_skeleton)

    animations = {}
    for bone in parsed_skeleton.bones:
        for candidate in _bone_candidates(document, bone, indexes):
            cand_name = document.name_of(candidate)
            anim_name = variant_name(cand_name, bone.rest_track_name, rest_label) or rest_label
            anim = animations.get(anim_name)
            if anim is None:
                anim = animations[anim_name] = ParsedAnimation(name=anim_name, tracks={})

            if bone.index in anim.tracks:
                anim.warnings.append(DataIntegrityWarning(
                    f"Bone {bone.name!r} has more than one track in {anim_name!r}; "
                    f"keeping fragment {anim.tracks[bone.index].track_index}",
                    candidate.index, cand_name,
                ))
                continue

            if isinstance(candidate, Track):
                track_def = document.get(candidate.reference)
                if track_def is None:
                    anim.warnings.append(DataIntegrityWarning(
                        f"Track for bone {bone.name!r} has no TrackDef; skipped",
                        candidate.index, cand_name,
                    ))
                    continue
            else:
                track_def = candidate

            anim.tracks[bone.index] = ParsedBoneTrack(
                bone_index=bone.index,
                bone_name=bone.name,
                track_index=candidate.index,
                track_name=cand_name,
                definition=decode_track_def(document, track_def, track_cache),
                seconds_per_frame=seconds_per_frame(candidate, default_spf),
            )

    for anim in animations.values():
        for warning in anim.warnings:
            _log.warning("%s", warning)

    ordered = sorted(animations, key=lambda n: (n != rest_label, n))
    return {name: animations[name] for name in ordered}


def extract_animation_names(document, skeleton, profile=None) -> List[str]:
    """Quick scan: animation names of a skeleton, without decoding frames.

    Returns:
        Names with the rest animation first, then sorted.
    """
    profile = resolve_profile(document, profile)
    parsed_skeleton = extract_skeleton(document, skeleton, profile)
    rest_label = profile.animation.rest_animation_name
    indexes = _variant_indexes(document, parsed_skeleton)

    names = set()
    for bone in parsed_skeleton.bones:
        for candidate in _bone_candidates(document, bone, indexes):
            names.add(variant_name(document.name_of(candidate), bone.rest_track_name,
                                   rest_label) or rest_label)
    return sorted(names, key=lambda n: (n != rest_label, n))
