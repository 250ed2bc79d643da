"""Format-revision profiles for WLD decoding.

The WLD binary layout is shared by every revision of the client, but the
*naming conventions* layered on top of it are not. Skeleton, DAG and track
names encode the actor tag and animation names, and the rule used to strip
them changed between revisions. Each known revision gets a FormatProfile
that pins those conventions down.

Profiles are registered in a global dict and can be selected by id or
auto-detected from a parsed document.

Adding a new revision:
    1. Collect skeleton and DAG names from reference files
    2. Work out the actor-tag marker and the bone-name strip rule
    3. Create a FormatProfile with the discovered parameters
    4. Call register_profile() to add it to the registry
"""

from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple

from .wld_format.wld_constants import WLD_VERSION_OLD, WLD_VERSION_NEW


# Bone-name strip strategies
NAMING_SUBSTRING = "substring"
NAMING_PREFIX = "prefix"


# ---------------------------------------------------------------------------
# Configuration dataclasses
# ---------------------------------------------------------------------------

@dataclass
class NamingConfig:
    """How actor tags and generic bone names are derived from names."""

    # Strip rule for DAG names:
    #   "substring" = remove every occurrence of the tag, then the DAG marker
    #   "prefix"    = remove a leading "<tag>_"
    strategy: str = NAMING_SUBSTRING

    # Marker removed from the skeleton's own name to obtain the actor tag.
    # Suffix markers start with "_", prefix markers end with "_".
    skeleton_marker: str = "_HS_DEF"

    # Suffix removed from DAG names after the tag (substring strategy only).
    dag_marker: str = "_DAG"

    # Name given to the bone whose generic name comes out empty.
    root_bone_name: str = "ROOT"


@dataclass
class AnimationConfig:
    """Animation discovery and timing."""

    # Name of the unprefixed (rest pose) animation.
    rest_animation_name: str = "REST"

    # Used when a Track carries no sleep value.
    default_seconds_per_frame: float = 0.1


@dataclass
class GeometryConfig:
    """Fixed-point divisors for DmSpriteDef2 attributes."""

    uv_divisor: float = 256.0
    normal_divisor: float = 127.0


@dataclass
class FormatProfile:
    """Complete profile for one revision of the WLD naming conventions."""

    profile_id: str = "trilogy"

    # WLD header versions this profile applies to.
    versions: Tuple[int, ...] = (WLD_VERSION_OLD,)

    naming: NamingConfig = field(default_factory=NamingConfig)
    animation: AnimationConfig = field(default_factory=AnimationConfig)
    geometry: GeometryConfig = field(default_factory=GeometryConfig)

    def actor_tag(self, skeleton_name: str) -> str:
        """Derive the actor tag from a skeleton name."""
        marker = self.naming.skeleton_marker
        if not skeleton_name:
            return ""
        if marker.endswith("_") and skeleton_name.startswith(marker):
            return skeleton_name[len(marker):]
        if skeleton_name.endswith(marker):
            return skeleton_name[:-len(marker)]
        return skeleton_name

    def matches_skeleton_name(self, skeleton_name: str) -> bool:
        marker = self.naming.skeleton_marker
        if marker.endswith("_"):
            return skeleton_name.startswith(marker)
        return skeleton_name.endswith(marker)


# ---------------------------------------------------------------------------
# Profile registry
# ---------------------------------------------------------------------------

FORMAT_PROFILES: Dict[str, FormatProfile] = {}

DEFAULT_PROFILE_ID = "trilogy"


def register_profile(profile: FormatProfile) -> None:
    """Register a format profile in the global registry."""
    FORMAT_PROFILES[profile.profile_id] = profile


def get_profile(profile_id: str) -> Optional[FormatProfile]:
    """Look up a profile by its id."""
    return FORMAT_PROFILES.get(profile_id)


def resolve_profile(document, profile=None) -> FormatProfile:
    """Return ``profile`` if given (object or id), else auto-detect."""
    if isinstance(profile, FormatProfile):
        return profile
    if profile and profile != "auto":
        found = get_profile(profile)
        if found is None:
            raise KeyError(f"Unknown format profile: {profile!r}")
        return found
    return detect_profile(document)


# ---------------------------------------------------------------------------
# Auto-detection
# ---------------------------------------------------------------------------

def detect_profile(document) -> FormatProfile:
    """Auto-detect the best matching FormatProfile for a parsed document.

    Strategy:
        1. +1 when the header version is one the profile lists.
        2. +3 for every skeleton whose name carries the profile's marker
           (names are the strongest signal of the naming revision).
        3. Return the highest-scoring profile, or the trilogy default.
    """
    version = document.header.version
    skeleton_names = [
        document.name_of(skel) or "" for skel in document.skeletons()
    ]

    best_score = -1
    best_profile = None

    for profile in FORMAT_PROFILES.values():
        score = 0
        if version in profile.versions:
            score += 1
        for name in skeleton_names:
            if profile.matches_skeleton_name(name):
                score += 3
        if score > best_score:
            best_score = score
            best_profile = profile

    if best_profile is None:
        best_profile = FORMAT_PROFILES[DEFAULT_PROFILE_ID]

    return best_profile


# ---------------------------------------------------------------------------
# Built-in profiles
# ---------------------------------------------------------------------------

register_profile(FormatProfile(
    profile_id="trilogy",
    versions=(WLD_VERSION_OLD,),
    naming=NamingConfig(
        strategy=NAMING_SUBSTRING,
        skeleton_marker="_HS_DEF",
        dag_marker="_DAG",
    ),
))

register_profile(FormatProfile(
    profile_id="luclin",
    versions=(WLD_VERSION_NEW,),
    naming=NamingConfig(
        strategy=NAMING_SUBSTRING,
        skeleton_marker="_HS_DEF",
        dag_marker="_DAG",
    ),
))

register_profile(FormatProfile(
    profile_id="actordef_prefix",
    versions=(WLD_VERSION_OLD, WLD_VERSION_NEW),
    naming=NamingConfig(
        strategy=NAMING_PREFIX,
        skeleton_marker="ACTORDEF_",
        dag_marker="",
    ),
))
