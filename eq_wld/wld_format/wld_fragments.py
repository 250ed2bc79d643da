"""Typed WLD fragment records and their binary parsers.

Every fragment body starts with an i32 name reference; the rest is
kind-specific. Fragments are immutable once parsed. Cross references are
stored as FragmentRef values (by index when the raw i32 is positive, by name
when it is negative, absent when it is 0).

Field layouts (little-endian, after name_ref):

BmInfo (0x03):
    u32 count - 1, then per entry: u16 length, encoded filename bytes

SimpleSpriteDef (0x04):
    u32 flags, u32 frame_count, [u32 current_frame if 0x20],
    [u32 sleep if 0x08], i32 frame_ref[frame_count] (-> BmInfo)

SimpleSprite (0x05):
    i32 reference (-> SimpleSpriteDef), u32 flags

HierarchicalSpriteDef (0x10):
    u32 flags, u32 dag_count, u32 collision_volume_ref,
    [f32 center_offset[3] if 0x01], [f32 bounding_radius if 0x02],
    Dag[dag_count],
    [if 0x200: u32 skin_count, i32 dm_sprite_ref[n], u32 link_skin_updates[n]]
    Dag: i32 name_ref, u32 flags, i32 track_ref, i32 mesh_or_sprite_ref,
         u32 sub_dag_count, u32 sub_dags[sub_dag_count]

HierarchicalSprite (0x11):
    i32 reference (-> HierarchicalSpriteDef), u32 params

TrackDef (0x12):
    u32 flags, u32 frame_count, Frame[frame_count]
    Frame (flags & 0x08): i16 rotate_denominator, i16 rotate_x, i16 rotate_y,
        i16 rotate_z, i16 shift_x, i16 shift_y, i16 shift_z, i16 shift_denominator
    Frame (legacy): the same eight values as f32

Track (0x13):
    i32 reference (-> TrackDef), u32 flags, [u32 sleep if 0x01]

ActorDef (0x14):
    u32 flags, i32 callback_name_ref, u32 action_count,
    u32 fragment_ref_count, i32 bounds_ref, [u32 current_action if 0x01],
    [Location if 0x02], Action[action_count], i32 fragment_ref[count]
    Action: u32 lod_count, u32 unknown, f32 lod_distance[lod_count]
    Location: f32 x, y, z, rotate_z, rotate_y, rotate_x, u32 unknown

Actor (0x15):
    i32 actor_def_ref (by name), u32 flags, i32 sphere_ref,
    [u32 current_action if 0x01], [Location if 0x02],
    [f32 bounding_radius if 0x04], [f32 scale_factor if 0x08],
    [i32 sound_name_ref if 0x10], i32 vertex_color_ref (-> DmRGBTrack),
    u32 user_data_size, u8 user_data[size]

LightDef (0x1B):
    u32 flags, u32 frame_count, [u32 current_frame if 0x01],
    [u32 sleep if 0x02], [f32 level[frame_count] if 0x04],
    [f32 rgb[frame_count][3] if 0x10]

Light (0x1C): i32 reference (-> LightDef), u32 flags
PointLight (0x28): i32 reference (-> Light), u32 flags, f32 x, y, z, radius
AmbientLight (0x2A): i32 reference (-> Light), u32 flags, u32 count, u32 regions[count]

DmSpriteDef (0x2C, float positions):
    u32 flags, u32 vertex_count, u32 uv_count, u32 normal_count,
    u32 color_count, u32 face_count, u16 size6, i16 fragment1,
    u32 skin_group_count, i32 material_list_ref, i32 fragment3,
    f32 center[3], u32 params2[3],
    f32 vertices[3], f32 uvs[2], f32 normals[3], u32 colors,
    Face[face_count], (u16 count, u16 bone)[skin_group_count],
    [data6 entries if size6, size8 block if 0x200: not interpreted],
    [if 0x800 and neither of the above: u32 group_count,
     (u16 face_count, u16 material)[group_count]]
    Bodies that do not fit this layout are kept as UnknownFragment.

DmSprite (0x2D): i32 reference (-> DmSpriteDef2 | DmSpriteDef), u32 params

MaterialDef (0x30):
    u32 flags, u32 render_method, u32 rgb_pen, f32 brightness,
    f32 scaled_ambient, i32 simple_sprite_ref (-> SimpleSprite),
    [u32, f32 pair if 0x02]

MaterialPalette (0x31): u32 flags, u32 count, i32 material_ref[count]

DmRGBTrackDef (0x32): u32 data1, u32 count, u32 data2, u32 data3, u32 colors[count]
DmRGBTrack (0x33): i32 reference (-> DmRGBTrackDef), u32 flags
GlobalAmbientLightDef (0x35): u32 color (BGRA)

DmSpriteDef2 (0x36, quantised positions):
    u32 flags, i32 material_list_ref, i32 animation_ref, i32 fragment3,
    i32 fragment4, f32 center[3], u32 params2[3], f32 max_distance,
    f32 min[3], f32 max[3], u16 position_count, u16 uv_count,
    u16 normal_count, u16 color_count, u16 face_count, u16 skin_group_count,
    u16 face_material_group_count, u16 vertex_material_group_count,
    u16 meshop_count, u16 scale,
    i16 positions[3], uvs (i16[2] old format / i32[2] new format),
    i8 normals[3], u32 colors, Face[face_count],
    (u16 count, u16 bone)[skin], (u16 face_count, u16 material)[face groups],
    (u16 vertex_count, u16 material)[vertex groups]

Face: u16 flags, u16 vertex_index[3]
"""

import struct
from dataclasses import dataclass
from typing import ClassVar, Optional, Tuple, Union

from .wld_constants import (
    FRAG_BM_INFO, FRAG_SIMPLE_SPRITE_DEF, FRAG_SIMPLE_SPRITE,
    FRAG_HIERARCHICAL_SPRITE_DEF, FRAG_HIERARCHICAL_SPRITE,
    FRAG_TRACK_DEF, FRAG_TRACK, FRAG_ACTOR_DEF, FRAG_ACTOR,
    FRAG_LIGHT_DEF, FRAG_LIGHT, FRAG_POINT_LIGHT, FRAG_AMBIENT_LIGHT,
    FRAG_DM_SPRITE_DEF, FRAG_DM_SPRITE, FRAG_MATERIAL_DEF,
    FRAG_MATERIAL_PALETTE, FRAG_DM_RGB_TRACK_DEF, FRAG_DM_RGB_TRACK,
    FRAG_GLOBAL_AMBIENT_LIGHT_DEF, FRAG_DM_SPRITE_DEF2,
    SPRITE_HAS_CURRENT_FRAME, SPRITE_HAS_SLEEP,
    HS_HAS_CENTER_OFFSET, HS_HAS_BOUNDING_RADIUS, HS_HAS_SKINS,
    TRACKDEF_QUANTIZED, TRACK_HAS_SLEEP,
    ACTORDEF_HAS_CURRENT_ACTION, ACTORDEF_HAS_LOCATION,
    ACTOR_HAS_CURRENT_ACTION, ACTOR_HAS_LOCATION, ACTOR_HAS_BOUNDING_RADIUS,
    ACTOR_HAS_SCALE_FACTOR, ACTOR_HAS_SOUND,
    LIGHT_HAS_CURRENT_FRAME, LIGHT_HAS_SLEEP, LIGHT_HAS_LEVELS, LIGHT_HAS_COLORS,
    MATERIAL_HAS_PAIR, DMSPRITEDEF_HAS_DATA8, DMSPRITEDEF_HAS_FACE_GROUPS,
)
from .wld_strings import decode_string_hash


# ---------------------------------------------------------------------------
# References
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class FragmentRef:
    """Reference to a fragment of an expected kind, by index or by name.

    Exactly one of ``index`` (1-based) or ``name_ref`` (negative string
    offset) is set. ``kind`` is a Fragment subclass or a tuple of them.
    """
    kind: Union[type, Tuple[type, ...]]
    index: Optional[int] = None
    name_ref: Optional[int] = None

    @classmethod
    def from_raw(cls, kind, raw):
        """Build a reference from the raw i32 stored in a fragment.

        Returns None when raw is 0 (no reference).
        """
        if raw > 0:
            return cls(kind, index=raw)
        if raw < 0:
            return cls(kind, name_ref=raw)
        return None

    @classmethod
    def by_index(cls, kind, index):
        return cls(kind, index=index)

    @classmethod
    def by_name(cls, kind, name_ref):
        return cls(kind, name_ref=name_ref)

    @property
    def is_by_name(self):
        return self.name_ref is not None

    @property
    def kind_name(self):
        if isinstance(self.kind, tuple):
            return " | ".join(k.__name__ for k in self.kind)
        return self.kind.__name__


# ---------------------------------------------------------------------------
# Fragment records
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Fragment:
    """Common header of all fragments."""
    TYPE_ID: ClassVar[int] = -1
    index: int      # 1-based position in the document
    name_ref: int   # raw i32 name reference

    @property
    def kind_name(self):
        return type(self).__name__


@dataclass(frozen=True)
class UnknownFragment(Fragment):
    """Fragment kind this decoder does not interpret; body kept raw."""
    type_id: int
    body: bytes


@dataclass(frozen=True)
class BmInfo(Fragment):
    TYPE_ID: ClassVar[int] = FRAG_BM_INFO
    filenames: Tuple[str, ...]


@dataclass(frozen=True)
class SimpleSpriteDef(Fragment):
    TYPE_ID: ClassVar[int] = FRAG_SIMPLE_SPRITE_DEF
    flags: int
    current_frame: Optional[int]
    sleep: Optional[int]            # milliseconds between frames
    frame_refs: Tuple[FragmentRef, ...]


@dataclass(frozen=True)
class SimpleSprite(Fragment):
    TYPE_ID: ClassVar[int] = FRAG_SIMPLE_SPRITE
    reference: Optional[FragmentRef]
    flags: int


@dataclass(frozen=True)
class Dag:
    """One joint of a HierarchicalSpriteDef."""
    name_ref: int
    flags: int
    track_ref: Optional[FragmentRef]            # Track, or TrackDef directly
    mesh_or_sprite_ref: Optional[FragmentRef]
    sub_dags: Tuple[int, ...]


@dataclass(frozen=True)
class HierarchicalSpriteDef(Fragment):
    TYPE_ID: ClassVar[int] = FRAG_HIERARCHICAL_SPRITE_DEF
    flags: int
    collision_volume_ref: int
    center_offset: Optional[Tuple[float, float, float]]
    bounding_radius: Optional[float]
    dags: Tuple[Dag, ...]
    dm_sprites: Tuple[FragmentRef, ...]
    link_skin_updates: Tuple[int, ...]


@dataclass(frozen=True)
class HierarchicalSprite(Fragment):
    TYPE_ID: ClassVar[int] = FRAG_HIERARCHICAL_SPRITE
    reference: Optional[FragmentRef]
    params: int


@dataclass(frozen=True)
class FrameTransform:
    """One keyframe of a TrackDef.

    Quantised frames hold integers; legacy frames hold the same values as
    floats. In both cases translation = shift / shift_denominator and the
    rotation quaternion is (rotate_denominator, rotate_x, rotate_y, rotate_z)
    before normalisation.
    """
    rotate_denominator: float
    rotate_x: float
    rotate_y: float
    rotate_z: float
    shift_x: float
    shift_y: float
    shift_z: float
    shift_denominator: float
    legacy: bool = False


@dataclass(frozen=True)
class TrackDef(Fragment):
    TYPE_ID: ClassVar[int] = FRAG_TRACK_DEF
    flags: int
    frames: Tuple[FrameTransform, ...]


@dataclass(frozen=True)
class Track(Fragment):
    TYPE_ID: ClassVar[int] = FRAG_TRACK
    reference: Optional[FragmentRef]
    flags: int
    sleep: Optional[int]            # milliseconds per frame


@dataclass(frozen=True)
class Location:
    x: float
    y: float
    z: float
    rotate_x: float
    rotate_y: float
    rotate_z: float


@dataclass(frozen=True)
class ActorAction:
    lod_distances: Tuple[float, ...]


@dataclass(frozen=True)
class ActorDef(Fragment):
    TYPE_ID: ClassVar[int] = FRAG_ACTOR_DEF
    flags: int
    callback_name_ref: int
    bounds_ref: int
    current_action: Optional[int]
    location: Optional[Location]
    actions: Tuple[ActorAction, ...]
    fragment_refs: Tuple[FragmentRef, ...]


@dataclass(frozen=True)
class Actor(Fragment):
    TYPE_ID: ClassVar[int] = FRAG_ACTOR
    actor_def_ref: Optional[FragmentRef]
    flags: int
    sphere_ref: int
    current_action: Optional[int]
    location: Optional[Location]
    bounding_radius: Optional[float]
    scale_factor: Optional[float]
    sound_name_ref: Optional[int]
    vertex_color_ref: Optional[FragmentRef]
    user_data: bytes


@dataclass(frozen=True)
class LightDef(Fragment):
    TYPE_ID: ClassVar[int] = FRAG_LIGHT_DEF
    flags: int
    frame_count: int
    current_frame: Optional[int]
    sleep: Optional[int]
    light_levels: Tuple[float, ...]
    colors: Tuple[Tuple[float, float, float], ...]


@dataclass(frozen=True)
class Light(Fragment):
    TYPE_ID: ClassVar[int] = FRAG_LIGHT
    reference: Optional[FragmentRef]
    flags: int


@dataclass(frozen=True)
class PointLight(Fragment):
    TYPE_ID: ClassVar[int] = FRAG_POINT_LIGHT
    reference: Optional[FragmentRef]
    flags: int
    position: Tuple[float, float, float]
    radius: float


@dataclass(frozen=True)
class AmbientLight(Fragment):
    TYPE_ID: ClassVar[int] = FRAG_AMBIENT_LIGHT
    reference: Optional[FragmentRef]
    flags: int
    regions: Tuple[int, ...]


@dataclass(frozen=True)
class MeshFace:
    flags: int
    vertex_indexes: Tuple[int, int, int]


@dataclass(frozen=True)
class DmSpriteDef(Fragment):
    """Mesh with plain float32 positions."""
    TYPE_ID: ClassVar[int] = FRAG_DM_SPRITE_DEF
    flags: int
    material_list_ref: Optional[FragmentRef]
    center: Tuple[float, float, float]
    positions: Tuple[Tuple[float, float, float], ...]
    texture_coordinates: Tuple[Tuple[float, float], ...]
    vertex_normals: Tuple[Tuple[float, float, float], ...]
    vertex_colors: Tuple[int, ...]
    faces: Tuple[MeshFace, ...]
    skin_assignment_groups: Tuple[Tuple[int, int], ...]
    face_material_groups: Optional[Tuple[Tuple[int, int], ...]]


@dataclass(frozen=True)
class DmSprite(Fragment):
    TYPE_ID: ClassVar[int] = FRAG_DM_SPRITE
    reference: Optional[FragmentRef]
    params: int


@dataclass(frozen=True)
class MaterialDef(Fragment):
    TYPE_ID: ClassVar[int] = FRAG_MATERIAL_DEF
    flags: int
    render_method: int
    rgb_pen: int
    brightness: float
    scaled_ambient: float
    simple_sprite_ref: Optional[FragmentRef]
    pair: Optional[Tuple[int, float]]


@dataclass(frozen=True)
class MaterialPalette(Fragment):
    TYPE_ID: ClassVar[int] = FRAG_MATERIAL_PALETTE
    flags: int
    material_refs: Tuple[FragmentRef, ...]


@dataclass(frozen=True)
class DmRGBTrackDef(Fragment):
    TYPE_ID: ClassVar[int] = FRAG_DM_RGB_TRACK_DEF
    vertex_colors: Tuple[int, ...]


@dataclass(frozen=True)
class DmRGBTrack(Fragment):
    TYPE_ID: ClassVar[int] = FRAG_DM_RGB_TRACK
    reference: Optional[FragmentRef]
    flags: int


@dataclass(frozen=True)
class GlobalAmbientLightDef(Fragment):
    TYPE_ID: ClassVar[int] = FRAG_GLOBAL_AMBIENT_LIGHT_DEF
    color: int


@dataclass(frozen=True)
class DmSpriteDef2(Fragment):
    """Mesh with int16 positions sharing a power-of-two scale."""
    TYPE_ID: ClassVar[int] = FRAG_DM_SPRITE_DEF2
    flags: int
    material_list_ref: Optional[FragmentRef]
    animation_ref: Optional[FragmentRef]
    center: Tuple[float, float, float]
    max_distance: float
    min: Tuple[float, float, float]
    max: Tuple[float, float, float]
    scale: int
    positions: Tuple[Tuple[int, int, int], ...]
    texture_coordinates: Tuple[Tuple[int, int], ...]
    vertex_normals: Tuple[Tuple[int, int, int], ...]
    vertex_colors: Tuple[int, ...]
    faces: Tuple[MeshFace, ...]
    skin_assignment_groups: Tuple[Tuple[int, int], ...]
    face_material_groups: Tuple[Tuple[int, int], ...]
    vertex_material_groups: Tuple[Tuple[int, int], ...]


MESH_KINDS = (DmSpriteDef2, DmSpriteDef)


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------

class _Cursor:
    """Sequential little-endian reader over a fragment body.

    Reading past the end raises struct.error, which the reader turns into
    a MalformedInputError for the fragment.
    """

    __slots__ = ('data', 'pos')

    def __init__(self, data, pos=0):
        self.data = data
        self.pos = pos

    def unpack(self, fmt):
        result = struct.unpack_from("<" + fmt, self.data, self.pos)
        self.pos += struct.calcsize("<" + fmt)
        return result

    def u16(self):
        return self.unpack("H")[0]

    def u32(self):
        return self.unpack("I")[0]

    def i32(self):
        return self.unpack("i")[0]

    def f32(self):
        return self.unpack("f")[0]

    def vec3f(self):
        return self.unpack("3f")

    def array(self, fmt, count):
        """Read ``count`` records of ``fmt``; single-value records are flattened."""
        size = struct.calcsize("<" + fmt)
        if self.pos + size * count > len(self.data):
            raise struct.error(
                f"need {size * count} bytes at offset {self.pos}, have {len(self.data) - self.pos}"
            )
        items = tuple(struct.iter_unpack("<" + fmt, self.data[self.pos:self.pos + size * count]))
        self.pos += size * count
        if len(fmt.lstrip("<")) == 1:
            return tuple(item[0] for item in items)
        return items

    def raw(self, size):
        if self.pos + size > len(self.data):
            raise struct.error(f"need {size} bytes at offset {self.pos}")
        value = bytes(self.data[self.pos:self.pos + size])
        self.pos += size
        return value


def _refs(kind, raws):
    return tuple(ref for ref in (FragmentRef.from_raw(kind, r) for r in raws) if ref is not None)


def _read_location(cur):
    x, y, z, rot_z, rot_y, rot_x = cur.unpack("6f")
    cur.u32()  # unknown
    return Location(x=x, y=y, z=z, rotate_x=rot_x, rotate_y=rot_y, rotate_z=rot_z)


def _read_faces(cur, count):
    return tuple(
        MeshFace(flags=f, vertex_indexes=(a, b, c))
        for f, a, b, c in cur.array("4H", count)
    )


def _parse_bm_info(cur, index, name_ref, old_format):
    count = cur.u32() + 1
    filenames = []
    for _ in range(count):
        length = cur.u16()
        raw = decode_string_hash(cur.raw(length))
        filenames.append(raw.split(b"\0", 1)[0].decode("latin-1"))
    return BmInfo(index, name_ref, filenames=tuple(filenames))


def _parse_simple_sprite_def(cur, index, name_ref, old_format):
    flags = cur.u32()
    frame_count = cur.u32()
    current_frame = cur.u32() if flags & SPRITE_HAS_CURRENT_FRAME else None
    sleep = cur.u32() if flags & SPRITE_HAS_SLEEP else None
    frame_refs = _refs(BmInfo, cur.array("i", frame_count))
    return SimpleSpriteDef(index, name_ref, flags=flags, current_frame=current_frame,
                           sleep=sleep, frame_refs=frame_refs)


def _parse_simple_sprite(cur, index, name_ref, old_format):
    reference = FragmentRef.from_raw(SimpleSpriteDef, cur.i32())
    return SimpleSprite(index, name_ref, reference=reference, flags=cur.u32())


def _parse_dag(cur):
    name_ref, flags, track_raw, mesh_raw, sub_count = cur.unpack("iIiiI")
    return Dag(
        name_ref=name_ref,
        flags=flags,
        track_ref=FragmentRef.from_raw((Track, TrackDef), track_raw),
        mesh_or_sprite_ref=FragmentRef.from_raw(Fragment, mesh_raw),
        sub_dags=cur.array("I", sub_count),
    )


def _parse_hierarchical_sprite_def(cur, index, name_ref, old_format):
    flags = cur.u32()
    dag_count = cur.u32()
    collision_volume_ref = cur.u32()
    center_offset = cur.vec3f() if flags & HS_HAS_CENTER_OFFSET else None
    bounding_radius = cur.f32() if flags & HS_HAS_BOUNDING_RADIUS else None
    dags = tuple(_parse_dag(cur) for _ in range(dag_count))
    dm_sprites = ()
    link_skin_updates = ()
    if flags & HS_HAS_SKINS:
        skin_count = cur.u32()
        dm_sprites = _refs(DmSprite, cur.array("i", skin_count))
        link_skin_updates = cur.array("I", skin_count)
    return HierarchicalSpriteDef(
        index, name_ref, flags=flags, collision_volume_ref=collision_volume_ref,
        center_offset=center_offset, bounding_radius=bounding_radius, dags=dags,
        dm_sprites=dm_sprites, link_skin_updates=link_skin_updates,
    )


def _parse_hierarchical_sprite(cur, index, name_ref, old_format):
    reference = FragmentRef.from_raw(HierarchicalSpriteDef, cur.i32())
    return HierarchicalSprite(index, name_ref, reference=reference, params=cur.u32())


def _parse_track_def(cur, index, name_ref, old_format):
    flags = cur.u32()
    frame_count = cur.u32()
    if flags & TRACKDEF_QUANTIZED:
        frames = tuple(FrameTransform(*values) for values in cur.array("8h", frame_count))
    else:
        frames = tuple(
            FrameTransform(*values, legacy=True) for values in cur.array("8f", frame_count)
        )
    return TrackDef(index, name_ref, flags=flags, frames=frames)


def _parse_track(cur, index, name_ref, old_format):
    reference = FragmentRef.from_raw(TrackDef, cur.i32())
    flags = cur.u32()
    sleep = cur.u32() if flags & TRACK_HAS_SLEEP else None
    return Track(index, name_ref, reference=reference, flags=flags, sleep=sleep)


def _parse_actor_def(cur, index, name_ref, old_format):
    flags = cur.u32()
    callback_name_ref = cur.i32()
    action_count = cur.u32()
    fragment_ref_count = cur.u32()
    bounds_ref = cur.i32()
    current_action = cur.u32() if flags & ACTORDEF_HAS_CURRENT_ACTION else None
    location = _read_location(cur) if flags & ACTORDEF_HAS_LOCATION else None
    actions = []
    for _ in range(action_count):
        lod_count = cur.u32()
        cur.u32()  # unknown
        actions.append(ActorAction(lod_distances=cur.array("f", lod_count)))
    fragment_refs = _refs(Fragment, cur.array("i", fragment_ref_count))
    return ActorDef(
        index, name_ref, flags=flags, callback_name_ref=callback_name_ref,
        bounds_ref=bounds_ref, current_action=current_action, location=location,
        actions=tuple(actions), fragment_refs=fragment_refs,
    )


def _parse_actor(cur, index, name_ref, old_format):
    actor_def_ref = FragmentRef.from_raw(ActorDef, cur.i32())
    flags = cur.u32()
    sphere_ref = cur.i32()
    current_action = cur.u32() if flags & ACTOR_HAS_CURRENT_ACTION else None
    location = _read_location(cur) if flags & ACTOR_HAS_LOCATION else None
    bounding_radius = cur.f32() if flags & ACTOR_HAS_BOUNDING_RADIUS else None
    scale_factor = cur.f32() if flags & ACTOR_HAS_SCALE_FACTOR else None
    sound_name_ref = cur.i32() if flags & ACTOR_HAS_SOUND else None
    vertex_color_ref = FragmentRef.from_raw(DmRGBTrack, cur.i32())
    user_data = cur.raw(cur.u32())
    return Actor(
        index, name_ref, actor_def_ref=actor_def_ref, flags=flags,
        sphere_ref=sphere_ref, current_action=current_action, location=location,
        bounding_radius=bounding_radius, scale_factor=scale_factor,
        sound_name_ref=sound_name_ref, vertex_color_ref=vertex_color_ref,
        user_data=user_data,
    )


def _parse_light_def(cur, index, name_ref, old_format):
    flags = cur.u32()
    frame_count = cur.u32()
    current_frame = cur.u32() if flags & LIGHT_HAS_CURRENT_FRAME else None
    sleep = cur.u32() if flags & LIGHT_HAS_SLEEP else None
    levels = cur.array("f", frame_count) if flags & LIGHT_HAS_LEVELS else ()
    colors = cur.array("3f", frame_count) if flags & LIGHT_HAS_COLORS else ()
    return LightDef(index, name_ref, flags=flags, frame_count=frame_count,
                    current_frame=current_frame, sleep=sleep,
                    light_levels=levels, colors=colors)


def _parse_light(cur, index, name_ref, old_format):
    reference = FragmentRef.from_raw(LightDef, cur.i32())
    return Light(index, name_ref, reference=reference, flags=cur.u32())


def _parse_point_light(cur, index, name_ref, old_format):
    reference = FragmentRef.from_raw(Light, cur.i32())
    flags = cur.u32()
    x, y, z, radius = cur.unpack("4f")
    return PointLight(index, name_ref, reference=reference, flags=flags,
                      position=(x, y, z), radius=radius)


def _parse_ambient_light(cur, index, name_ref, old_format):
    reference = FragmentRef.from_raw(Light, cur.i32())
    flags = cur.u32()
    regions = cur.array("I", cur.u32())
    return AmbientLight(index, name_ref, reference=reference, flags=flags, regions=regions)


def _parse_dm_sprite_def(cur, index, name_ref, old_format):
    flags = cur.u32()
    (vertex_count, uv_count, normal_count, color_count,
     face_count) = cur.unpack("5I")
    size6, _fragment1 = cur.unpack("Hh")
    skin_count = cur.u32()
    material_list_ref = FragmentRef.from_raw(MaterialPalette, cur.i32())
    cur.i32()  # fragment3
    center = cur.vec3f()
    cur.unpack("3I")  # params2
    positions = cur.array("3f", vertex_count)
    uvs = cur.array("2f", uv_count)
    normals = cur.array("3f", normal_count)
    colors = cur.array("I", color_count)
    faces = _read_faces(cur, face_count)
    for face in faces:
        if max(face.vertex_indexes) >= vertex_count:
            raise ValueError(
                f"face {face.vertex_indexes} indexes past {vertex_count} vertices"
            )
    skin_groups = cur.array("2H", skin_count)
    face_material_groups = None
    if (flags & DMSPRITEDEF_HAS_FACE_GROUPS and not size6
            and not flags & DMSPRITEDEF_HAS_DATA8):
        face_material_groups = cur.array("2H", cur.u32())
    return DmSpriteDef(
        index, name_ref, flags=flags, material_list_ref=material_list_ref,
        center=center, positions=positions, texture_coordinates=uvs,
        vertex_normals=normals, vertex_colors=colors, faces=faces,
        skin_assignment_groups=skin_groups,
        face_material_groups=face_material_groups,
    )


def _parse_dm_sprite(cur, index, name_ref, old_format):
    reference = FragmentRef.from_raw(MESH_KINDS, cur.i32())
    return DmSprite(index, name_ref, reference=reference, params=cur.u32())


def _parse_material_def(cur, index, name_ref, old_format):
    flags, render_method, rgb_pen = cur.unpack("3I")
    brightness, scaled_ambient = cur.unpack("2f")
    simple_sprite_ref = FragmentRef.from_raw(SimpleSprite, cur.i32())
    pair = cur.unpack("If") if flags & MATERIAL_HAS_PAIR else None
    return MaterialDef(
        index, name_ref, flags=flags, render_method=render_method,
        rgb_pen=rgb_pen, brightness=brightness, scaled_ambient=scaled_ambient,
        simple_sprite_ref=simple_sprite_ref, pair=pair,
    )


def _parse_material_palette(cur, index, name_ref, old_format):
    flags = cur.u32()
    count = cur.u32()
    # Slots must keep their positions: mesh material groups index into this list
    material_refs = tuple(
        FragmentRef.from_raw(MaterialDef, raw) for raw in cur.array("i", count)
    )
    return MaterialPalette(index, name_ref, flags=flags, material_refs=material_refs)


def _parse_dm_rgb_track_def(cur, index, name_ref, old_format):
    _data1, count, _data2, _data3 = cur.unpack("4I")
    return DmRGBTrackDef(index, name_ref, vertex_colors=cur.array("I", count))


def _parse_dm_rgb_track(cur, index, name_ref, old_format):
    reference = FragmentRef.from_raw(DmRGBTrackDef, cur.i32())
    return DmRGBTrack(index, name_ref, reference=reference, flags=cur.u32())


def _parse_global_ambient_light_def(cur, index, name_ref, old_format):
    return GlobalAmbientLightDef(index, name_ref, color=cur.u32())


def _parse_dm_sprite_def2(cur, index, name_ref, old_format):
    flags = cur.u32()
    material_list_ref = FragmentRef.from_raw(MaterialPalette, cur.i32())
    animation_ref = FragmentRef.from_raw(Fragment, cur.i32())
    cur.unpack("2i")  # fragment3, fragment4
    center = cur.vec3f()
    cur.unpack("3I")  # params2
    max_distance = cur.f32()
    bbox_min = cur.vec3f()
    bbox_max = cur.vec3f()
    (position_count, uv_count, normal_count, color_count, face_count,
     skin_count, face_group_count, vertex_group_count,
     _meshop_count, scale) = cur.unpack("10H")

    positions = cur.array("3h", position_count)
    uvs = cur.array("2h" if old_format else "2i", uv_count)
    normals = cur.array("3b", normal_count)
    colors = cur.array("I", color_count)
    faces = _read_faces(cur, face_count)
    skin_groups = cur.array("2H", skin_count)
    face_material_groups = cur.array("2H", face_group_count)
    vertex_material_groups = cur.array("2H", vertex_group_count)
    # mesh ops follow; not interpreted

    return DmSpriteDef2(
        index, name_ref, flags=flags, material_list_ref=material_list_ref,
        animation_ref=animation_ref, center=center, max_distance=max_distance,
        min=bbox_min, max=bbox_max, scale=scale, positions=positions,
        texture_coordinates=uvs, vertex_normals=normals, vertex_colors=colors,
        faces=faces, skin_assignment_groups=skin_groups,
        face_material_groups=face_material_groups,
        vertex_material_groups=vertex_material_groups,
    )


FRAGMENT_PARSERS = {
    FRAG_BM_INFO: _parse_bm_info,
    FRAG_SIMPLE_SPRITE_DEF: _parse_simple_sprite_def,
    FRAG_SIMPLE_SPRITE: _parse_simple_sprite,
    FRAG_HIERARCHICAL_SPRITE_DEF: _parse_hierarchical_sprite_def,
    FRAG_HIERARCHICAL_SPRITE: _parse_hierarchical_sprite,
    FRAG_TRACK_DEF: _parse_track_def,
    FRAG_TRACK: _parse_track,
    FRAG_ACTOR_DEF: _parse_actor_def,
    FRAG_ACTOR: _parse_actor,
    FRAG_LIGHT_DEF: _parse_light_def,
    FRAG_LIGHT: _parse_light,
    FRAG_POINT_LIGHT: _parse_point_light,
    FRAG_AMBIENT_LIGHT: _parse_ambient_light,
    FRAG_DM_SPRITE_DEF: _parse_dm_sprite_def,
    FRAG_DM_SPRITE: _parse_dm_sprite,
    FRAG_MATERIAL_DEF: _parse_material_def,
    FRAG_MATERIAL_PALETTE: _parse_material_palette,
    FRAG_DM_RGB_TRACK_DEF: _parse_dm_rgb_track_def,
    FRAG_DM_RGB_TRACK: _parse_dm_rgb_track,
    FRAG_GLOBAL_AMBIENT_LIGHT_DEF: _parse_global_ambient_light_def,
    FRAG_DM_SPRITE_DEF2: _parse_dm_sprite_def2,
}

# Kinds kept as UnknownFragment when the body does not fit the documented layout
RAW_FALLBACK_TYPES = frozenset({FRAG_DM_SPRITE_DEF})


def parse_fragment(index, type_id, body, old_format=False):
    """Parse one fragment body into its typed record.

    Args:
        index: 1-based fragment index
        type_id: fragment type id from the fragment header
        body: fragment body bytes (starting with the name reference)
        old_format: True for the original WLD version (affects mesh UVs)

    Returns:
        A Fragment subclass instance (UnknownFragment for unhandled kinds).

    Raises:
        struct.error: if the body is shorter than its layout requires
        ValueError: if a 0x2C body holds face indices past its vertex count
    """
    cur = _Cursor(body)
    name_ref = cur.i32()
    parser = FRAGMENT_PARSERS.get(type_id)
    if parser is None:
        return UnknownFragment(index, name_ref, type_id=type_id, body=bytes(body[4:]))
    return parser(cur, index, name_ref, old_format)
