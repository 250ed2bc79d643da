"""Constants for the WLD binary format."""

# Magic value at offset 0 of every WLD file
WLD_MAGIC = 0x54503D02

# Header versions
WLD_VERSION_OLD = 0x00015500   # original trilogy zones/characters
WLD_VERSION_NEW = 0x1000C800   # Luclin and later

# Header field indices (7 uint32 fields, 28 bytes total)
H_MAGIC = 0
H_VERSION = 1
H_FRAGMENT_COUNT = 2
H_REGION_COUNT = 3
H_MAX_OBJECT_BYTES = 4
H_STRING_HASH_SIZE = 5
H_STRING_COUNT = 6

# Header size in bytes
HEADER_SIZE = 0x1C  # 28 bytes = 7 * 4

# Fragment header: size u32 + type u32
FRAGMENT_HEADER_SIZE = 8

# XOR key applied to the string hash and to BmInfo filenames
STRING_HASH_KEY = bytes((0x95, 0x3A, 0xC5, 0x2A, 0x95, 0x7A, 0x95, 0x6A))

# Fragment type ids
FRAG_BM_INFO = 0x03
FRAG_SIMPLE_SPRITE_DEF = 0x04
FRAG_SIMPLE_SPRITE = 0x05
FRAG_HIERARCHICAL_SPRITE_DEF = 0x10
FRAG_HIERARCHICAL_SPRITE = 0x11
FRAG_TRACK_DEF = 0x12
FRAG_TRACK = 0x13
FRAG_ACTOR_DEF = 0x14
FRAG_ACTOR = 0x15
FRAG_LIGHT_DEF = 0x1B
FRAG_LIGHT = 0x1C
FRAG_POINT_LIGHT = 0x28
FRAG_AMBIENT_LIGHT = 0x2A
FRAG_DM_SPRITE_DEF = 0x2C
FRAG_DM_SPRITE = 0x2D
FRAG_MATERIAL_DEF = 0x30
FRAG_MATERIAL_PALETTE = 0x31
FRAG_DM_RGB_TRACK_DEF = 0x32
FRAG_DM_RGB_TRACK = 0x33
FRAG_GLOBAL_AMBIENT_LIGHT_DEF = 0x35
FRAG_DM_SPRITE_DEF2 = 0x36

# SimpleSpriteDef flags
SPRITE_HAS_CURRENT_FRAME = 0x20
SPRITE_HAS_SLEEP = 0x08

# HierarchicalSpriteDef flags
HS_HAS_CENTER_OFFSET = 0x01
HS_HAS_BOUNDING_RADIUS = 0x02
HS_HAS_SKINS = 0x200

# TrackDef flags: bit 3 set = quantised int16 frames, clear = legacy float frames
TRACKDEF_QUANTIZED = 0x08

# Track flags
TRACK_HAS_SLEEP = 0x01

# ActorDef flags
ACTORDEF_HAS_CURRENT_ACTION = 0x01
ACTORDEF_HAS_LOCATION = 0x02

# Actor flags
ACTOR_HAS_CURRENT_ACTION = 0x01
ACTOR_HAS_LOCATION = 0x02
ACTOR_HAS_BOUNDING_RADIUS = 0x04
ACTOR_HAS_SCALE_FACTOR = 0x08
ACTOR_HAS_SOUND = 0x10

# LightDef flags
LIGHT_HAS_CURRENT_FRAME = 0x01
LIGHT_HAS_SLEEP = 0x02
LIGHT_HAS_LEVELS = 0x04
LIGHT_HAS_COLORS = 0x10

# MaterialDef flags / render method
MATERIAL_HAS_PAIR = 0x02
RENDER_METHOD_USER_DEFINED = 0x80000000

# DmSpriteDef (float layout) flags
DMSPRITEDEF_HAS_DATA8 = 0x200
DMSPRITEDEF_HAS_FACE_GROUPS = 0x800

# Face flags
FACE_PASSABLE = 0x10

# Actor rotations are stored in 512ths of a full turn
ROTATION_UNITS_PER_TURN = 512.0
