import struct

import pytest

from eq_wld.wld_format.wld_constants import FRAG_DM_SPRITE_DEF, FRAG_TRACK, WLD_MAGIC
from eq_wld.wld_format.wld_errors import InvalidStringRefError, MalformedInputError
from eq_wld.wld_format.wld_fragments import (
    BmInfo, DmSpriteDef, DmSpriteDef2, FrameTransform, TrackDef, UnknownFragment,
)
from eq_wld.wld_format.wld_header import WLDHeader
from eq_wld.wld_format.wld_reader import WLDReader
from eq_wld.wld_format.wld_strings import StringTable, decode_string_hash, encode_string_hash

from .wld_builder import IDENTITY_FRAME, WLD_VERSION_NEW, WLD_VERSION_OLD, WLDBuilder


def test_header_fields():
    b = WLDBuilder()
    b.track_def("A_TRACKDEF", [IDENTITY_FRAME])
    header = WLDHeader.read(b.build())
    assert header.magic == WLD_MAGIC
    assert header.version == WLD_VERSION_OLD
    assert header.fragment_count == 1
    assert header.is_old_format


def test_new_version_is_not_old_format():
    header = WLDHeader.read(WLDBuilder(WLD_VERSION_NEW).build())
    assert not header.is_old_format


def test_bad_magic():
    data = bytearray(WLDBuilder().build())
    data[0:4] = struct.pack("<I", 0xDEADBEEF)
    with pytest.raises(MalformedInputError, match="magic"):
        WLDReader(bytes(data)).read()


def test_unknown_version():
    data = bytearray(WLDBuilder().build())
    data[4:8] = struct.pack("<I", 0x12345678)
    with pytest.raises(MalformedInputError, match="version"):
        WLDReader(bytes(data)).read()


def test_truncated_header():
    with pytest.raises(MalformedInputError):
        WLDReader(WLDBuilder().build()[:20]).read()


def test_truncated_string_hash():
    b = WLDBuilder()
    b.name("SOME_LONG_NAME_FOR_THE_TABLE")
    data = b.build()
    with pytest.raises(MalformedInputError, match="string hash"):
        WLDReader(data[:32]).read()


def test_missing_fragment_reports_index():
    b = WLDBuilder()
    b.track_def("A_TRACKDEF", [IDENTITY_FRAME])
    with pytest.raises(MalformedInputError) as exc:
        WLDReader(b.build(fragment_count=2)).read()
    assert exc.value.fragment_index == 2


def test_fragment_size_past_end():
    b = WLDBuilder()
    b.track_def("A_TRACKDEF", [IDENTITY_FRAME])
    data = b.build()
    with pytest.raises(MalformedInputError) as exc:
        WLDReader(data[:-4]).read()
    assert exc.value.fragment_index == 1


def test_short_body_is_malformed():
    b = WLDBuilder()
    b.track_def("A_TRACKDEF", [IDENTITY_FRAME])
    # name_ref only; a Track needs a reference and flags too
    b.raw(FRAG_TRACK, struct.pack("<i", 0))
    with pytest.raises(MalformedInputError) as exc:
        WLDReader(b.build()).read()
    assert exc.value.fragment_index == 2
    assert "0x13" in str(exc.value)


def test_unknown_fragment_kept_raw():
    b = WLDBuilder()
    b.add(0x22, "R1", b"\x01\x02\x03")
    reader = WLDReader(b.build()).read()
    frag = reader.fragments[0]
    assert isinstance(frag, UnknownFragment)
    assert frag.type_id == 0x22
    assert frag.body == b"\x01\x02\x03"
    assert reader.unknown_type_counts == {0x22: 1}


def test_float_mesh_that_does_not_fit_is_kept_raw():
    b = WLDBuilder()
    # counts claim 9 vertices but the body ends after the header words
    body = struct.pack("<i6I", b.name("ODD_DMSPRITEDEF"), 0, 9, 0, 0, 0, 0)
    b.raw(FRAG_DM_SPRITE_DEF, body)
    b.track_def("A_TRACKDEF", [IDENTITY_FRAME])
    reader = WLDReader(b.build()).read()
    frag = reader.fragments[0]
    assert isinstance(frag, UnknownFragment)
    assert frag.type_id == FRAG_DM_SPRITE_DEF
    assert frag.body == body[4:]
    assert isinstance(reader.fragments[1], TrackDef)


def test_float_mesh_with_face_past_vertices_is_kept_raw():
    b = WLDBuilder()
    b.dm_sprite_def("ODD_DMSPRITEDEF", [(0.0, 0.0, 0.0)] * 3, [(0, 1, 7)])
    reader = WLDReader(b.build()).read()
    assert isinstance(reader.fragments[0], UnknownFragment)


def test_float_mesh_layout():
    b = WLDBuilder()
    b.dm_sprite_def("ROCK_DMSPRITEDEF", [(1.0, 2.0, 3.0)] * 3, [(0, 1, 2)],
                    skin=[(3, 0)], face_groups=[(1, 0)], center=(4.0, 5.0, 6.0))
    frag = WLDReader(b.build()).read().fragments[0]
    assert isinstance(frag, DmSpriteDef)
    assert frag.center == (4.0, 5.0, 6.0)
    assert frag.positions == ((1.0, 2.0, 3.0),) * 3
    assert frag.skin_assignment_groups == ((3, 0),)
    assert frag.face_material_groups == ((1, 0),)


def test_fragments_are_indexed_from_one():
    b = WLDBuilder()
    b.track_def("A_TRACKDEF", [IDENTITY_FRAME])
    b.track_def("B_TRACKDEF", [IDENTITY_FRAME])
    reader = WLDReader(b.build()).read()
    assert [f.index for f in reader.fragments] == [1, 2]


def test_quantized_and_legacy_frames():
    b = WLDBuilder()
    b.track_def("Q", [(1, 2, 3, 4, 5, 6, 7, 8)])
    b.track_def("F", [(1.5, 0.0, 0.0, 0.0, 2.0, 4.0, 6.0, 2.0)], quantized=False)
    quantized, legacy = WLDReader(b.build()).read().fragments
    assert isinstance(quantized, TrackDef)
    assert quantized.frames[0] == FrameTransform(1, 2, 3, 4, 5, 6, 7, 8)
    assert legacy.frames[0].legacy
    assert legacy.frames[0].rotate_denominator == 1.5
    assert legacy.frames[0].shift_z == 6.0


def test_bm_info_filenames_are_decoded():
    b = WLDBuilder()
    b.bm_info("SKIN_BM", ["HUMCH0001.BMP", "humch0002.bmp"])
    frag = WLDReader(b.build()).read().fragments[0]
    assert isinstance(frag, BmInfo)
    assert frag.filenames == ("HUMCH0001.BMP", "humch0002.bmp")


def test_mesh_uv_width_follows_version():
    for version, raw_uv in ((WLD_VERSION_OLD, (-256, 512)), (WLD_VERSION_NEW, (70000, -1))):
        b = WLDBuilder(version)
        b.dm_sprite_def2("M_DMSPRITEDEF", [(0, 0, 0)], [], uvs=[raw_uv])
        mesh = WLDReader(b.build()).read().fragments[0]
        assert isinstance(mesh, DmSpriteDef2)
        assert mesh.texture_coordinates == (raw_uv,)


# ---- String table ----

def test_string_hash_cipher_is_symmetric():
    raw = b"HUM_HS_DEF\0ROOT\0"
    assert encode_string_hash(raw) != raw
    assert decode_string_hash(encode_string_hash(raw)) == raw


def _table(text):
    return StringTable(encode_string_hash(text.encode("latin-1")))


def test_string_lookup_by_negative_offset():
    table = _table("\0HUM_HS_DEF\0ROOT\0")
    assert table.get(-1) == "HUM_HS_DEF"
    assert table.get(-12) == "ROOT"
    assert table.get(-4) == "_HS_DEF"


def test_string_sentinel_is_not_an_error():
    table = _table("\0NAME\0")
    assert table.get(0) is None
    assert table.get(7) is None
    assert table.get(None) is None


def test_string_offset_out_of_range():
    table = _table("\0NAME\0")
    with pytest.raises(InvalidStringRefError) as exc:
        table.get(-100, fragment_index=3)
    assert exc.value.fragment_index == 3


def test_names_survive_latin1():
    b = WLDBuilder()
    b.track_def("\xe9T\xe9_TRACKDEF", [IDENTITY_FRAME])
    reader = WLDReader(b.build()).read()
    assert reader.strings.get(reader.fragments[0].name_ref) == "\xe9T\xe9_TRACKDEF"
