import pytest

from eq_wld.scene_graph.sg_geometry import (
    decode_color, expand_skin_assignments, extract_mesh,
)
from eq_wld.wld_format.wld_constants import FACE_PASSABLE
from eq_wld.wld_format.wld_document import WLDDocument
from eq_wld.wld_format.wld_errors import BrokenReferenceError

from .wld_builder import WLD_VERSION_NEW, WLDBuilder

QUAD = [(0, 0, 0), (400, 0, 0), (400, 400, 0), (0, 400, 0)]
QUAD_FACES = [(0, 1, 2), (0, 2, 3)]


def _palette(b, count=2):
    mats = [b.textured_material(f"M{i}_MDF", [f"m{i}.bmp"]) for i in range(count)]
    return b.material_palette("PAL_MP", mats), mats


def _mesh(doc, index):
    return extract_mesh(doc, doc.get_by_index(index))


def test_quantized_position_scale():
    b = WLDBuilder()
    idx = b.dm_sprite_def2("BOX_DMSPRITEDEF", [(400, 0, 0)], [], scale=2)
    mesh = _mesh(WLDDocument.parse(b.build()), idx)
    assert mesh.positions == [(100.0, 0.0, 0.0)]


def test_quantized_uvs_normals_colors():
    b = WLDBuilder()
    idx = b.dm_sprite_def2(
        "BOX_DMSPRITEDEF", [(0, 0, 0)], [],
        uvs=[(128, -256)], normals=[(127, 0, -127)], colors=[0xFF008040],
    )
    mesh = _mesh(WLDDocument.parse(b.build()), idx)
    assert mesh.uvs == [(0.5, -1.0)]
    assert mesh.normals == [(1.0, 0.0, -1.0)]
    assert mesh.colors[0] == pytest.approx((1.0, 0.0, 128 / 255.0, 64 / 255.0))


def test_new_format_uvs():
    b = WLDBuilder(WLD_VERSION_NEW)
    idx = b.dm_sprite_def2("BOX_DMSPRITEDEF", [(0, 0, 0)], [], uvs=[(512, 256)])
    mesh = _mesh(WLDDocument.parse(b.build()), idx)
    assert mesh.uvs == [(2.0, 1.0)]


def test_skin_expansion():
    b = WLDBuilder()
    idx = b.dm_sprite_def2(
        "ARM_DMSPRITEDEF", [(i, 0, 0) for i in range(5)], [], skin=[(3, 0), (2, 1)],
    )
    mesh = _mesh(WLDDocument.parse(b.build()), idx)
    assert mesh.bone_indices == [0, 0, 0, 1, 1]
    assert mesh.bone_weights == [1.0] * 5
    assert mesh.warnings == []


def test_skin_short_run_is_padded_with_warning():
    b = WLDBuilder()
    idx = b.dm_sprite_def2("ARM_DMSPRITEDEF", [(i, 0, 0) for i in range(4)], [], skin=[(2, 3)])
    mesh = _mesh(WLDDocument.parse(b.build()), idx)
    assert mesh.bone_indices == [3, 3, 0, 0]
    assert len(mesh.warnings) == 1


def test_skin_long_run_is_truncated_with_warning():
    b = WLDBuilder()
    idx = b.dm_sprite_def2("ARM_DMSPRITEDEF", [(i, 0, 0) for i in range(2)], [], skin=[(5, 1)])
    mesh = _mesh(WLDDocument.parse(b.build()), idx)
    assert mesh.bone_indices == [1, 1]
    assert mesh.bone_weights == [1.0, 1.0]
    assert len(mesh.warnings) == 1


def test_expand_skin_assignments_helper():
    assert expand_skin_assignments([(1, 4), (2, 5)]) == ([4, 5, 5], [1.0, 1.0, 1.0])
    assert expand_skin_assignments([(3, 1)], vertex_count=2) == ([1, 1], [1.0, 1.0])


def test_material_groups_partition_faces():
    b = WLDBuilder()
    pal, mats = _palette(b)
    faces = QUAD_FACES + [(1, 2, 3)]
    idx = b.dm_sprite_def2("BOX_DMSPRITEDEF", QUAD, faces, palette_ref=pal,
                           face_groups=[(2, 1), (1, 0)])
    mesh = _mesh(WLDDocument.parse(b.build()), idx)

    groups = mesh.material_groups
    assert [(g.start, g.count) for g in groups] == [(0, 2), (2, 1)]
    assert [g.material_index for g in groups] == [mats[1], mats[0]]
    assert [g.material_name for g in groups] == ["M1_MDF", "M0_MDF"]
    assert sum(g.count for g in groups) == mesh.num_faces
    covered = [i for g in groups for i in g.face_range]
    assert covered == list(range(mesh.num_faces))
    assert mesh.group_indices(groups[1]) == [1, 2, 3]
    assert mesh.warnings == []


def test_material_group_overrun_is_truncated():
    b = WLDBuilder()
    pal, _ = _palette(b)
    idx = b.dm_sprite_def2("BOX_DMSPRITEDEF", QUAD, QUAD_FACES, palette_ref=pal,
                           face_groups=[(1, 0), (5, 1)])
    mesh = _mesh(WLDDocument.parse(b.build()), idx)
    assert [(g.start, g.count) for g in mesh.material_groups] == [(0, 1), (1, 1)]
    assert len(mesh.warnings) == 1


def test_material_groups_short_of_face_count_warn():
    b = WLDBuilder()
    pal, _ = _palette(b)
    idx = b.dm_sprite_def2("BOX_DMSPRITEDEF", QUAD, QUAD_FACES, palette_ref=pal,
                           face_groups=[(1, 0)])
    mesh = _mesh(WLDDocument.parse(b.build()), idx)
    assert [(g.start, g.count) for g in mesh.material_groups] == [(0, 1)]
    assert len(mesh.warnings) == 1


def test_missing_palette_is_broken_reference():
    b = WLDBuilder()
    idx = b.dm_sprite_def2("BOX_DMSPRITEDEF", QUAD, QUAD_FACES, face_groups=[(2, 0)])
    doc = WLDDocument.parse(b.build())
    with pytest.raises(BrokenReferenceError) as exc:
        _mesh(doc, idx)
    assert exc.value.fragment_name == "BOX_DMSPRITEDEF"


def test_palette_slot_out_of_range_is_broken_reference():
    b = WLDBuilder()
    pal, _ = _palette(b, count=1)
    idx = b.dm_sprite_def2("BOX_DMSPRITEDEF", QUAD, QUAD_FACES, palette_ref=pal,
                           face_groups=[(2, 3)])
    with pytest.raises(BrokenReferenceError):
        _mesh(WLDDocument.parse(b.build()), idx)


def test_face_past_vertex_list_is_broken_reference():
    b = WLDBuilder()
    idx = b.dm_sprite_def2("BOX_DMSPRITEDEF", QUAD, [(0, 1, 2), (2, 3, 9)])
    with pytest.raises(BrokenReferenceError, match="Face 1"):
        _mesh(WLDDocument.parse(b.build()), idx)


def test_float_layout_passthrough():
    b = WLDBuilder()
    pal, mats = _palette(b, count=1)
    idx = b.dm_sprite_def(
        "ROCK_DMSPRITEDEF", [(1.5, 2.5, -3.0), (0.0, 1.0, 0.0), (1.0, 0.0, 0.0)],
        [(0, 1, 2)], palette_ref=pal, uvs=[(0.25, 0.75)] * 3,
        normals=[(0.0, 0.0, 1.0)] * 3, face_groups=[(1, 0)],
    )
    mesh = _mesh(WLDDocument.parse(b.build()), idx)
    assert mesh.positions[0] == (1.5, 2.5, -3.0)
    assert mesh.uvs[0] == (0.25, 0.75)
    assert mesh.normals[0] == (0.0, 0.0, 1.0)
    assert [g.material_index for g in mesh.material_groups] == mats


def test_float_layout_without_groups():
    b = WLDBuilder()
    idx = b.dm_sprite_def("ROCK_DMSPRITEDEF", [(0.0, 0.0, 0.0)] * 3, [(0, 1, 2)])
    mesh = _mesh(WLDDocument.parse(b.build()), idx)
    assert mesh.material_groups == []
    assert mesh.warnings == []


def test_decode_is_deterministic():
    b = WLDBuilder()
    pal, _ = _palette(b)
    idx = b.dm_sprite_def2("BOX_DMSPRITEDEF", QUAD, QUAD_FACES, palette_ref=pal, scale=3,
                           uvs=[(1, 2)] * 4, normals=[(0, 127, 0)] * 4,
                           skin=[(4, 0)], face_groups=[(2, 0)])
    data = b.build()
    first = _mesh(WLDDocument.parse(data), idx)
    second = _mesh(WLDDocument.parse(data), idx)
    assert first == second


def test_indices_and_collision():
    b = WLDBuilder()
    idx = b.dm_sprite_def2("BOX_DMSPRITEDEF", QUAD, QUAD_FACES,
                           face_flags=[0, FACE_PASSABLE])
    mesh = _mesh(WLDDocument.parse(b.build()), idx)
    assert mesh.indices() == [0, 1, 2, 0, 2, 3]
    assert mesh.collision_vertices() == [mesh.positions[0], mesh.positions[1], mesh.positions[2]]


def test_decode_color():
    assert decode_color(0xFFFFFFFF) == (1.0, 1.0, 1.0, 1.0)
    assert decode_color(0x000000FF) == (0.0, 0.0, 0.0, 1.0)
