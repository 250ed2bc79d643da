import pytest

from eq_wld.scene_graph.sg_materials import extract_material, fetch_texture_payloads
from eq_wld.wld_format.wld_document import WLDDocument
from eq_wld.wld_format.wld_errors import BrokenReferenceError

from .wld_builder import WLDBuilder


class FakeArchive:
    def __init__(self, entries):
        self._entries = dict(entries)

    @property
    def filenames(self):
        return list(self._entries)

    def get(self, name):
        return self._entries.get(name)


def _material(b, index):
    doc = WLDDocument.parse(b.build())
    return extract_material(doc, doc.get_by_index(index))


def test_texture_chain_filenames_are_lower_cased():
    b = WLDBuilder()
    idx = b.textured_material("HUMCH0001_MDF", ["HUMCH0001.BMP"])
    mat = _material(b, idx)
    assert mat.name == "HUMCH0001_MDF"
    assert mat.texture_filenames == ["humch0001.bmp"]
    assert mat.texture_filename == "humch0001.bmp"
    assert not mat.is_animated
    assert mat.delay == 0.0


def test_animated_texture_delay():
    b = WLDBuilder()
    idx = b.textured_material("FIRE_MDF", ["fire1.bmp", "fire2.bmp", "fire3.bmp"], sleep=250)
    mat = _material(b, idx)
    assert mat.texture_filenames == ["fire1.bmp", "fire2.bmp", "fire3.bmp"]
    assert mat.is_animated
    assert mat.delay == pytest.approx(0.25)


def test_visibility_and_shader_type():
    b = WLDBuilder()
    hidden = b.textured_material("HIDDEN_MDF", ["hidden.bmp"], render_method=0)
    user = b.textured_material("USER_MDF", ["user.bmp"], render_method=0x80000014)
    plain = b.textured_material("PLAIN_MDF", ["plain.bmp"], render_method=0x13)
    doc = WLDDocument.parse(b.build())

    hidden_mat = extract_material(doc, doc.get_by_index(hidden))
    assert not hidden_mat.visible

    user_mat = extract_material(doc, doc.get_by_index(user))
    assert user_mat.visible
    assert user_mat.shader_type_id == 0x14

    plain_mat = extract_material(doc, doc.get_by_index(plain))
    assert plain_mat.shader_type_id is None


def test_missing_texture_reference_is_broken_reference():
    b = WLDBuilder()
    idx = b.material_def("NOTEX_MDF", 0)
    with pytest.raises(BrokenReferenceError) as exc:
        _material(b, idx)
    assert exc.value.fragment_index == idx
    assert exc.value.fragment_name == "NOTEX_MDF"


def test_broken_sprite_chain():
    b = WLDBuilder()
    sprite = b.simple_sprite("", b.name("MISSING_SPRITEDEF"))
    idx = b.material_def("BROKEN_MDF", sprite)
    with pytest.raises(BrokenReferenceError) as exc:
        _material(b, idx)
    assert exc.value.fragment_index == sprite


def test_broken_bitmap_frame():
    b = WLDBuilder()
    sprite_def = b.simple_sprite_def("TEX_SPRITEDEF", [b.name("MISSING_BM")])
    idx = b.material_def("BROKEN_MDF", b.simple_sprite("", sprite_def))
    with pytest.raises(BrokenReferenceError) as exc:
        _material(b, idx)
    assert exc.value.fragment_name == "TEX_SPRITEDEF"


def test_fetch_texture_payloads():
    b = WLDBuilder()
    idx = b.textured_material("WALL_MDF", ["Wall1.BMP", "missing.bmp"])
    mat = _material(b, idx)
    archive = FakeArchive({"WALL1.BMP": b"BM..."})
    payloads = fetch_texture_payloads(archive, mat)
    assert payloads == {"wall1.bmp": b"BM...", "missing.bmp": None}
