import pytest

from eq_wld.format_profiles import (
    DEFAULT_PROFILE_ID, FORMAT_PROFILES, FormatProfile, NamingConfig,
    detect_profile, get_profile, register_profile, resolve_profile,
)
from eq_wld.wld_format.wld_document import WLDDocument

from .wld_builder import IDENTITY_FRAME, WLD_VERSION_NEW, WLDBuilder


def _doc(version=None, skeleton_name=None):
    b = WLDBuilder() if version is None else WLDBuilder(version)
    if skeleton_name:
        td = b.track_def("ROOT_TD", [IDENTITY_FRAME])
        b.hierarchical_sprite_def(skeleton_name, [("ROOT_DAG", td, [])])
    return WLDDocument.parse(b.build())


def test_builtin_profiles_registered():
    assert {"trilogy", "luclin", "actordef_prefix"} <= set(FORMAT_PROFILES)
    assert get_profile(DEFAULT_PROFILE_ID).profile_id == "trilogy"
    assert get_profile("nope") is None


def test_detect_by_version():
    assert detect_profile(_doc()).profile_id == "trilogy"
    assert detect_profile(_doc(WLD_VERSION_NEW)).profile_id == "luclin"


def test_detect_by_skeleton_name():
    assert detect_profile(_doc(skeleton_name="ACTORDEF_ELF")).profile_id == "actordef_prefix"
    assert detect_profile(_doc(WLD_VERSION_NEW, "ELF_HS_DEF")).profile_id == "luclin"


def test_resolve_profile():
    doc = _doc()
    luclin = get_profile("luclin")
    assert resolve_profile(doc, luclin) is luclin
    assert resolve_profile(doc, "luclin") is luclin
    assert resolve_profile(doc, "auto").profile_id == "trilogy"
    assert resolve_profile(doc).profile_id == "trilogy"
    with pytest.raises(KeyError):
        resolve_profile(doc, "missing")


def test_actor_tag():
    trilogy = get_profile("trilogy")
    assert trilogy.actor_tag("HUM_HS_DEF") == "HUM"
    assert trilogy.actor_tag("ODDNAME") == "ODDNAME"
    assert trilogy.actor_tag("") == ""
    prefix = get_profile("actordef_prefix")
    assert prefix.actor_tag("ACTORDEF_HUM") == "HUM"


def test_register_custom_profile():
    custom = FormatProfile(
        profile_id="test_custom",
        naming=NamingConfig(skeleton_marker="_SKEL"),
    )
    register_profile(custom)
    try:
        assert get_profile("test_custom") is custom
        assert custom.actor_tag("ORC_SKEL") == "ORC"
    finally:
        del FORMAT_PROFILES["test_custom"]
