"""WLD world-asset decoding.

Decodes the fragment-based WLD format into an immutable document and
rebuilds meshes, materials, skeletons and animations from it.

Entry points live in eq_wld.loader (load_document, load_from_archive,
extract_all_meshes, ...) and in the extraction modules under
eq_wld.scene_graph and eq_wld.actor.
"""

__version__ = "0.1.0"
