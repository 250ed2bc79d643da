"""Document loading and whole-document extraction.

The archive container (.s3d) is decoded elsewhere. Anything with
``get(name) -> bytes or None`` and a ``filenames`` iterable can be used as
an archive here.

The extract_all_* helpers isolate failures per item: a broken mesh or
material is logged, reported through ``on_error(fragment, exc)`` when a
callback is given, and skipped, so the rest of the document still loads.
"""

import logging

from .format_profiles import resolve_profile
from .scene_graph.sg_geometry import extract_mesh
from .scene_graph.sg_materials import extract_material
from .wld_format.wld_document import WLDDocument
from .wld_format.wld_errors import WLDError

_log = logging.getLogger("wld_loader")


def load_document(data):
    """Parse WLD bytes into a WLDDocument.

    Raises:
        MalformedInputError: if the bytes are not a complete WLD stream.
    """
    document = WLDDocument.parse(data)
    _log.debug("Loaded %r", document)
    return document


def load_document_file(filepath):
    """Read and parse a .wld file from disk."""
    with open(filepath, 'rb') as f:
        data = f.read()
    _log.info("Reading %s (%d bytes)", filepath, len(data))
    return load_document(data)


def load_from_archive(archive, filename):
    """Parse a WLD entry of an archive.

    Entry names are matched exactly first, then case-insensitively.

    Raises:
        FileNotFoundError: if the archive has no such entry.
        MalformedInputError: if the entry is not a WLD stream.
    """
    data = archive.get(filename)
    if data is None:
        wanted = filename.lower()
        for stored in getattr(archive, "filenames", ()):
            if stored.lower() == wanted:
                data = archive.get(stored)
                break
    if data is None:
        raise FileNotFoundError(f"Archive has no entry {filename!r}")
    return load_document(data)


def _extract_each(fragments, extract, what, on_error):
    results = []
    failed = 0
    for fragment in fragments:
        try:
            results.append(extract(fragment))
        except WLDError as e:
            failed += 1
            _log.warning("%s extraction failed: %s", what, e)
            if on_error is not None:
                on_error(fragment, e)
    if failed:
        _log.info("%d of %d %s items skipped", failed, failed + len(results), what)
    return results


def extract_all_meshes(document, profile=None, on_error=None):
    """Extract every mesh in the document, skipping broken ones.

    Returns:
        List of ParsedMesh in document order.
    """
    profile = resolve_profile(document, profile)
    return _extract_each(
        document.meshes(),
        lambda frag: extract_mesh(document, frag, profile),
        "mesh", on_error,
    )


def extract_all_materials(document, on_error=None):
    """Extract every MaterialDef in the document, skipping broken ones.

    Returns:
        List of ParsedMaterial in document order.
    """
    return _extract_each(
        document.materials(),
        lambda frag: extract_material(document, frag),
        "material", on_error,
    )
