"""Geometry extraction from WLD mesh fragments.

Supports the two mesh layouts found in WLD files, both decoded into the same
canonical ParsedMesh:

DmSpriteDef2 (0x36, quantised):
    int16 positions sharing a power-of-two scale:
        position = raw * 2^-scale
    UVs as fixed point (/ 256; int16 in old-format files, int32 otherwise),
    normals as int8 (/ 127).

DmSpriteDef (0x2C, float):
    float32 positions, UVs and normals passed through unchanged. The face
    material group list is optional in this layout; when absent the mesh
    has no material groups.

Skinning in WLD is rigid: every vertex belongs to exactly one bone with
weight 1.0. Skin assignment is stored as (vertex_count, bone_index) runs
and expanded here to one entry per vertex.

All values stay in the format's native axis convention.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from ..format_profiles import GeometryConfig
from ..wld_format.wld_constants import FACE_PASSABLE
from ..wld_format.wld_errors import BrokenReferenceError, DataIntegrityWarning
from ..wld_format.wld_fragments import DmSpriteDef, DmSpriteDef2

_log = logging.getLogger("wld_mesh")


@dataclass
class ParsedMaterialGroup:
    """A contiguous run of faces sharing one material."""
    start: int                  # first face index of the run
    count: int                  # number of faces in the run
    material_index: int         # fragment index of the MaterialDef
    material_name: Optional[str]
    palette_slot: int           # position in the mesh's MaterialPalette

    @property
    def face_range(self) -> range:
        return range(self.start, self.start + self.count)


@dataclass
class ParsedMesh:
    """Canonical mesh representation shared by both source layouts."""
    index: int
    name: Optional[str]
    flags: int
    center: Tuple[float, float, float]
    positions: List[Tuple[float, float, float]]
    normals: List[Tuple[float, float, float]]
    colors: List[Tuple[float, float, float, float]]     # RGBA, 0.0-1.0
    uvs: List[Tuple[float, float]]
    bone_indices: List[int]
    bone_weights: List[float]
    faces: List[Tuple[int, int, int]]
    face_flags: List[int]
    material_groups: List[ParsedMaterialGroup]
    warnings: List[DataIntegrityWarning] = field(default_factory=list, compare=False)

    @property
    def num_verts(self):
        return len(self.positions)

    @property
    def num_faces(self):
        return len(self.faces)

    def indices(self) -> List[int]:
        """Flat triangle index list for the whole mesh."""
        return [i for face in self.faces for i in face]

    def group_indices(self, group: ParsedMaterialGroup) -> List[int]:
        """Flat triangle index list for one material group."""
        return [i for face in self.faces[group.start:group.start + group.count] for i in face]

    def collision_vertices(self) -> List[Tuple[float, float, float]]:
        """Triangle soup of every face that is not flagged passable."""
        result = []
        for face, flags in zip(self.faces, self.face_flags):
            if flags & FACE_PASSABLE:
                continue
            result.extend(self.positions[i] for i in face)
        return result


def extract_mesh(document, mesh, profile=None) -> ParsedMesh:
    """Decode a DmSpriteDef2 or DmSpriteDef fragment into a ParsedMesh.

    Args:
        document: WLDDocument that owns the fragment.
        mesh: DmSpriteDef2 or DmSpriteDef fragment.
        profile: Optional FormatProfile (only its geometry config is used).

    Returns:
        ParsedMesh

    Raises:
        BrokenReferenceError: if a face indexes past the vertex list, or a
            material group names a material that cannot be resolved through
            the mesh's MaterialPalette.
    """
    geometry = profile.geometry if profile is not None else GeometryConfig()
    name = document.name_of(mesh)

    if isinstance(mesh, DmSpriteDef2):
        scale = 1.0 / (1 << mesh.scale)
        positions = [(x * scale, y * scale, z * scale) for x, y, z in mesh.positions]
        uv_div = geometry.uv_divisor
        uvs = [(u / uv_div, v / uv_div) for u, v in mesh.texture_coordinates]
        n_div = geometry.normal_divisor
        normals = [(x / n_div, y / n_div, z / n_div) for x, y, z in mesh.vertex_normals]
        face_groups = mesh.face_material_groups
    elif isinstance(mesh, DmSpriteDef):
        positions = [tuple(p) for p in mesh.positions]
        uvs = [tuple(uv) for uv in mesh.texture_coordinates]
        normals = [tuple(n) for n in mesh.vertex_normals]
        face_groups = mesh.face_material_groups or ()
    else:
        raise TypeError(f"Not a mesh fragment: {mesh!r}")

    parsed = ParsedMesh(
        index=mesh.index,
        name=name,
        flags=mesh.flags,
        center=tuple(mesh.center),
        positions=positions,
        normals=normals,
        colors=[decode_color(c) for c in mesh.vertex_colors],
        uvs=uvs,
        bone_indices=[],
        bone_weights=[],
        faces=[face.vertex_indexes for face in mesh.faces],
        face_flags=[face.flags for face in mesh.faces],
        material_groups=[],
    )
    _check_faces(parsed)

    parsed.bone_indices, parsed.bone_weights = _expand_skin_groups(
        parsed, mesh.skin_assignment_groups,
    )
    parsed.material_groups = _build_material_groups(document, mesh, parsed, face_groups)

    for warning in parsed.warnings:
        _log.warning("%s", warning)

    return parsed


def expand_skin_assignments(groups, vertex_count=None) -> Tuple[List[int], List[float]]:
    """Expand (vertex_count, bone_index) runs into per-vertex indices and weights."""
    indices = []
    for count, bone in groups:
        indices.extend([bone] * count)
    if vertex_count is not None:
        del indices[vertex_count:]
    return indices, [1.0] * len(indices)


def _check_faces(parsed):
    num_verts = parsed.num_verts
    for i, face in enumerate(parsed.faces):
        if max(face) >= num_verts:
            raise BrokenReferenceError(
                f"Face {i} indexes vertex {max(face)}, mesh has {num_verts}",
                parsed.index, parsed.name,
            )


def _expand_skin_groups(parsed, groups):
    if not groups:
        return [], []
    indices, weights = expand_skin_assignments(groups)
    total = len(indices)
    num_verts = parsed.num_verts
    if total != num_verts:
        parsed.warnings.append(DataIntegrityWarning(
            f"Skin assignments cover {total} vertices, mesh has {num_verts}",
            parsed.index, parsed.name,
        ))
        if total > num_verts:
            del indices[num_verts:]
        else:
            # Unassigned vertices follow the root bone
            indices.extend([0] * (num_verts - total))
        weights = [1.0] * num_verts
    return indices, weights


def _build_material_groups(document, mesh, parsed, face_groups):
    """Walk (face_count, palette_slot) runs into ParsedMaterialGroups."""
    if not face_groups:
        return []

    palette = document.get(mesh.material_list_ref)
    if palette is None:
        raise BrokenReferenceError(
            "Mesh has material groups but no MaterialPalette",
            mesh.index, parsed.name,
        )

    num_faces = parsed.num_faces
    groups = []
    cursor = 0
    for count, slot in face_groups:
        material = _palette_material(document, palette, slot, mesh, parsed.name)
        if cursor + count > num_faces:
            parsed.warnings.append(DataIntegrityWarning(
                f"Material group for slot {slot} runs past face {num_faces} "
                f"(start {cursor}, length {count}); truncated",
                mesh.index, parsed.name,
            ))
            count = max(0, num_faces - cursor)
        if count:
            groups.append(ParsedMaterialGroup(
                start=cursor,
                count=count,
                material_index=material.index,
                material_name=document.name_of(material),
                palette_slot=slot,
            ))
        cursor += count

    if cursor < num_faces:
        parsed.warnings.append(DataIntegrityWarning(
            f"Material groups cover {cursor} of {num_faces} faces",
            mesh.index, parsed.name,
        ))

    return groups


def _palette_material(document, palette, slot, mesh, mesh_name):
    if not 0 <= slot < len(palette.material_refs):
        raise BrokenReferenceError(
            f"Material slot {slot} outside palette of {len(palette.material_refs)}",
            mesh.index, mesh_name,
        )
    material = document.get(palette.material_refs[slot])
    if material is None:
        raise BrokenReferenceError(
            f"Palette slot {slot} does not resolve to a MaterialDef",
            palette.index, document.name_of(palette),
        )
    return material


def decode_color(raw) -> Tuple[float, float, float, float]:
    """Decode a packed 0xRRGGBBAA vertex colour into 0.0-1.0 floats."""
    return (
        ((raw >> 24) & 0xFF) / 255.0,
        ((raw >> 16) & 0xFF) / 255.0,
        ((raw >> 8) & 0xFF) / 255.0,
        (raw & 0xFF) / 255.0,
    )