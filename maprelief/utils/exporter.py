"""STL and 3MF export of generated models."""

import os
import zipfile
import xml.etree.ElementTree as ET

import numpy as np
from stl import Mode, mesh

from .generation_options import DEFAULT_COLORS
from .mesh import Mesh
from .mesh_generator import FRAGMENTS

COLOR_KEYS = {
    'ground': 'base',
    'foundation': 'base',
    'buildings': 'building',
    'roads': 'road',
    'water': 'water',
}

FRAGMENT_NAMES = {
    'ground': 'Ground',
    'foundation': 'Foundation',
    'water': 'Water',
    'buildings': 'Buildings',
    'roads': 'Roads',
}


def to_print_axes(vertices):
    """
    Rotate Y-up model coordinates into the Z-up frame slicers expect.

    (x east, y up, z south) -> (x east, y north, z up); a proper rotation,
    so face winding and outward normals are preserved.
    """
    vertices = np.asarray(vertices, dtype=np.float64).reshape(-1, 3)
    return np.column_stack([vertices[:, 0], -vertices[:, 2], vertices[:, 1]])


def _fragment_arrays(model, fragments=None):
    """Yield (name, vertices, faces) for each non-empty fragment."""
    names = fragments or FRAGMENTS
    for name in names:
        fragment = model.get(name)
        if isinstance(fragment, dict):
            fragment = Mesh.from_dict(fragment)
        if fragment is None or fragment.is_empty:
            continue
        yield (
            name,
            np.asarray(fragment.vertices, dtype=np.float64).reshape(-1, 3),
            np.asarray(fragment.faces, dtype=np.int64).reshape(-1, 3),
        )


def combine_fragments(model, fragments=None):
    """
    Merge fragments into one vertex/face array pair.

    Returns:
        tuple: (vertices, faces) numpy arrays
    """
    all_vertices = []
    all_faces = []
    vertex_offset = 0
    for _, vertices, faces in _fragment_arrays(model, fragments):
        all_vertices.append(vertices)
        all_faces.append(faces + vertex_offset)
        vertex_offset += len(vertices)

    if not all_vertices:
        raise ValueError("No mesh data to export")
    return np.vstack(all_vertices), np.vstack(all_faces)


def build_stl_mesh(vertices, faces, z_up=True):
    """Build a numpy-stl Mesh (triangle soup) from indexed geometry."""
    if z_up:
        vertices = to_print_axes(vertices)
    stl_mesh = mesh.Mesh(np.zeros(len(faces), dtype=mesh.Mesh.dtype))
    stl_mesh.vectors[:] = vertices[faces]
    stl_mesh.update_normals()
    return stl_mesh


def export_to_stl(model, filepath, fragments=None, ascii=False, z_up=True):
    """
    Export a model (or selected fragments of it) to a single STL file.

    Args:
        model: Dict of fragment name -> Mesh (or mesh dict)
        filepath: Output STL file path
        fragments: Fragment names to include (default: all)
        ascii: Write the text "facet/vertex" format instead of binary
        z_up: Rotate into the Z-up print frame

    Returns:
        dict: {'success', 'filepath', 'vertices', 'faces'}
    """
    vertices, faces = combine_fragments(model, fragments)
    try:
        stl_mesh = build_stl_mesh(vertices, faces, z_up=z_up)
        stl_mesh.save(filepath, mode=Mode.ASCII if ascii else Mode.BINARY)
    except Exception as e:
        raise Exception(f"Error exporting to STL: {str(e)}")

    return {
        'success': True,
        'filepath': filepath,
        'vertices': len(vertices),
        'faces': len(faces)
    }


def export_fragments_to_stl(model, directory, basename='model', ascii=False, z_up=True):
    """
    Export each non-empty fragment to its own STL for multi-material printing.

    Returns:
        list: paths of the written files, e.g. model_ground.stl
    """
    os.makedirs(directory, exist_ok=True)
    paths = []
    for name, _, _ in _fragment_arrays(model):
        filepath = os.path.join(directory, f"{basename}_{name}.stl")
        export_to_stl(model, filepath, fragments=[name], ascii=ascii, z_up=z_up)
        paths.append(filepath)

    if not paths:
        raise ValueError("No mesh data to export")
    return paths


def hex_to_rgb(hex_color):
    """'#4A90E2', '4a90e2' or shorthand 'fff' -> (r, g, b) ints."""
    digits = hex_color.strip().lstrip('#')
    if len(digits) == 3:
        digits = ''.join(c * 2 for c in digits)
    if len(digits) != 6:
        raise ValueError(f"Invalid hex color: {hex_color!r}")
    return int(digits[0:2], 16), int(digits[2:4], 16), int(digits[4:6], 16)


CORE_NS = 'http://schemas.microsoft.com/3dmanufacturing/core/2015/02'
MATERIAL_NS = 'http://schemas.microsoft.com/3dmanufacturing/material/2015/02'

CONTENT_TYPES_XML = (
    '<?xml version="1.0" encoding="UTF-8"?>\n'
    '<Types xmlns="http://schemas.openxmlformats.org/package/2006/content-types">'
    '<Default Extension="rels" ContentType="application/vnd.openxmlformats-package.relationships+xml"/>'
    '<Default Extension="model" ContentType="application/vnd.ms-package.3dmanufacturing-3dmodel+xml"/>'
    '</Types>'
)

RELS_XML = (
    '<?xml version="1.0" encoding="UTF-8"?>\n'
    '<Relationships xmlns="http://schemas.openxmlformats.org/package/2006/relationships">'
    '<Relationship Id="rel0" Target="/3D/3dmodel.model" '
    'Type="http://schemas.microsoft.com/3dmanufacturing/2013/01/3dmodel"/>'
    '</Relationships>'
)

ET.register_namespace('', CORE_NS)
ET.register_namespace('m', MATERIAL_NS)


def export_to_3mf(model, filepath, colors=None, z_up=True):
    """
    Export a model to 3MF with one colored object per fragment.

    Args:
        model: Dict of fragment name -> Mesh (or mesh dict)
        filepath: Output 3MF file path
        colors: Layer colors {'base', 'building', 'road', 'water'} as hex strings

    Returns:
        dict: {'success', 'filepath', 'objects'}
    """
    palette = dict(DEFAULT_COLORS)
    palette.update({k: v for k, v in (colors or {}).items() if v})

    objects = []
    for name, vertices, faces in _fragment_arrays(model):
        if z_up:
            vertices = to_print_axes(vertices)
        rgb = hex_to_rgb(palette[COLOR_KEYS[name]])
        objects.append((FRAGMENT_NAMES[name], vertices, faces, rgb))

    if not objects:
        raise ValueError("No mesh data to export")

    model_xml = build_3mf_model(objects)
    try:
        with zipfile.ZipFile(filepath, 'w', zipfile.ZIP_DEFLATED) as package:
            package.writestr('[Content_Types].xml', CONTENT_TYPES_XML)
            package.writestr('_rels/.rels', RELS_XML)
            package.writestr('3D/3dmodel.model', model_xml)
    except OSError as e:
        raise Exception(f"Error exporting to 3MF: {str(e)}")

    return {'success': True, 'filepath': filepath, 'objects': len(objects)}


def build_3mf_model(objects):
    """
    3MF model document for a list of (name, vertices, faces, rgb) objects.

    Every object gets its own entry in one base-material group, so slicers
    show each fragment in its layer color. Object ids start at 2; id 1 is
    the material group.
    """
    root = ET.Element(f'{{{CORE_NS}}}model', {
        'unit': 'millimeter',
        '{http://www.w3.org/XML/1998/namespace}lang': 'en-US',
    })
    ET.SubElement(root, f'{{{CORE_NS}}}metadata', {'name': 'Application'}).text = 'maprelief'
    resources = ET.SubElement(root, f'{{{CORE_NS}}}resources')
    materials = ET.SubElement(resources, f'{{{MATERIAL_NS}}}basematerials', {'id': '1'})
    build = ET.SubElement(root, f'{{{CORE_NS}}}build')

    for index, (name, vertices, faces, rgb) in enumerate(objects):
        ET.SubElement(materials, f'{{{MATERIAL_NS}}}base', {
            'name': name,
            'displaycolor': '#%02X%02X%02X' % tuple(rgb),
        })

        object_id = str(index + 2)
        obj = ET.SubElement(resources, f'{{{CORE_NS}}}object', {
            'id': object_id, 'name': name, 'pid': '1', 'pindex': str(index), 'type': 'model',
        })
        mesh_el = ET.SubElement(obj, f'{{{CORE_NS}}}mesh')
        vertices_el = ET.SubElement(mesh_el, f'{{{CORE_NS}}}vertices')
        for x, y, z in vertices:
            ET.SubElement(vertices_el, f'{{{CORE_NS}}}vertex',
                          {'x': f'{x:.6f}', 'y': f'{y:.6f}', 'z': f'{z:.6f}'})
        triangles_el = ET.SubElement(mesh_el, f'{{{CORE_NS}}}triangles')
        for a, b, c in faces:
            ET.SubElement(triangles_el, f'{{{CORE_NS}}}triangle',
                          {'v1': str(int(a)), 'v2': str(int(b)), 'v3': str(int(c))})

        ET.SubElement(build, f'{{{CORE_NS}}}item', {'objectid': object_id})

    return ET.tostring(root, encoding='UTF-8', xml_declaration=True)
