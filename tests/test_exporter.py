import os
import tempfile
import unittest
import zipfile
import xml.etree.ElementTree as ET

import numpy as np
from stl import mesh as stl_mesh

from maprelief.utils.exporter import (
    export_fragments_to_stl,
    export_to_3mf,
    export_to_stl,
    hex_to_rgb,
    to_print_axes,
)
from maprelief.utils.generation_options import GenerationOptions
from maprelief.utils.mesh import Mesh
from maprelief.utils.mesh_generator import generate_mesh, model_to_dict
from maprelief.utils.projection import unproject

CORE_NS = "{http://schemas.microsoft.com/3dmanufacturing/core/2015/02}"
MATERIAL_NS = "{http://schemas.microsoft.com/3dmanufacturing/material/2015/02}"


def silent(message):
    pass


def make_model():
    coords = []
    for x, z in [(-10, -10), (10, -10), (10, 10), (-10, 10)]:
        lat, lon = unproject(x, z, 0.0, 0.0)
        coords.append({'lat': lat, 'lon': lon})
    ways = [{'id': 1, 'tags': {'building': 'yes', 'height': '12'}, 'coordinates': coords}]
    return generate_mesh(ways, None, GenerationOptions(0.0, 0.0, radius=100.0, resolution=40, log=silent))


class StlExportTests(unittest.TestCase):
    def setUp(self):
        self.tmpdir = tempfile.TemporaryDirectory()
        self.model = make_model()

    def tearDown(self):
        self.tmpdir.cleanup()

    def path(self, name):
        return os.path.join(self.tmpdir.name, name)

    def test_binary_stl_contains_every_face(self):
        result = export_to_stl(self.model, self.path("model.stl"))
        expected = sum(len(self.model[name].faces) for name in ('ground', 'foundation', 'buildings'))
        self.assertEqual(result['faces'], expected)
        loaded = stl_mesh.Mesh.from_file(self.path("model.stl"))
        self.assertEqual(len(loaded.vectors), expected)

    def test_ascii_stl(self):
        export_to_stl(self.model, self.path("model.stl"), ascii=True)
        with open(self.path("model.stl"), "rb") as fh:
            content = fh.read()
        self.assertTrue(content.startswith(b"solid"))
        self.assertIn(b"facet normal", content)
        self.assertIn(b"vertex", content)

    def test_fragment_selection_and_print_axes(self):
        export_to_stl(self.model, self.path("foundation.stl"), fragments=['foundation'])
        loaded = stl_mesh.Mesh.from_file(self.path("foundation.stl"))
        self.assertEqual(len(loaded.vectors), 12)
        self.assertAlmostEqual(float(loaded.z.max()), -4.0, places=5)
        self.assertAlmostEqual(float(loaded.z.min()), -6.0, places=5)

    def test_export_from_dict_form(self):
        result = export_to_stl(model_to_dict(self.model), self.path("model.stl"), fragments=['buildings'])
        self.assertEqual(result['faces'], 12)

    def test_empty_model_is_rejected(self):
        with self.assertRaises(ValueError):
            export_to_stl({'ground': Mesh()}, self.path("empty.stl"))

    def test_write_failure_is_wrapped(self):
        with self.assertRaises(Exception) as ctx:
            export_to_stl(self.model, os.path.join(self.tmpdir.name, "missing", "model.stl"))
        self.assertIn("Error exporting to STL", str(ctx.exception))

    def test_one_file_per_fragment(self):
        paths = export_fragments_to_stl(self.model, self.path("parts"), basename="zurich")
        names = sorted(os.path.basename(p) for p in paths)
        self.assertEqual(names, ["zurich_buildings.stl", "zurich_foundation.stl", "zurich_ground.stl"])


class ThreeMfExportTests(unittest.TestCase):
    def test_one_colored_object_per_fragment(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = os.path.join(tmpdir, "model.3mf")
            result = export_to_3mf(make_model(), path, colors={'building': '#00FF00'})
            self.assertEqual(result['objects'], 3)

            with zipfile.ZipFile(path) as zf:
                self.assertIn('[Content_Types].xml', zf.namelist())
                root = ET.fromstring(zf.read('3D/3dmodel.model'))

        bases = root.findall(f".//{MATERIAL_NS}base")
        colors = {base.get('name'): base.get('displaycolor') for base in bases}
        self.assertEqual(colors, {'Ground': '#C8C8C8', 'Foundation': '#C8C8C8', 'Buildings': '#00FF00'})

        objects = root.findall(f".//{CORE_NS}object")
        self.assertEqual(len(objects), 3)
        self.assertEqual(len(root.findall(f".//{CORE_NS}item")), 3)

    def test_empty_model_is_rejected(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            with self.assertRaises(ValueError):
                export_to_3mf({}, os.path.join(tmpdir, "model.3mf"))


class HelperTests(unittest.TestCase):
    def test_hex_to_rgb(self):
        self.assertEqual(hex_to_rgb("#4A90E2"), (74, 144, 226))
        self.assertEqual(hex_to_rgb("fff"), (255, 255, 255))
        with self.assertRaises(ValueError):
            hex_to_rgb("#12")

    def test_print_axes_rotation(self):
        rotated = to_print_axes([[10.0, 2.0, -30.0]])
        np.testing.assert_allclose(rotated, [[10.0, 30.0, 2.0]])


if __name__ == "__main__":
    unittest.main()
