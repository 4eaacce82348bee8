import unittest

from maprelief.utils.elevation_grid import ElevationGrid
from maprelief.utils.generation_options import DEFAULT_COLORS, GenerationOptions, normalize_base_shape


class GenerationOptionsTests(unittest.TestCase):
    def test_defaults(self):
        options = GenerationOptions(47.0, 8.0)
        self.assertEqual(options.radius, 500.0)
        self.assertEqual(options.base_shape, 'square')
        self.assertEqual(options.water_depth, 2.0)
        self.assertEqual(options.building_offset, 0.0)
        self.assertTrue(options.is_3d_mode)
        self.assertEqual(options.colors, DEFAULT_COLORS)
        self.assertIs(options.log, print)

    def test_base_shape_names(self):
        for name in ('circle', 'Circular', ' round '):
            self.assertEqual(normalize_base_shape(name), 'circular')
        for name in ('square', None, 'hexagon'):
            self.assertEqual(normalize_base_shape(name), 'square')

    def test_non_positive_radius_is_rejected(self):
        with self.assertRaises(ValueError):
            GenerationOptions(47.0, 8.0, radius=0)

    def test_ground_level_resolution(self):
        grid = ElevationGrid([[120.0, 130.0]], 47.0, 8.0, 500.0)
        self.assertEqual(GenerationOptions(47.0, 8.0).resolve_ground_level(grid), 120.0)
        self.assertEqual(GenerationOptions(47.0, 8.0).resolve_ground_level(None), 0.0)
        self.assertEqual(GenerationOptions(47.0, 8.0, use_raw_elevation=True).resolve_ground_level(grid), 0.0)
        self.assertEqual(
            GenerationOptions(47.0, 8.0, ground_level=90, use_raw_elevation=True).resolve_ground_level(grid),
            90.0,
        )

    def test_from_dict(self):
        options = GenerationOptions.from_dict({
            'center': {'lat': 47.0, 'lon': 8.0},
            'radius': '750',
            'base_shape': 'circle',
            'is_3d_mode': 'false',
            'ground_level': '',
            'colors': {'road': '#111111', 'water': None},
        }, log=None, water_depth=3.0)
        self.assertEqual(options.radius, 750.0)
        self.assertEqual(options.base_shape, 'circular')
        self.assertFalse(options.is_3d_mode)
        self.assertIsNone(options.ground_level)
        self.assertEqual(options.water_depth, 3.0)
        self.assertEqual(options.colors['road'], '#111111')
        self.assertEqual(options.colors['water'], DEFAULT_COLORS['water'])
        options.log("discarded")

    def test_from_dict_top_level_center(self):
        options = GenerationOptions.from_dict({'lat': 1.5, 'lon': 2.5, 'water_depth': 0.5})
        self.assertEqual((options.center_lat, options.center_lon), (1.5, 2.5))
        self.assertEqual(options.water_depth, 0.5)

    def test_from_dict_requires_center(self):
        with self.assertRaises(ValueError):
            GenerationOptions.from_dict({'radius': 100})

    def test_to_dict_round_trip(self):
        options = GenerationOptions(47.0, 8.0, radius=300, base_shape='circle', resolution=80)
        restored = GenerationOptions.from_dict(options.to_dict())
        self.assertEqual(restored.to_dict(), options.to_dict())


if __name__ == "__main__":
    unittest.main()
