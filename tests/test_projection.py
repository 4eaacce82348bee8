import math
import unittest

from maprelief.utils.projection import EARTH_RADIUS, PlanarPoint, project, unproject


class ProjectTests(unittest.TestCase):
    def test_center_maps_to_origin(self):
        point = project(47.3769, 8.5417, 47.3769, 8.5417)
        self.assertEqual(point, PlanarPoint(0.0, 0.0))

    def test_north_is_negative_z(self):
        point = project(1.0, 0.0, 0.0, 0.0)
        self.assertAlmostEqual(point.x, 0.0)
        self.assertAlmostEqual(point.z, -math.pi / 180.0 * EARTH_RADIUS)

    def test_east_is_scaled_by_latitude(self):
        point = project(60.0, 1.0, 60.0, 0.0)
        self.assertAlmostEqual(point.x, math.pi / 180.0 * EARTH_RADIUS * 0.5, places=6)
        self.assertAlmostEqual(point.z, 0.0)

    def test_unproject_inverts_project(self):
        lat, lon = unproject(*project(51.5081, -0.0761, 51.5, -0.08), 51.5, -0.08)
        self.assertAlmostEqual(lat, 51.5081, places=9)
        self.assertAlmostEqual(lon, -0.0761, places=9)


if __name__ == "__main__":
    unittest.main()
