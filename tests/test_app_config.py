import os
import unittest
from unittest.mock import patch

from maprelief.utils.app_config import (
    get_cors_origins,
    get_default_building_offset,
    get_default_water_depth,
    get_elevation_grid_size,
    get_max_radius_meters,
    get_overpass_timeout_seconds,
    is_debug_enabled,
    parse_env_bool,
    parse_env_float,
    parse_env_int,
)


class ParseEnvBoolTests(unittest.TestCase):
    def test_recognised_spellings(self):
        cases = {"YES": True, " on": True, "1": True, "Off ": False, "n": False, "0": False}
        for raw, expected in cases.items():
            # The default is the opposite of the expected value so a fallback would show.
            self.assertIs(parse_env_bool(raw, default=not expected), expected, raw)

    def test_missing_or_unrecognised_falls_back(self):
        for raw in [None, "", "enabled"]:
            self.assertIs(parse_env_bool(raw, default=True), True)
            self.assertIs(parse_env_bool(raw, default=False), False)


class ParseEnvNumberTests(unittest.TestCase):
    def test_int(self):
        with patch.dict(os.environ, {"MAPRELIEF_TEST_INT": "12", "MAPRELIEF_TEST_BAD": "x"}, clear=False):
            self.assertEqual(parse_env_int("MAPRELIEF_TEST_INT", 3), 12)
            self.assertEqual(parse_env_int("MAPRELIEF_TEST_BAD", 3), 3)
            self.assertEqual(parse_env_int("MAPRELIEF_TEST_MISSING", 3), 3)

    def test_float(self):
        with patch.dict(os.environ, {"MAPRELIEF_TEST_FLOAT": "2.5", "MAPRELIEF_TEST_BAD": "x"}, clear=False):
            self.assertEqual(parse_env_float("MAPRELIEF_TEST_FLOAT", 1.0), 2.5)
            self.assertEqual(parse_env_float("MAPRELIEF_TEST_BAD", 1.0), 1.0)


class CorsOriginsTests(unittest.TestCase):
    def test_unset_variable_allows_local_development_hosts(self):
        with patch.dict(os.environ, {}, clear=False):
            os.environ.pop("MAPRELIEF_CORS_ORIGINS", None)
            origins = get_cors_origins()
        self.assertEqual(len(origins), 2)
        self.assertTrue(all("localhost" in o or "127" in o for o in origins))

    def test_blank_variable_is_treated_as_unset(self):
        with patch.dict(os.environ, {"MAPRELIEF_CORS_ORIGINS": "   "}, clear=False):
            self.assertEqual(len(get_cors_origins()), 2)

    def test_comma_separated_list(self):
        with patch.dict(os.environ, {"MAPRELIEF_CORS_ORIGINS": "https://print.example.org,,https://maps.example.org "},
                        clear=False):
            self.assertEqual(get_cors_origins(), ["https://print.example.org", "https://maps.example.org"])


class AppConfigTests(unittest.TestCase):
    def test_defaults(self):
        names = [
            "MAPRELIEF_WATER_DEPTH",
            "MAPRELIEF_BUILDING_OFFSET",
            "MAPRELIEF_ELEVATION_GRID_SIZE",
            "MAPRELIEF_OVERPASS_TIMEOUT_SECONDS",
            "MAPRELIEF_MAX_RADIUS_METERS",
            "MAPRELIEF_DEBUG",
        ]
        with patch.dict(os.environ, {}, clear=False):
            for name in names:
                os.environ.pop(name, None)
            self.assertEqual(get_default_water_depth(), 2.0)
            self.assertEqual(get_default_building_offset(), 0.0)
            self.assertEqual(get_elevation_grid_size(), 10)
            self.assertEqual(get_overpass_timeout_seconds(), 30)
            self.assertEqual(get_max_radius_meters(), 5000)
            self.assertFalse(is_debug_enabled())

    def test_overrides_are_bounded(self):
        with patch.dict(
            os.environ,
            {
                "MAPRELIEF_WATER_DEPTH": "-3",
                "MAPRELIEF_BUILDING_OFFSET": "1.5",
                "MAPRELIEF_ELEVATION_GRID_SIZE": "1",
                "MAPRELIEF_OVERPASS_TIMEOUT_SECONDS": "0",
                "MAPRELIEF_DEBUG": "yes",
            },
            clear=False,
        ):
            self.assertEqual(get_default_water_depth(), 0.0)
            self.assertEqual(get_default_building_offset(), 1.5)
            self.assertEqual(get_elevation_grid_size(), 2)
            self.assertEqual(get_overpass_timeout_seconds(), 1)
            self.assertTrue(is_debug_enabled())


if __name__ == "__main__":
    unittest.main()
