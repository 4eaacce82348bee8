import unittest
from unittest.mock import MagicMock, patch

import requests

from maprelief.utils.osm_fetcher import (
    OVERPASS_SERVERS,
    bounding_box,
    build_overpass_query,
    fetch_osm_features,
    parse_elements,
    query_overpass,
)

ELEMENTS = [
    {'type': 'node', 'id': 1, 'lat': 47.0, 'lon': 8.0},
    {'type': 'node', 'id': 2, 'lat': 47.001, 'lon': 8.0},
    {'type': 'node', 'id': 3, 'lat': 47.001, 'lon': 8.001},
    {'type': 'way', 'id': 10, 'nodes': [1, 2, 3, 1], 'tags': {'building': 'yes'}},
    {'type': 'way', 'id': 11, 'nodes': [1, 99], 'tags': {'highway': 'path'}},
    {'type': 'way', 'id': 12, 'geometry': [{'lat': 47.0, 'lon': 8.0}, {'lat': 47.1, 'lon': 8.1}],
     'tags': {'waterway': 'river'}},
    {'type': 'relation', 'id': 20, 'members': []},
]


def json_response(payload):
    response = MagicMock()
    response.json.return_value = payload
    response.raise_for_status.return_value = None
    return response


class QueryBuildingTests(unittest.TestCase):
    def test_bounding_box_surrounds_the_center(self):
        south, west, north, east = bounding_box(47.0, 8.0, 1000.0)
        self.assertLess(south, 47.0)
        self.assertGreater(north, 47.0)
        self.assertLess(west, 8.0)
        self.assertGreater(east, 8.0)
        self.assertAlmostEqual(north - 47.0, 47.0 - south)

    def test_query_selects_every_layer_and_expands_nodes(self):
        query = build_overpass_query(47.0, 8.0, 500.0, timeout=25)
        self.assertTrue(query.startswith("[out:json][timeout:25];"))
        for selector in ('way["building"]', 'way["building:part"]', 'way["highway"]',
                         'way["natural"="water"]', 'way["waterway"]'):
            self.assertIn(selector, query)
        self.assertIn("(._;>;);", query)
        self.assertTrue(query.endswith("out body;"))

    def test_query_subset(self):
        query = build_overpass_query(47.0, 8.0, 500.0, ['roads'], timeout=25)
        self.assertIn('way["highway"]', query)
        self.assertNotIn('way["building"]', query)

    def test_unknown_feature_types(self):
        with self.assertRaises(ValueError):
            build_overpass_query(47.0, 8.0, 500.0, ['railways'], timeout=25)


class ParseElementsTests(unittest.TestCase):
    def test_nodes_are_resolved_into_coordinates(self):
        ways = parse_elements(ELEMENTS)
        by_id = {way['id']: way for way in ways}
        self.assertEqual(sorted(by_id), [10, 12])
        self.assertEqual(len(by_id[10]['coordinates']), 4)
        self.assertEqual(by_id[10]['coordinates'][1], {'lat': 47.001, 'lon': 8.0})
        self.assertEqual(by_id[10]['tags'], {'building': 'yes'})
        self.assertEqual(len(by_id[12]['coordinates']), 2)

    def test_empty(self):
        self.assertEqual(parse_elements([]), [])


class QueryOverpassTests(unittest.TestCase):
    @patch('maprelief.utils.osm_fetcher.requests.post')
    def test_falls_back_to_the_next_server(self, post):
        post.side_effect = [
            requests.exceptions.Timeout(),
            json_response({'elements': ELEMENTS}),
        ]
        elements = query_overpass("query", timeout=5)
        self.assertEqual(elements, ELEMENTS)
        self.assertEqual(post.call_count, 2)
        self.assertEqual(post.call_args_list[1][0][0], OVERPASS_SERVERS[1])

    @patch('maprelief.utils.osm_fetcher.requests.post')
    def test_all_servers_failing_returns_empty(self, post):
        post.side_effect = requests.exceptions.ConnectionError("down")
        self.assertEqual(query_overpass("query", timeout=5), [])
        self.assertEqual(post.call_count, len(OVERPASS_SERVERS))

    @patch('maprelief.utils.osm_fetcher.requests.post')
    def test_invalid_json_tries_the_next_server(self, post):
        broken = MagicMock()
        broken.raise_for_status.return_value = None
        broken.json.side_effect = ValueError("not json")
        post.side_effect = [broken, json_response({'elements': []})]
        self.assertEqual(query_overpass("query", timeout=5), [])
        self.assertEqual(post.call_count, 2)


class FetchOsmFeaturesTests(unittest.TestCase):
    @patch('maprelief.utils.osm_fetcher.requests.post')
    def test_returns_way_records(self, post):
        post.return_value = json_response({'elements': ELEMENTS})
        ways = fetch_osm_features(47.0, 8.0, 500.0)
        self.assertEqual([way['id'] for way in ways], [10, 12])
        self.assertIn('data', post.call_args[1])


if __name__ == "__main__":
    unittest.main()
