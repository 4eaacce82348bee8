"""OpenStreetMap way fetching using the Overpass API."""

import requests

from .app_config import get_overpass_timeout_seconds
from .projection import unproject

# Multiple Overpass API servers for fallback
OVERPASS_SERVERS = [
    "https://overpass-api.de/api/interpreter",
    "https://overpass.kumi.systems/api/interpreter",
    "https://overpass.openstreetmap.ru/api/interpreter",
]

FEATURE_FILTERS = {
    'buildings': ['way["building"]', 'way["building:part"]'],
    'roads': ['way["highway"]'],
    'water': [
        'way["natural"="water"]',
        'way["water"]',
        'way["waterway"]',
        'way["landuse"~"^(reservoir|basin)$"]',
    ],
}


def bounding_box(center_lat, center_lon, radius):
    """
    Lat/lon box enclosing the square footprint.

    Returns:
        tuple: (south, west, north, east)
    """
    north, west = unproject(-radius, -radius, center_lat, center_lon)
    south, east = unproject(radius, radius, center_lat, center_lon)
    return south, west, north, east


def build_overpass_query(center_lat, center_lon, radius, feature_types=None, timeout=None):
    """
    Build one Overpass QL query for every requested feature type.

    Ways are returned together with their nodes (`(._;>;)`) so coordinates
    can be resolved locally.
    """
    feature_types = feature_types or list(FEATURE_FILTERS)
    timeout = timeout or get_overpass_timeout_seconds()
    south, west, north, east = bounding_box(center_lat, center_lon, radius)
    bbox = f"{south:.7f},{west:.7f},{north:.7f},{east:.7f}"

    statements = []
    for feature_type in feature_types:
        for selector in FEATURE_FILTERS.get(feature_type, []):
            statements.append(f"  {selector}({bbox});")
    if not statements:
        raise ValueError(f"No known feature types in {feature_types}")

    body = "\n".join(statements)
    return f"[out:json][timeout:{int(timeout)}];\n(\n{body}\n);\n(._;>;);\nout body;"


def query_overpass(query, timeout=None):
    """
    Execute an Overpass API query with fallback servers.

    Args:
        query: Overpass QL query string
        timeout: Per-server HTTP timeout in seconds

    Returns:
        list: Elements from the response ([] when every server failed)
    """
    timeout = timeout or get_overpass_timeout_seconds() + 15
    last_error = None

    for server in OVERPASS_SERVERS:
        try:
            print(f"[INFO] Trying Overpass server: {server}")
            response = requests.post(
                server,
                data={'data': query},
                timeout=timeout
            )
            response.raise_for_status()
            data = response.json()
            elements = data.get('elements', [])
            print(f"[INFO] Got {len(elements)} elements from {server}")
            return elements

        except requests.exceptions.Timeout:
            print(f"[WARN] Timeout on {server}")
            last_error = "timeout"
        except requests.exceptions.RequestException as e:
            print(f"[WARN] Error on {server}: {e}")
            last_error = str(e)
        except ValueError as e:
            print(f"[WARN] Invalid JSON from {server}: {e}")
            last_error = str(e)

    print(f"[ERROR] All Overpass servers failed. Last error: {last_error}")
    return []


def parse_elements(elements):
    """
    Resolve Overpass elements into way records.

    Node ids are resolved against the node elements of the same response;
    ways fetched with `out geom` carry their coordinates inline instead.

    Returns:
        list: [{'id', 'tags', 'coordinates': [{'lat', 'lon'}, ...]}]
    """
    nodes = {}
    for element in elements:
        if element.get('type') == 'node' and 'lat' in element and 'lon' in element:
            nodes[element['id']] = {'lat': element['lat'], 'lon': element['lon']}

    ways = []
    unresolved = 0
    for element in elements:
        if element.get('type') != 'way':
            continue

        if element.get('geometry'):
            coordinates = [
                {'lat': point['lat'], 'lon': point['lon']}
                for point in element['geometry']
                if point and 'lat' in point and 'lon' in point
            ]
        else:
            coordinates = []
            for node_id in element.get('nodes', []):
                node = nodes.get(node_id)
                if node is None:
                    unresolved += 1
                    continue
                coordinates.append(node)

        if len(coordinates) < 2:
            continue

        ways.append({
            'id': element.get('id'),
            'tags': element.get('tags', {}),
            'coordinates': coordinates,
        })

    if unresolved:
        print(f"[WARN] {unresolved} way node reference(s) could not be resolved")
    return ways


def fetch_osm_features(center_lat, center_lon, radius, feature_types=None):
    """
    Fetch the ways around a center point.

    Args:
        center_lat: Center latitude
        center_lon: Center longitude
        radius: Half-extent of the square area in meters
        feature_types: Subset of 'buildings', 'roads', 'water' (default: all)

    Returns:
        list: way records for the mesh generator ([] on failure)
    """
    query = build_overpass_query(center_lat, center_lon, radius, feature_types)
    elements = query_overpass(query)
    ways = parse_elements(elements)
    print(f"[INFO] Fetched {len(ways)} ways around ({center_lat:.5f}, {center_lon:.5f})")
    return ways
