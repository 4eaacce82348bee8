"""Building and road extrusion from OSM way records."""

import math
from collections import namedtuple

from .mesh import Mesh, merge_meshes
from .projection import PlanarPoint, project
from .triangulation import (
    drop_closing_vertex,
    point_in_polygon,
    polygon_centroid,
    signed_area,
    triangulate_polygon,
)

KIND_BUILDING = 'building'
KIND_BUILDING_PART = 'building_part'
KIND_WATER = 'water'
KIND_WATERWAY = 'waterway'
KIND_ROAD = 'road'

WATER_AREA_WATERWAYS = {'riverbank', 'dock'}
WATER_AREA_LANDUSE = {'reservoir', 'basin'}

# Buildings
METERS_PER_LEVEL = 3.5
TOWER_DEFAULT_HEIGHT = 50.0
MIN_TAG_HEIGHT = 1.0
MAX_TAG_HEIGHT = 1000.0
DEFAULT_HEIGHT_3D = 15.0
DEFAULT_HEIGHT_2D = 2.0
BUILDING_CLEARANCE = 0.1
MIN_ROOF_THICKNESS = 1.0
BUILDING_LOD_RESOLUTION = 80

BUILDING_TYPE_HEIGHTS = {
    'cathedral': 25.0,
    'church': 25.0,
    'tower': 50.0,
    'stadium': 30.0,
    'commercial': 20.0,
    'office': 20.0,
    'retail': 12.0,
    'industrial': 8.0,
    'warehouse': 8.0,
    'residential': 12.0,
    'apartments': 12.0,
    'house': 12.0,
    'garage': 4.0,
    'garages': 4.0,
    'shed': 3.0,
    'roof': 3.0,
}

# Roads
ROAD_WIDTHS = {
    'motorway': 6.0,
    'primary': 6.0,
    'secondary': 4.0,
    'path': 1.5,
    'footway': 1.5,
}
DEFAULT_ROAD_WIDTH = 3.0
NARROW_ROAD_WIDTH = 2.0
PATH_LOD_RESOLUTION = 60
ROAD_CLEARANCE = 0.5
MIN_SEGMENT_LENGTH_SQ = 0.01

BuildingVolume = namedtuple('BuildingVolume', ['min_height', 'max_height'])


def classify_way(tags):
    """Return the feature kind for a way's tags, or None if it is not rendered."""
    if not tags:
        return None
    if tags.get('building:part', 'no') != 'no':
        return KIND_BUILDING_PART
    if tags.get('building', 'no') != 'no':
        return KIND_BUILDING
    waterway = tags.get('waterway')
    if (tags.get('natural') == 'water' or 'water' in tags
            or waterway in WATER_AREA_WATERWAYS
            or tags.get('landuse') in WATER_AREA_LANDUSE):
        return KIND_WATER
    if waterway:
        return KIND_WATERWAY
    if 'highway' in tags:
        return KIND_ROAD
    return None


def _lat_lon(coord):
    if isinstance(coord, dict):
        return float(coord['lat']), float(coord['lon'])
    return float(coord[0]), float(coord[1])


def clamp_point(point, radius, base_shape='square'):
    """Clamp a point into the square footprint (and onto the disc for circular bases)."""
    x = max(-radius, min(radius, point.x))
    z = max(-radius, min(radius, point.z))
    if base_shape == 'circular':
        dist = math.hypot(x, z)
        if dist > radius:
            x, z = x * radius / dist, z * radius / dist
    return PlanarPoint(x, z)


def is_inside_footprint(point, radius, base_shape='square'):
    if abs(point.x) > radius or abs(point.z) > radius:
        return False
    if base_shape == 'circular':
        return math.hypot(point.x, point.z) <= radius
    return True


def normalize_footprint(coordinates, center_lat, center_lon, radius, closed=False, base_shape='square'):
    """
    Project a way's coordinates and clamp them into the model footprint.

    Every vertex is clamped independently (no true polygon clipping). A way
    none of whose raw vertices lies inside the footprint is discarded, so
    far-away geometry is never dragged in by clamping alone.

    Args:
        coordinates: Sequence of {'lat', 'lon'} dicts or (lat, lon) pairs
        center_lat: Projection center latitude
        center_lon: Projection center longitude
        radius: Footprint half-extent in meters
        closed: Drop the repeated closing vertex of polygon ways
        base_shape: 'square' or 'circular'

    Returns:
        list: PlanarPoints, or [] when the way is discarded
    """
    points = []
    for coord in coordinates or []:
        try:
            lat, lon = _lat_lon(coord)
        except (KeyError, TypeError, ValueError, IndexError):
            continue
        points.append(project(lat, lon, center_lat, center_lon))

    if closed:
        points = drop_closing_vertex(points)
    if len(points) < 2:
        return []

    if not any(is_inside_footprint(p, radius, base_shape) for p in points):
        return []

    return [clamp_point(p, radius, base_shape) for p in points]


def parse_meters(value):
    """Parse an OSM length string such as "12", "12.5 m" or "330m"; None if unparseable."""
    if value is None:
        return None
    text = str(value).strip().lower().replace('m', '').replace(' ', '')
    if not text:
        return None
    try:
        parsed = float(text)
    except ValueError:
        return None
    if math.isnan(parsed) or math.isinf(parsed):
        return None
    return parsed


def parse_height(value):
    """Parse a height tag, clamped to [1, 1000] meters."""
    parsed = parse_meters(value)
    if parsed is None:
        return None
    return max(MIN_TAG_HEIGHT, min(MAX_TAG_HEIGHT, parsed))


def parse_positive(value):
    """Parse a plain positive number (e.g. a level count)."""
    if value is None:
        return None
    try:
        parsed = float(str(value).strip())
    except ValueError:
        return None
    if math.isnan(parsed) or math.isinf(parsed) or parsed <= 0:
        return None
    return parsed


# Height rules, tried in order; each returns a height or None

def _explicit_height(tags, is_3d_mode):
    for key in ('height', 'building:height', 'height:building'):
        height = parse_height(tags.get(key))
        if height is not None:
            return height
    return None


def _tower_height(tags, is_3d_mode):
    if tags.get('man_made') != 'tower':
        return None
    for key in ('tower:height', 'height'):
        height = parse_height(tags.get(key))
        if height is not None:
            return height
    return TOWER_DEFAULT_HEIGHT


def _levels_height(tags, is_3d_mode):
    for key in ('building:levels', 'levels'):
        levels = parse_positive(tags.get(key))
        if levels is not None:
            return max(levels * METERS_PER_LEVEL, METERS_PER_LEVEL)
    return None


def _min_height_estimate(tags, is_3d_mode):
    min_height = parse_height(tags.get('min_height'))
    if min_height is None:
        return None
    return max(min_height + 10.0, 15.0)


def _building_type_height(tags, is_3d_mode):
    building_type = str(tags.get('building', '')).strip().lower()
    return BUILDING_TYPE_HEIGHTS.get(building_type)


def _default_height(tags, is_3d_mode):
    return DEFAULT_HEIGHT_3D if is_3d_mode else DEFAULT_HEIGHT_2D


HEIGHT_RULES = (
    _explicit_height,
    _tower_height,
    _levels_height,
    _min_height_estimate,
    _building_type_height,
    _default_height,
)


def resolve_building_height(tags, is_3d_mode=True):
    """Building height in meters: the first rule in HEIGHT_RULES that yields a value."""
    tags = tags or {}
    for rule in HEIGHT_RULES:
        height = rule(tags, is_3d_mode)
        if height is not None:
            return height
    return _default_height(tags, is_3d_mode)


def resolve_min_height(tags):
    """Vertical offset of a structure's base above the ground (min_height tags)."""
    tags = tags or {}
    for key in ('min_height', 'building:min_height'):
        value = parse_meters(tags.get(key))
        if value is not None:
            return max(0.0, value)
    return 0.0


def resolve_volume(tags, is_3d_mode=True):
    return BuildingVolume(resolve_min_height(tags), resolve_building_height(tags, is_3d_mode))


def bounding_box_area(points):
    xs = [p.x for p in points]
    zs = [p.z for p in points]
    return (max(xs) - min(xs)) * (max(zs) - min(zs))


def extrude_footprint(footprint, base_elevations, roof_elevation):
    """
    Extrude a footprint into a closed volume with a sloped floor and flat roof.

    Args:
        footprint: Polygon of PlanarPoints (any winding)
        base_elevations: Floor Y for each footprint vertex
        roof_elevation: Single Y for the flat roof

    Returns:
        Mesh: floor triangles, reversed roof triangles and one wall quad per edge
    """
    mesh = Mesh()
    points = list(footprint)
    bases = list(base_elevations)
    if len(points) < 3:
        return mesh

    # Walls need the same winding the triangulator normalizes to
    if signed_area(points) < 0:
        points.reverse()
        bases.reverse()

    triangles = triangulate_polygon(points)
    if not triangles:
        return mesh

    base = [mesh.add_vertex(p.x, y, p.z) for p, y in zip(points, bases)]
    top = [mesh.add_vertex(p.x, roof_elevation, p.z) for p in points]

    for a, b, c in triangles:
        mesh.add_triangle(base[a], base[b], base[c])
        mesh.add_triangle(top[c], top[b], top[a])

    n = len(points)
    for i in range(n):
        j = (i + 1) % n
        mesh.add_quad(base[i], top[i], top[j], base[j])

    return mesh


def extrude_building(footprint, volume, surface_height, building_offset=0.0):
    """Extrude one footprint onto the terrain given its resolved BuildingVolume."""
    ground = [float(surface_height(p.x, p.z)) + BUILDING_CLEARANCE + building_offset for p in footprint]
    bases = [g + volume.min_height for g in ground]
    roof = min(ground) + volume.max_height
    if roof <= max(bases):
        roof = max(bases) + MIN_ROOF_THICKNESS
    return extrude_footprint(footprint, bases, roof)


def is_suppressed_by_part(building_points, part_footprints):
    """True when a building overlaps one of its building parts."""
    centroid = polygon_centroid(building_points)
    for part in part_footprints:
        if point_in_polygon(centroid, part):
            return True
        if point_in_polygon(polygon_centroid(part), building_points):
            return True
    return False


def collect_features(ways, options):
    """
    Classify and normalize way records.

    Returns:
        dict: kind -> list of (way, footprint) pairs
    """
    collected = {kind: [] for kind in (KIND_BUILDING, KIND_BUILDING_PART, KIND_WATER, KIND_WATERWAY, KIND_ROAD)}
    for way in ways or []:
        tags = way.get('tags') or {}
        kind = classify_way(tags)
        if kind is None:
            continue
        closed = kind in (KIND_BUILDING, KIND_BUILDING_PART, KIND_WATER)
        footprint = normalize_footprint(
            way.get('coordinates'),
            options.center_lat,
            options.center_lon,
            options.radius,
            closed=closed,
            base_shape=options.base_shape,
        )
        if len(footprint) < (3 if closed else 2):
            continue
        collected[kind].append((way, footprint))
    return collected


def generate_building_mesh(buildings, parts, surface_height, options):
    """
    Extrude buildings and building parts into one mesh, one shell per footprint.

    Parts always render; a plain building overlapping a part is skipped so
    multi-part structures are not doubled. Below BUILDING_LOD_RESOLUTION,
    small plain buildings are dropped.

    Returns:
        tuple: (Mesh, stats dict)
    """
    pieces = []
    stats = {'parts': 0, 'buildings': 0, 'suppressed': 0, 'skipped_small': 0}
    part_footprints = [footprint for _, footprint in parts]

    for way, footprint in parts:
        volume = resolve_volume(way.get('tags'), options.is_3d_mode)
        piece = extrude_building(footprint, volume, surface_height, options.building_offset)
        if not piece.is_empty:
            pieces.append(piece)
            stats['parts'] += 1

    skip_threshold = 100.0 - options.resolution * 0.5
    for way, footprint in buildings:
        if part_footprints and is_suppressed_by_part(footprint, part_footprints):
            stats['suppressed'] += 1
            continue
        if options.resolution < BUILDING_LOD_RESOLUTION and bounding_box_area(footprint) < skip_threshold:
            stats['skipped_small'] += 1
            continue
        volume = resolve_volume(way.get('tags'), options.is_3d_mode)
        piece = extrude_building(footprint, volume, surface_height, options.building_offset)
        if not piece.is_empty:
            pieces.append(piece)
            stats['buildings'] += 1

    return merge_meshes(pieces), stats


def road_width(highway):
    return ROAD_WIDTHS.get(str(highway or '').strip().lower(), DEFAULT_ROAD_WIDTH)


def generate_road_mesh(roads, surface_height, options):
    """
    Lay each road centerline down as flat ribbons following the terrain.

    Returns:
        tuple: (Mesh, stats dict)
    """
    mesh = Mesh()
    stats = {'roads': 0, 'segments': 0, 'skipped_paths': 0, 'skipped_segments': 0}

    for way, points in roads:
        width = road_width((way.get('tags') or {}).get('highway'))
        if options.resolution < PATH_LOD_RESOLUTION and width < NARROW_ROAD_WIDTH:
            stats['skipped_paths'] += 1
            continue

        emitted = 0
        for p1, p2 in zip(points[:-1], points[1:]):
            if (p1.x - p2.x) ** 2 + (p1.z - p2.z) ** 2 < MIN_SEGMENT_LENGTH_SQ:
                stats['skipped_segments'] += 1
                continue
            start = [p1.x, float(surface_height(p1.x, p1.z)) + ROAD_CLEARANCE, p1.z]
            end = [p2.x, float(surface_height(p2.x, p2.z)) + ROAD_CLEARANCE, p2.z]
            if mesh.add_ribbon(start, end, width):
                emitted += 1

        if emitted:
            stats['roads'] += 1
            stats['segments'] += emitted

    return mesh, stats
