"""Ground solid generation: terrain grid, skirt, foundation slab and water."""

import numpy as np

from .mesh import Mesh, create_box, create_cylinder
from .triangulation import points_in_polygon, triangulate_polygon

# Vertical exaggeration so relief survives printing at small scale
VERTICAL_EXAGGERATION = 1.5

MIN_GRID_DIVISIONS = 40
MAX_GRID_DIVISIONS = 150

WATERWAY_CARVE_DISTANCE = 6.0  # meters either side of a waterway centerline
WATER_SURFACE_LIFT = 0.3  # water sheet height above the carved bottom
FOUNDATION_MARGIN = 1.0  # gap between the deepest carve and the foundation
SLAB_SEGMENTS = 64


def grid_divisions(resolution):
    """Grid cells per side for a 1-100 style resolution setting."""
    try:
        divisions = int(resolution)
    except (TypeError, ValueError):
        divisions = MIN_GRID_DIVISIONS
    return max(MIN_GRID_DIVISIONS, min(MAX_GRID_DIVISIONS, divisions))


def foundation_level(water_depth):
    """Y of the flat foundation the skirt drops to (top of the slab)."""
    return -(max(water_depth, 0.0) * VERTICAL_EXAGGERATION + FOUNDATION_MARGIN)


def distance_to_polyline(xs, zs, line):
    """Vectorized distance from points (xs, zs) to a polyline."""
    xs = np.asarray(xs, dtype=np.float64)
    zs = np.asarray(zs, dtype=np.float64)
    best = np.full(xs.shape, np.inf)
    for (ax, az), (bx, bz) in zip(line[:-1], line[1:]):
        dx = bx - ax
        dz = bz - az
        seg_len_sq = dx * dx + dz * dz
        if seg_len_sq < 1e-12:
            t = 0.0
        else:
            t = np.clip(((xs - ax) * dx + (zs - az) * dz) / seg_len_sq, 0.0, 1.0)
        dist = np.hypot(xs - (ax + t * dx), zs - (az + t * dz))
        best = np.minimum(best, dist)
    return best


def water_mask(xs, zs, water_polygons=(), waterway_lines=()):
    """Boolean mask of grid points inside a water polygon or beside a waterway."""
    mask = np.zeros(np.shape(xs), dtype=bool)
    for polygon in water_polygons:
        if len(polygon) >= 3:
            mask |= points_in_polygon(xs, zs, polygon)
    for line in waterway_lines:
        if len(line) >= 2:
            mask |= distance_to_polyline(xs, zs, line) <= WATERWAY_CARVE_DISTANCE
    return mask


def build_grid_solid(xs, zs, heights, floor_y):
    """
    Close a regular height grid into a watertight solid.

    Emits the top surface (two triangles per cell), a vertical skirt along
    the grid perimeter down to `floor_y`, and a flat bottom cap fanned from
    the grid center.

    Args:
        xs: 2D array of X coordinates, rows running north to south (+Z)
        zs: 2D array of Z coordinates, same shape
        heights: 2D array of top-surface Y values
        floor_y: Y of the flat bottom

    Returns:
        Mesh: closed ground solid
    """
    rows, cols = heights.shape
    vertices = np.stack([xs, heights, zs], axis=-1).reshape(-1, 3)
    mesh = Mesh(vertices.tolist())

    # Top surface, normals pointing up (+Y)
    faces = []
    for i in range(rows - 1):
        for j in range(cols - 1):
            idx = i * cols + j
            idx_right = idx + 1
            idx_down = idx + cols
            idx_diag = idx + cols + 1
            faces.append([idx, idx_down, idx_right])
            faces.append([idx_right, idx_down, idx_diag])
    mesh.faces.extend(faces)

    # Perimeter loop with positive signed area in XZ:
    # north edge west->east, east edge north->south, south edge east->west, west edge south->north
    perimeter = list(range(cols))
    perimeter += [i * cols + (cols - 1) for i in range(1, rows)]
    perimeter += [(rows - 1) * cols + j for j in range(cols - 2, -1, -1)]
    perimeter += [i * cols for i in range(rows - 2, 0, -1)]

    bottom = [mesh.add_vertex(mesh.vertices[idx][0], floor_y, mesh.vertices[idx][2]) for idx in perimeter]
    center = mesh.add_vertex(float(np.mean(xs)), floor_y, float(np.mean(zs)))

    count = len(perimeter)
    for k in range(count):
        n = (k + 1) % count
        # Skirt wall, normal pointing outward
        mesh.add_quad(bottom[k], perimeter[k], perimeter[n], bottom[n])
        # Bottom cap, normal pointing down (-Y)
        mesh.add_triangle(center, bottom[k], bottom[n])

    return mesh


def generate_foundation_mesh(radius, floor_y, base_thickness, base_shape='square'):
    """Thin slab under the ground solid: a box, or a cylinder for circular bases."""
    y_bottom = floor_y - max(base_thickness, 0.0)
    if base_shape == 'circular':
        return create_cylinder(0.0, 0.0, radius, y_bottom, floor_y, segments=SLAB_SEGMENTS)
    return create_box(-radius, radius, y_bottom, floor_y, -radius, radius)


def generate_water_surface(water_polygons, waterway_lines, surface_height, carve_depth):
    """
    Preview-only water sheet sitting just above the carved depression bottom.

    Water polygons are triangulated; waterway centerlines become ribbons
    narrower than the carved channel.
    """
    mesh = Mesh()
    lift = WATER_SURFACE_LIFT - carve_depth

    for polygon in water_polygons:
        triangles = triangulate_polygon(polygon)
        if not triangles:
            continue
        indices = [
            mesh.add_vertex(p[0], float(surface_height(p[0], p[1])) + lift, p[1])
            for p in polygon
        ]
        for a, b, c in triangles:
            # Triangulation output faces down; reverse it to face up
            mesh.add_triangle(indices[c], indices[b], indices[a])

    for line in waterway_lines:
        for p1, p2 in zip(line[:-1], line[1:]):
            start = [p1[0], float(surface_height(p1[0], p1[1])) + lift, p1[1]]
            end = [p2[0], float(surface_height(p2[0], p2[1])) + lift, p2[1]]
            mesh.add_ribbon(start, end, WATERWAY_CARVE_DISTANCE)

    return mesh


def generate_terrain_mesh(radius, resolution, surface_height, base_shape='square',
                          base_thickness=2.0, water_polygons=(), waterway_lines=(),
                          water_depth=2.0, log=print):
    """
    Generate the ground solid, its foundation slab, and the water overlay.

    Args:
        radius: Half-extent of the square footprint in meters
        resolution: Detail level; picks grid density (clamped to 40-150 cells per side)
        surface_height: Callable (xs, zs) -> terrain Y, already vertically exaggerated
        base_shape: 'square' or 'circular'
        base_thickness: Thickness of the foundation slab
        water_polygons: Normalized water body footprints
        waterway_lines: Normalized waterway centerlines
        water_depth: Carve depth in meters (before exaggeration)
        log: Logging sink

    Returns:
        dict: {'ground': Mesh, 'foundation': Mesh, 'water': Mesh, 'divisions': int}
    """
    divisions = grid_divisions(resolution)
    coords = np.linspace(-radius, radius, divisions + 1)
    xs, zs = np.meshgrid(coords, coords)

    heights = np.asarray(surface_height(xs, zs), dtype=np.float64)
    if heights.shape != xs.shape:
        heights = np.broadcast_to(heights, xs.shape).copy()

    floor_y = foundation_level(water_depth)
    carve_depth = max(water_depth, 0.0) * VERTICAL_EXAGGERATION

    water_polygons = [p for p in water_polygons if len(p) >= 3]
    waterway_lines = [line for line in waterway_lines if len(line) >= 2]
    if water_polygons or waterway_lines:
        mask = water_mask(xs, zs, water_polygons, waterway_lines)
        heights[mask] -= carve_depth
        log(f"[INFO] Carved {int(mask.sum())} grid vertices for water")

    if base_shape == 'circular':
        outside = xs ** 2 + zs ** 2 > radius ** 2
        heights[outside] = floor_y

    ground = build_grid_solid(xs, zs, heights, floor_y)
    foundation = generate_foundation_mesh(radius, floor_y, base_thickness, base_shape)
    water = generate_water_surface(water_polygons, waterway_lines, surface_height, carve_depth)

    log(f"[INFO] Terrain grid {divisions}x{divisions}: {len(ground.faces)} ground faces, "
        f"{len(water.faces)} water faces")

    return {
        'ground': ground,
        'foundation': foundation,
        'water': water,
        'divisions': divisions,
    }
