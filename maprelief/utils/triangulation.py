"""Polygon triangulation and point-in-polygon helpers."""

import numpy as np

from .projection import PlanarPoint

_EPSILON = 1e-12
_CLOSING_TOLERANCE = 1e-9


def _xz(point):
    """Return (x, z) for a PlanarPoint, tuple, or 2-element array."""
    return float(point[0]), float(point[1])


def cross_2d(o, a, b):
    return (a[0] - o[0]) * (b[1] - o[1]) - (a[1] - o[1]) * (b[0] - o[0])


def signed_area(points):
    """Shoelace signed area of a polygon in the (x, z) plane."""
    n = len(points)
    area = 0.0
    for i in range(n):
        x1, z1 = _xz(points[i])
        x2, z2 = _xz(points[(i + 1) % n])
        area += x1 * z2 - x2 * z1
    return area / 2.0


def drop_closing_vertex(points):
    """Drop a repeated closing vertex (OSM closed ways repeat the first node)."""
    points = list(points)
    if len(points) > 1:
        x0, z0 = _xz(points[0])
        xn, zn = _xz(points[-1])
        if abs(x0 - xn) <= _CLOSING_TOLERANCE and abs(z0 - zn) <= _CLOSING_TOLERANCE:
            points = points[:-1]
    return points


def point_in_triangle(p, a, b, c):
    """Sign-based barycentric test. Points on an edge count as inside."""
    d1 = cross_2d(a, b, p)
    d2 = cross_2d(b, c, p)
    d3 = cross_2d(c, a, p)
    has_neg = (d1 < -_EPSILON) or (d2 < -_EPSILON) or (d3 < -_EPSILON)
    has_pos = (d1 > _EPSILON) or (d2 > _EPSILON) or (d3 > _EPSILON)
    return not (has_neg and has_pos)


def triangulate_polygon(points_2d):
    """Triangulate a simple 2D polygon using ear-clipping.

    The polygon is normalized to positive signed area in the (x, z) plane
    before clipping, so every returned triangle has that same orientation
    whatever the input winding was. Self-intersecting or degenerate input
    stops after 2 * n scans without an ear and keeps the triangles found so
    far; it never loops forever and never falls back to a fan.

    Args:
        points_2d: Sequence of (x, z) points; a repeated closing vertex is ignored

    Returns:
        List of triangle index triplets (indices into points_2d)
    """
    pts = [_xz(p) for p in drop_closing_vertex(points_2d)]
    n = len(pts)
    if n < 3:
        return []

    indices = list(range(n))
    if signed_area(pts) < 0:
        indices.reverse()

    def is_ear(pos):
        m = len(indices)
        prev_pos = (pos - 1) % m
        next_pos = (pos + 1) % m
        a = pts[indices[prev_pos]]
        b = pts[indices[pos]]
        c = pts[indices[next_pos]]

        if cross_2d(a, b, c) <= _EPSILON:
            return False

        for j in range(m):
            if j in (prev_pos, pos, next_pos):
                continue
            if point_in_triangle(pts[indices[j]], a, b, c):
                return False
        return True

    triangles = []
    max_iterations = 2 * n
    iteration = 0
    while len(indices) > 3 and iteration < max_iterations:
        iteration += 1
        m = len(indices)
        for i in range(m):
            if is_ear(i):
                triangles.append([indices[(i - 1) % m], indices[i], indices[(i + 1) % m]])
                indices.pop(i)
                break
        else:
            # No ear left: self-intersecting or degenerate outline
            break

    if len(indices) == 3:
        triangles.append(list(indices))

    return triangles


def triangulate(polygon):
    """Triangulate a polygon and return its triangles as point triples."""
    points = [PlanarPoint(*_xz(p)) for p in drop_closing_vertex(polygon)]
    return [(points[a], points[b], points[c]) for a, b, c in triangulate_polygon(points)]


def triangle_area(a, b, c):
    return abs(cross_2d(a, b, c)) / 2.0


def point_in_polygon(point, polygon):
    """Check if a point is inside a polygon using ray casting algorithm."""
    x, z = _xz(point)
    n = len(polygon)
    if n < 3:
        return False
    inside = False

    j = n - 1
    for i in range(n):
        xi, zi = _xz(polygon[i])
        xj, zj = _xz(polygon[j])

        if ((zi > z) != (zj > z)) and (x < (xj - xi) * (z - zi) / (zj - zi) + xi):
            inside = not inside
        j = i

    return inside


def points_in_polygon(xs, zs, polygon):
    """Vectorized ray casting: boolean mask of which (xs, zs) fall inside polygon."""
    xs = np.asarray(xs, dtype=np.float64)
    zs = np.asarray(zs, dtype=np.float64)
    inside = np.zeros(xs.shape, dtype=bool)
    n = len(polygon)
    if n < 3:
        return inside

    j = n - 1
    for i in range(n):
        xi, zi = _xz(polygon[i])
        xj, zj = _xz(polygon[j])
        if zi != zj:
            crosses = (zi > zs) != (zj > zs)
            x_cross = (xj - xi) * (zs - zi) / (zj - zi) + xi
            inside ^= crosses & (xs < x_cross)
        j = i

    return inside


def polygon_centroid(points):
    """Vertex-average centroid."""
    if not points:
        return PlanarPoint(0.0, 0.0)
    xs = [_xz(p)[0] for p in points]
    zs = [_xz(p)[1] for p in points]
    return PlanarPoint(sum(xs) / len(xs), sum(zs) / len(zs))
