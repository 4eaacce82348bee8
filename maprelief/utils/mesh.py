"""Indexed triangle mesh container and closed primitives."""

import math

import numpy as np


class Mesh:
    """
    Indexed triangle mesh.

    `vertices` holds [x, y, z] positions (Y is up) and `faces` holds index
    triplets into `vertices`. Faces are wound so that their normal, taken as
    (v1 - v0) x (v2 - v0), points out of the solid they bound.

    `shells` is None for a single piece, or the face offset at which each
    separate closed solid starts when several were merged into one mesh.
    """

    def __init__(self, vertices=None, faces=None, shells=None):
        self.vertices = [[float(c) for c in v] for v in vertices] if vertices is not None else []
        self.faces = [[int(i) for i in f] for f in faces] if faces is not None else []
        self.shells = list(shells) if shells is not None else None

    def __len__(self):
        return len(self.faces)

    def __repr__(self):
        return f"Mesh(vertices={len(self.vertices)}, faces={len(self.faces)})"

    @property
    def is_empty(self):
        return not self.faces

    def add_vertex(self, x, y, z):
        self.vertices.append([float(x), float(y), float(z)])
        return len(self.vertices) - 1

    def add_triangle(self, a, b, c):
        self.faces.append([a, b, c])

    def add_quad(self, a, b, c, d):
        """Add quad a-b-c-d as two triangles sharing the a-c diagonal."""
        self.faces.append([a, b, c])
        self.faces.append([a, c, d])

    def add_ribbon(self, start, end, width):
        """
        Add a flat, upward-facing quad of `width` along start -> end.

        Args:
            start: [x, y, z] segment start
            end: [x, y, z] segment end
            width: Ribbon width, offset perpendicular to the segment in XZ

        Returns:
            bool: False when the segment has no horizontal extent
        """
        dx = end[0] - start[0]
        dz = end[2] - start[2]
        length = math.hypot(dx, dz)
        if length < 1e-9:
            return False

        # Perpendicular in the XZ plane, scaled to half the width
        ox = -dz / length * width / 2.0
        oz = dx / length * width / 2.0

        p0 = self.add_vertex(start[0] - ox, start[1], start[2] - oz)
        p1 = self.add_vertex(start[0] + ox, start[1], start[2] + oz)
        p2 = self.add_vertex(end[0] + ox, end[1], end[2] + oz)
        p3 = self.add_vertex(end[0] - ox, end[1], end[2] - oz)
        self.add_quad(p0, p1, p2, p3)
        return True

    def extend(self, other):
        """Append another mesh, offsetting its face indices."""
        offset = len(self.vertices)
        self.vertices.extend([list(v) for v in other.vertices])
        self.faces.extend([[a + offset, b + offset, c + offset] for a, b, c in other.faces])
        return self

    def bounds(self):
        if not self.vertices:
            return None
        arr = np.asarray(self.vertices, dtype=np.float64)
        return {'min': arr.min(axis=0).tolist(), 'max': arr.max(axis=0).tolist()}

    def to_dict(self):
        return {'vertices': self.vertices, 'faces': self.faces}

    @classmethod
    def from_dict(cls, data):
        return cls(data.get('vertices', []), data.get('faces', []))


def merge_meshes(meshes):
    """Merge several meshes into one, recording where each piece's faces start."""
    merged = Mesh(shells=[])
    for m in meshes:
        if m is None or m.is_empty:
            continue
        offset = len(merged.faces)
        merged.shells.extend(offset + start for start in (m.shells or [0]))
        merged.extend(m)
    return merged


def create_box(x1, x2, y1, y2, z1, z2):
    """Create a closed box mesh from min/max coordinates."""
    mesh = Mesh([
        [x1, y1, z1],  # 0: bottom-north-west
        [x2, y1, z1],  # 1: bottom-north-east
        [x2, y1, z2],  # 2: bottom-south-east
        [x1, y1, z2],  # 3: bottom-south-west
        [x1, y2, z1],  # 4: top-north-west
        [x2, y2, z1],  # 5: top-north-east
        [x2, y2, z2],  # 6: top-south-east
        [x1, y2, z2],  # 7: top-south-west
    ])

    mesh.faces = [
        # Bottom (-Y)
        [0, 1, 2], [0, 2, 3],
        # Top (+Y)
        [4, 6, 5], [4, 7, 6],
        # North (-Z)
        [0, 5, 1], [0, 4, 5],
        # South (+Z)
        [2, 7, 3], [2, 6, 7],
        # West (-X)
        [0, 7, 4], [0, 3, 7],
        # East (+X)
        [1, 6, 2], [1, 5, 6],
    ]
    return mesh


def create_cylinder(center_x, center_z, radius, y1, y2, segments=64):
    """Create a closed cylinder (disc slab) between y1 and y2."""
    mesh = Mesh()
    bottom_center = mesh.add_vertex(center_x, y1, center_z)
    top_center = mesh.add_vertex(center_x, y2, center_z)

    bottom = []
    top = []
    for i in range(segments):
        angle = 2 * math.pi * i / segments
        x = center_x + radius * math.cos(angle)
        z = center_z + radius * math.sin(angle)
        bottom.append(mesh.add_vertex(x, y1, z))
        top.append(mesh.add_vertex(x, y2, z))

    # Ring runs with positive signed area in XZ
    for i in range(segments):
        j = (i + 1) % segments
        mesh.add_triangle(bottom_center, bottom[i], bottom[j])
        mesh.add_triangle(top_center, top[j], top[i])
        mesh.add_quad(bottom[i], top[i], top[j], bottom[j])

    return mesh
