"""Printability checks and repairs for generated model fragments."""

import time

import numpy as np
from scipy.spatial import cKDTree

from .mesh import Mesh

# Fragments that must be closed solids; water and roads are open overlays
SOLID_FRAGMENTS = ('ground', 'foundation', 'buildings')
OVERLAY_FRAGMENTS = ('water', 'roads')


class MeshValidator:
    """
    Validate and auto-repair model fragments for 3D printing.

    Checks for common issues:
    - Face indices out of range
    - Duplicate vertices (merged, never across the recorded shells of a mesh)
    - Degenerate faces (zero-area or repeated-index triangles, removed)
    - Open or non-manifold edges on the solid fragments

    Repairs are applied in place on the Mesh objects of the model.
    """

    def __init__(self, merge_tolerance=1e-6, area_tolerance=1e-10):
        self.merge_tolerance = merge_tolerance
        self.area_tolerance = area_tolerance
        self.warnings = []
        self.fixes_applied = []
        self.is_printable = True

    def validate_and_fix(self, model, check_manifold=True):
        """
        Validate a generated model and auto-fix common issues.

        Args:
            model: Dict of fragment name -> Mesh (as returned by generate_mesh)
            check_manifold: Count open edges on the solid fragments

        Returns:
            dict: {
                'is_printable': bool,
                'warnings': list of warning messages,
                'fixes_applied': list of fixes that were applied,
                'open_edges': fragment name -> open/non-manifold edge count
            }
        """
        self.warnings = []
        self.fixes_applied = []
        self.is_printable = True
        open_edges = {}

        for name in SOLID_FRAGMENTS + OVERLAY_FRAGMENTS:
            mesh = model.get(name)
            if mesh is None or mesh.is_empty:
                continue
            t_start = time.time()
            solid = name in SOLID_FRAGMENTS
            count = self.validate_mesh(name, mesh, check_manifold=check_manifold and solid)
            if count is not None:
                open_edges[name] = count
            print(f"[PERF] Validated {name} in {time.time() - t_start:.3f}s")

        return {
            'is_printable': self.is_printable,
            'warnings': self.warnings,
            'fixes_applied': self.fixes_applied,
            'open_edges': open_edges,
        }

    def validate_mesh(self, name, mesh, check_manifold=True):
        """
        Validate and repair a single Mesh in place.

        Returns:
            int or None: non-manifold edge count when checked
        """
        vertices = np.asarray(mesh.vertices, dtype=np.float64).reshape(-1, 3)
        faces = np.asarray(mesh.faces, dtype=np.int64).reshape(-1, 3)

        invalid = self.count_invalid_indices(vertices, faces)
        if invalid > 0:
            self.is_printable = False
            self.warnings.append(f"{name}: {invalid} face(s) reference missing vertices")
            return None

        shell_ids = face_shell_ids(mesh.shells, len(faces))

        vertices, faces, merged_count = self._merge_duplicate_vertices(vertices, faces, shell_ids)
        if merged_count > 0:
            self.fixes_applied.append(f"Merged {merged_count} duplicate vertices in {name}")

        keep = self._non_degenerate_faces(vertices, faces)
        removed_count = int(len(faces) - keep.sum())
        if removed_count > 0:
            faces = faces[keep]
            if shell_ids is not None:
                shell_ids = shell_ids[keep]
            self.fixes_applied.append(f"Removed {removed_count} degenerate face(s) from {name}")

        if merged_count or removed_count:
            mesh.vertices = vertices.tolist()
            mesh.faces = faces.tolist()
            if shell_ids is not None:
                mesh.shells = shell_starts(shell_ids)

        if not check_manifold:
            return None

        non_manifold_count = self._check_manifold_edges(faces)
        if non_manifold_count > 0:
            self.is_printable = False
            self.warnings.append(f"{name}: {non_manifold_count} open or non-manifold edge(s) detected (may cause print issues)")
        return non_manifold_count

    @staticmethod
    def count_invalid_indices(vertices, faces):
        if len(faces) == 0:
            return 0
        bad = (faces < 0) | (faces >= len(vertices))
        return int(np.any(bad, axis=1).sum())

    def _non_degenerate_faces(self, vertices, faces):
        """
        Mask of faces to keep: no repeated index and area above the tolerance.

        Returns:
            numpy bool array, one entry per face
        """
        if len(faces) == 0:
            return np.ones(0, dtype=bool)

        repeated = (faces[:, 0] == faces[:, 1]) | (faces[:, 1] == faces[:, 2]) | (faces[:, 2] == faces[:, 0])

        v0 = vertices[faces[:, 0]]
        v1 = vertices[faces[:, 1]]
        v2 = vertices[faces[:, 2]]
        areas = np.linalg.norm(np.cross(v1 - v0, v2 - v0), axis=1) / 2.0

        return ~repeated & (areas > self.area_tolerance)

    def _merge_duplicate_vertices(self, vertices, faces, shell_ids=None):
        """
        Merge vertices closer than the tolerance using a KD-tree.

        With `shell_ids` (one per face) only vertices of the same shell are
        merged, so neighbouring solids touching along a wall stay closed.

        Returns:
            tuple: (unique_vertices, updated_faces, merged_count)
        """
        if len(vertices) == 0:
            return vertices, faces, 0

        tree = cKDTree(vertices)
        pairs = tree.query_pairs(self.merge_tolerance, output_type='ndarray')
        if len(pairs) and shell_ids is not None:
            labels = np.full(len(vertices), -1)
            labels[faces.ravel()] = np.repeat(shell_ids, 3)
            pairs = pairs[labels[pairs[:, 0]] == labels[pairs[:, 1]]]
        if len(pairs) == 0:
            return vertices, faces, 0

        # Each vertex maps to the lowest index it is (transitively) paired with
        vertex_map = np.arange(len(vertices))
        for i, j in sorted((min(a, b), max(a, b)) for a, b in pairs):
            root_i = i
            while vertex_map[root_i] != root_i:
                root_i = vertex_map[root_i]
            root_j = j
            while vertex_map[root_j] != root_j:
                root_j = vertex_map[root_j]
            if root_i != root_j:
                vertex_map[max(root_i, root_j)] = min(root_i, root_j)
        for v in range(len(vertex_map)):
            root = v
            while vertex_map[root] != root:
                root = vertex_map[root]
            vertex_map[v] = root

        unique_indices, remap = np.unique(vertex_map, return_inverse=True)
        merged_count = len(vertices) - len(unique_indices)
        return vertices[unique_indices], remap.reshape(-1)[faces], merged_count

    def _check_manifold_edges(self, faces):
        """
        Count edges not shared by exactly 2 faces (open or non-manifold).

        Returns:
            int: Number of offending edges
        """
        if len(faces) == 0:
            return 0

        edges = np.vstack([
            np.sort(faces[:, [0, 1]], axis=1),
            np.sort(faces[:, [1, 2]], axis=1),
            np.sort(faces[:, [2, 0]], axis=1),
        ])
        _, counts = np.unique(edges, axis=0, return_counts=True)
        return int(np.count_nonzero(counts != 2))


def face_shell_ids(shells, face_count):
    """Shell index of every face from a list of shell start offsets, or None."""
    if not shells:
        return None
    starts = np.asarray(shells, dtype=np.int64)
    return np.searchsorted(starts, np.arange(face_count), side='right') - 1


def shell_starts(shell_ids):
    """Inverse of face_shell_ids for faces grouped by shell."""
    if len(shell_ids) == 0:
        return []
    changes = np.flatnonzero(shell_ids[1:] != shell_ids[:-1]) + 1
    return [0] + changes.tolist()


def validate_model(model, check_manifold=True):
    """Convenience wrapper around MeshValidator().validate_and_fix."""
    return MeshValidator().validate_and_fix(model, check_manifold=check_manifold)


def is_watertight(mesh):
    """True when every edge of the mesh is shared by exactly two faces."""
    if not isinstance(mesh, Mesh) or mesh.is_empty:
        return False
    faces = np.asarray(mesh.faces, dtype=np.int64).reshape(-1, 3)
    return MeshValidator()._check_manifold_edges(faces) == 0
