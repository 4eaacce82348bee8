"""Mesh generation service: map ways + elevation grid -> printable mesh fragments."""

import time
from abc import ABC, abstractmethod

from .elevation_grid import elevation_at
from .features import (
    KIND_BUILDING,
    KIND_BUILDING_PART,
    KIND_ROAD,
    KIND_WATER,
    KIND_WATERWAY,
    collect_features,
    generate_building_mesh,
    generate_road_mesh,
)
from .generation_options import GenerationOptions
from .mesh import Mesh
from .terrain import VERTICAL_EXAGGERATION, generate_terrain_mesh

FRAGMENTS = ('ground', 'foundation', 'water', 'buildings', 'roads')


class MeshGenerationService(ABC):
    """Turns already-fetched way records and an optional elevation grid into mesh fragments."""

    @abstractmethod
    def generate(self, ways, elevation_grid, options):
        """
        Args:
            ways: Iterable of {'id', 'tags', 'coordinates'} way records
            elevation_grid: ElevationGrid or None for flat terrain
            options: GenerationOptions

        Returns:
            dict: fragment name -> Mesh, plus 'metadata'
        """


class OsmMeshGenerationService(MeshGenerationService):
    """Generates ground, foundation, water, building and road meshes from OSM ways."""

    def generate(self, ways, elevation_grid, options):
        log = options.log
        t_start = time.time()

        grid = elevation_grid if options.elevation_enabled else None
        ground_level = options.resolve_ground_level(grid)

        def surface_height(x, z):
            return elevation_at(grid, x, z, ground_level=ground_level) * VERTICAL_EXAGGERATION

        features = collect_features(ways, options)
        water_polygons = []
        waterway_lines = []
        if options.include_water:
            water_polygons = [footprint for _, footprint in features[KIND_WATER]]
            waterway_lines = [line for _, line in features[KIND_WATERWAY]]

        log(f"[INFO] Generating model: radius={options.radius:g}m, resolution={options.resolution}, "
            f"shape={options.base_shape}, elevation={'yes' if grid is not None else 'flat'}")
        log(f"[INFO] Ways: {len(features[KIND_BUILDING])} buildings, "
            f"{len(features[KIND_BUILDING_PART])} parts, {len(features[KIND_ROAD])} roads, "
            f"{len(water_polygons)} water areas, {len(waterway_lines)} waterways")

        t_terrain = time.time()
        terrain = generate_terrain_mesh(
            options.radius,
            options.resolution,
            surface_height,
            base_shape=options.base_shape,
            base_thickness=options.base_thickness,
            water_polygons=water_polygons,
            waterway_lines=waterway_lines,
            water_depth=options.water_depth,
            log=log,
        )
        log(f"[PERF] Terrain generated in {time.time() - t_terrain:.3f}s")

        buildings = Mesh()
        building_stats = {}
        if options.include_buildings:
            t_buildings = time.time()
            buildings, building_stats = generate_building_mesh(
                features[KIND_BUILDING],
                features[KIND_BUILDING_PART],
                surface_height,
                options,
            )
            if building_stats['suppressed']:
                log(f"[INFO] Skipped {building_stats['suppressed']} buildings covered by building parts")
            if building_stats['skipped_small']:
                log(f"[INFO] Skipped {building_stats['skipped_small']} small buildings at resolution {options.resolution}")
            log(f"[PERF] Buildings generated in {time.time() - t_buildings:.3f}s")

        roads = Mesh()
        road_stats = {}
        if options.include_roads:
            t_roads = time.time()
            roads, road_stats = generate_road_mesh(features[KIND_ROAD], surface_height, options)
            if road_stats['skipped_paths']:
                log(f"[INFO] Skipped {road_stats['skipped_paths']} narrow paths at resolution {options.resolution}")
            log(f"[PERF] Roads generated in {time.time() - t_roads:.3f}s")

        model = {
            'ground': terrain['ground'],
            'foundation': terrain['foundation'],
            'water': terrain['water'],
            'buildings': buildings,
            'roads': roads,
        }
        model['metadata'] = {
            'grid_divisions': terrain['divisions'],
            'ground_level': ground_level,
            'vertical_exaggeration': VERTICAL_EXAGGERATION,
            'elevation': grid is not None,
            'counts': {name: {'vertices': len(model[name].vertices), 'faces': len(model[name].faces)}
                       for name in FRAGMENTS},
            'buildings': building_stats,
            'roads': road_stats,
            'options': options.to_dict(),
        }

        log(f"[PERF] Model generated in {time.time() - t_start:.3f}s "
            f"({sum(len(model[name].faces) for name in FRAGMENTS)} faces)")
        return model


def generate_mesh(ways, elevation_grid=None, options=None, service=None):
    """
    Generate the printable model for a set of ways.

    Args:
        ways: Way records ({'id', 'tags', 'coordinates'})
        elevation_grid: ElevationGrid or None
        options: GenerationOptions (required: it carries the center)
        service: MeshGenerationService to use (default OsmMeshGenerationService)

    Returns:
        dict: {'ground', 'foundation', 'water', 'buildings', 'roads': Mesh, 'metadata': dict}
    """
    if options is None:
        raise ValueError("Generation options are required")
    if not isinstance(options, GenerationOptions):
        options = GenerationOptions.from_dict(options)
    service = service or OsmMeshGenerationService()
    return service.generate(ways or [], elevation_grid, options)


def model_to_dict(model):
    """JSON-ready form of a generated model."""
    result = {name: model[name].to_dict() for name in FRAGMENTS if name in model}
    result['metadata'] = model.get('metadata', {})
    return result


def model_from_dict(data):
    """Inverse of model_to_dict; missing fragments become empty meshes."""
    model = {name: Mesh.from_dict(data.get(name) or {}) for name in FRAGMENTS}
    model['metadata'] = data.get('metadata', {})
    return model
