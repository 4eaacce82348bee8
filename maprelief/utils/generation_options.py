"""Options record for one mesh generation run."""

BASE_SHAPES = {'square', 'circular'}

DEFAULT_COLORS = {
    'base': '#C8C8C8',
    'building': '#FF6464',
    'road': '#323232',
    'water': '#4A90E2',
}


def normalize_base_shape(value):
    """Map user-facing shape names onto 'square' or 'circular'."""
    shape = str(value or 'square').strip().lower()
    if shape in {'circle', 'circular', 'round', 'disc'}:
        return 'circular'
    return 'square'


def _as_bool(value, default):
    if value is None:
        return default
    if isinstance(value, str):
        normalized = value.strip().lower()
        if normalized in {'1', 'true', 'yes', 'y', 'on'}:
            return True
        if normalized in {'0', 'false', 'no', 'n', 'off'}:
            return False
        return default
    return bool(value)


def _or_default(value, default):
    return default if value in (None, '') else value


class GenerationOptions:
    """
    Everything a generation run needs besides the input data.

    `ground_level` is the elevation reference subtracted from terrain samples:
    None means "lowest sample", and `use_raw_elevation` forces 0 so the model
    is built from absolute heights. `log` receives the progress messages.
    """

    def __init__(self, center_lat, center_lon, radius=500.0, base_shape='square',
                 base_thickness=2.0, resolution=50, is_3d_mode=True, ground_level=None,
                 use_raw_elevation=False, elevation_enabled=True, include_buildings=True,
                 include_roads=True, include_water=True, water_depth=2.0,
                 building_offset=0.0, colors=None, log=print):
        self.center_lat = float(center_lat)
        self.center_lon = float(center_lon)
        self.radius = float(radius)
        if self.radius <= 0:
            raise ValueError(f"Radius must be positive, got {radius}")
        self.base_shape = normalize_base_shape(base_shape)
        self.base_thickness = max(0.0, float(base_thickness))
        self.resolution = int(resolution)
        self.is_3d_mode = bool(is_3d_mode)
        self.ground_level = None if ground_level is None else float(ground_level)
        self.use_raw_elevation = bool(use_raw_elevation)
        self.elevation_enabled = bool(elevation_enabled)
        self.include_buildings = bool(include_buildings)
        self.include_roads = bool(include_roads)
        self.include_water = bool(include_water)
        self.water_depth = max(0.0, float(water_depth))
        self.building_offset = float(building_offset)
        self.colors = dict(DEFAULT_COLORS)
        if colors:
            self.colors.update({k: v for k, v in colors.items() if v})
        self.log = log if log is not None else (lambda message: None)

    def resolve_ground_level(self, elevation_grid=None):
        """Elevation reference for this run: explicit override, raw (0), or the grid minimum."""
        if self.ground_level is not None:
            return self.ground_level
        if self.use_raw_elevation:
            return 0.0
        if elevation_grid is not None:
            return elevation_grid.min_elevation
        return 0.0

    @classmethod
    def from_dict(cls, data, log=print, water_depth=2.0, building_offset=0.0):
        """
        Build options from a request payload.

        Accepts either `center: {lat, lon}` or top-level `lat`/`lon`. The
        `water_depth` and `building_offset` arguments are used when the payload
        omits them.
        """
        data = data or {}
        center = data.get('center') or {}
        lat = center.get('lat', data.get('lat', data.get('center_lat')))
        lon = center.get('lon', data.get('lon', data.get('center_lon')))
        if lat is None or lon is None:
            raise ValueError("Center latitude and longitude are required")

        ground_level = data.get('ground_level')
        return cls(
            lat,
            lon,
            radius=data.get('radius', 500.0),
            base_shape=data.get('base_shape', 'square'),
            base_thickness=data.get('base_thickness', 2.0),
            resolution=data.get('resolution', 50),
            is_3d_mode=_as_bool(data.get('is_3d_mode'), True),
            ground_level=None if ground_level in (None, '') else ground_level,
            use_raw_elevation=_as_bool(data.get('use_raw_elevation'), False),
            elevation_enabled=_as_bool(data.get('elevation_enabled'), True),
            include_buildings=_as_bool(data.get('include_buildings'), True),
            include_roads=_as_bool(data.get('include_roads'), True),
            include_water=_as_bool(data.get('include_water'), True),
            water_depth=_or_default(data.get('water_depth'), water_depth),
            building_offset=_or_default(data.get('building_offset'), building_offset),
            colors=data.get('colors'),
            log=log,
        )

    def to_dict(self):
        return {
            'center': {'lat': self.center_lat, 'lon': self.center_lon},
            'radius': self.radius,
            'base_shape': self.base_shape,
            'base_thickness': self.base_thickness,
            'resolution': self.resolution,
            'is_3d_mode': self.is_3d_mode,
            'ground_level': self.ground_level,
            'use_raw_elevation': self.use_raw_elevation,
            'elevation_enabled': self.elevation_enabled,
            'include_buildings': self.include_buildings,
            'include_roads': self.include_roads,
            'include_water': self.include_water,
            'water_depth': self.water_depth,
            'building_offset': self.building_offset,
            'colors': dict(self.colors),
        }
