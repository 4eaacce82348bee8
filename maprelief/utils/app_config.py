"""Application configuration helpers."""

import os


DEFAULT_MAX_RADIUS_METERS = 5000
DEFAULT_OVERPASS_TIMEOUT_SECONDS = 30


def parse_env_bool(value, default=False):
    """Parse a boolean-like environment value with a fallback default."""
    if value is None:
        return default
    normalized = str(value).strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    return default


def parse_env_int(name, default):
    """Parse an integer environment value with fallback."""
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except (TypeError, ValueError):
        return default


def parse_env_float(name, default):
    """Parse a float environment value with fallback."""
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return float(raw)
    except (TypeError, ValueError):
        return default


def get_cors_origins():
    """
    Return CORS origins from env, or localhost-only defaults.

    `MAPRELIEF_CORS_ORIGINS` supports a comma-separated list.
    """
    raw = os.getenv('MAPRELIEF_CORS_ORIGINS', '')
    if raw.strip():
        return [origin.strip() for origin in raw.split(',') if origin.strip()]
    return [r"^http://localhost(:\d+)?$", r"^http://127\.0\.0\.1(:\d+)?$"]


def get_default_water_depth():
    return max(0.0, parse_env_float("MAPRELIEF_WATER_DEPTH", 2.0))


def get_default_building_offset():
    return parse_env_float("MAPRELIEF_BUILDING_OFFSET", 0.0)


def get_elevation_grid_size():
    return max(2, parse_env_int("MAPRELIEF_ELEVATION_GRID_SIZE", 10))


def get_overpass_timeout_seconds():
    return max(1, parse_env_int("MAPRELIEF_OVERPASS_TIMEOUT_SECONDS", DEFAULT_OVERPASS_TIMEOUT_SECONDS))


def get_max_radius_meters():
    """Largest radius the API accepts before refusing a generation request."""
    return max(1, parse_env_int("MAPRELIEF_MAX_RADIUS_METERS", DEFAULT_MAX_RADIUS_METERS))


def is_debug_enabled():
    return parse_env_bool(os.getenv("MAPRELIEF_DEBUG"), default=False)
