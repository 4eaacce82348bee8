"""Image brightness heightmap to a printable solid."""

from io import BytesIO

import numpy as np
from PIL import Image

from .terrain import build_grid_solid

MIN_PIXELS = 5
ALPHA_THRESHOLD = 20


def load_image(source):
    """Open a path, raw bytes, a file object or an existing PIL image as RGBA."""
    if isinstance(source, Image.Image):
        image = source
    elif isinstance(source, (bytes, bytearray)):
        image = Image.open(BytesIO(source))
    else:
        image = Image.open(source)
    return image.convert('RGBA')


def target_size(width, height, resolution):
    """Resize target keeping the aspect ratio; the longer side gets `resolution` pixels."""
    aspect_ratio = width / height
    if aspect_ratio >= 1.0:
        target_width = resolution
        target_height = int(resolution / aspect_ratio)
    else:
        target_height = resolution
        target_width = int(resolution * aspect_ratio)
    return max(MIN_PIXELS, target_width), max(MIN_PIXELS, target_height)


def brightness_heights(pixels, height_scale):
    """
    Per-pixel displacement from an RGBA array.

    Brightness is (R + G + B) / (3 * 255); pixels with alpha below the
    threshold are flattened to 0.
    """
    rgb = pixels[:, :, :3].astype(np.float64)
    heights = rgb.sum(axis=2) / (3.0 * 255.0) * height_scale
    heights[pixels[:, :, 3] < ALPHA_THRESHOLD] = 0.0
    return heights


def generate_heightmap(image, height_scale=1.0, resolution=100, size=10.0, base_thickness=1.0):
    """
    Turn an image into a closed relief solid.

    Args:
        image: Path, bytes, file object or PIL image
        height_scale: Displacement of a pure white pixel
        resolution: Pixels along the longer side after resizing
        size: Model extent along the longer side
        base_thickness: Depth of the solid below the zero level

    Returns:
        Mesh: top surface, skirt and bottom cap
    """
    img = load_image(image)
    width, height = target_size(img.width, img.height, max(int(resolution), MIN_PIXELS))
    resized = img.resize((width, height))
    pixels = np.asarray(resized)

    heights = brightness_heights(pixels, float(height_scale))

    # Square pixels, centered on the origin; image row 0 is the far (north) edge
    spacing = size / (max(width, height) - 1)
    xs_1d = (np.arange(width) - (width - 1) / 2.0) * spacing
    zs_1d = (np.arange(height) - (height - 1) / 2.0) * spacing
    xs, zs = np.meshgrid(xs_1d, zs_1d)

    mesh = build_grid_solid(xs, zs, heights, -abs(float(base_thickness)))
    print(f"[INFO] Heightmap {width}x{height}: {len(mesh.faces)} faces")
    return mesh
