#!/usr/bin/env python3
"""
maprelief - Map to 3D print generator
JSON API turning OpenStreetMap data and terrain elevation into printable models.
"""

import os
import tempfile
import time
import uuid
import zipfile

from flask import Flask, request, jsonify, send_file
from flask_cors import CORS
from werkzeug.utils import secure_filename

from maprelief.utils.app_config import (
    get_cors_origins,
    get_default_building_offset,
    get_default_water_depth,
    get_elevation_grid_size,
    get_max_radius_meters,
    is_debug_enabled,
)
from maprelief.utils.elevation_fetcher import fetch_elevation_grid
from maprelief.utils.elevation_grid import ElevationGrid
from maprelief.utils.exporter import export_fragments_to_stl, export_to_3mf, export_to_stl
from maprelief.utils.generation_options import GenerationOptions
from maprelief.utils.heightmap import generate_heightmap
from maprelief.utils.mesh_generator import generate_mesh, model_from_dict, model_to_dict
from maprelief.utils.mesh_validator import MeshValidator
from maprelief.utils.osm_fetcher import fetch_osm_features

app = Flask(__name__)
CORS(app, resources={r"/*": {"origins": get_cors_origins()}})

EXPORT_FOLDER = os.path.join(tempfile.gettempdir(), 'maprelief-exports')
CLEANUP_MAX_AGE_SECONDS = 3600
MAX_RESOLUTION = 500

app.config['EXPORT_FOLDER'] = EXPORT_FOLDER
app.config['MAX_CONTENT_LENGTH'] = 16 * 1024 * 1024  # 16MB max upload/payload

os.makedirs(EXPORT_FOLDER, exist_ok=True)


def cleanup_old_files(directory, max_age_seconds):
    """Delete exports left behind by earlier requests."""
    now = time.time()
    try:
        for entry in os.scandir(directory):
            if entry.is_file() and now - entry.stat().st_mtime > max_age_seconds:
                os.remove(entry.path)
    except OSError as e:
        print(f"[WARN] Cleanup failed for {directory}: {e}")


def build_unique_path(directory, original_filename, required_ext):
    """Sanitised download name plus a collision-free path for it inside `directory`."""
    sanitized = secure_filename(original_filename or '') or f"model.{required_ext}"
    if not sanitized.endswith(f".{required_ext}"):
        sanitized = f"{sanitized}.{required_ext}"
    stem = sanitized[:-(len(required_ext) + 1)]
    unique_name = f"{stem}_{uuid.uuid4().hex[:10]}.{required_ext}"
    return sanitized, os.path.join(directory, unique_name)


def validate_generation_request(options):
    """Range checks the geometry core leaves to its caller; returns an error message or None."""
    max_radius = get_max_radius_meters()
    if options.radius > max_radius:
        return f"Radius must be at most {max_radius} meters"
    if not 1 <= options.resolution <= MAX_RESOLUTION:
        return f"Resolution must be between 1 and {MAX_RESOLUTION}"
    return None


@app.route('/api/generate', methods=['POST'])
def generate_model():
    """
    Generate a model around a center point.

    Body: {"options": {...}, "ways": [...]?, "elevation": {...}?}
    Ways and elevation are fetched when the request does not provide them.
    """
    try:
        t_start = time.time()
        data = request.get_json(silent=True) or {}

        try:
            options = GenerationOptions.from_dict(
                data.get('options', {}),
                water_depth=get_default_water_depth(),
                building_offset=get_default_building_offset(),
            )
        except (TypeError, ValueError) as e:
            return jsonify({'error': str(e)}), 400

        error = validate_generation_request(options)
        if error:
            return jsonify({'error': error}), 400

        ways = data.get('ways')
        if ways is None:
            feature_types = []
            if options.include_buildings:
                feature_types.append('buildings')
            if options.include_roads:
                feature_types.append('roads')
            if options.include_water:
                feature_types.append('water')
            ways = fetch_osm_features(options.center_lat, options.center_lon, options.radius,
                                      feature_types) if feature_types else []
        t_ways = time.time()

        elevation_grid = None
        if options.elevation_enabled:
            if data.get('elevation'):
                elevation_grid = ElevationGrid.from_dict(data['elevation'])
            else:
                elevation_grid = fetch_elevation_grid(
                    options.center_lat, options.center_lon, options.radius,
                    grid_size=get_elevation_grid_size(),
                )
        t_elevation = time.time()

        model = generate_mesh(ways, elevation_grid, options)
        t_mesh = time.time()

        validation = MeshValidator().validate_and_fix(model)
        t_validate = time.time()
        print(f"[PERF] Total /api/generate time: {t_validate - t_start:.3f}s")

        return jsonify({
            'success': True,
            'mesh': model_to_dict(model),
            'validation': validation,
            'elevation': elevation_grid.to_dict() if elevation_grid is not None else None,
            'timings': {
                'ways_seconds': round(t_ways - t_start, 4),
                'elevation_seconds': round(t_elevation - t_ways, 4),
                'mesh_seconds': round(t_mesh - t_elevation, 4),
                'validation_seconds': round(t_validate - t_mesh, 4),
                'total_seconds': round(t_validate - t_start, 4),
            },
            'metadata': model['metadata'],
        })

    except Exception as e:
        import traceback
        print(f"[ERROR] /api/generate failed: {str(e)}")
        traceback.print_exc()
        return jsonify({'error': str(e)}), 500


@app.route('/api/export/stl', methods=['POST'])
def export_stl():
    """
    Export a generated model to STL.

    With "separate": true every fragment is written to its own STL and the
    files are returned together in a ZIP archive.
    """
    try:
        cleanup_old_files(app.config['EXPORT_FOLDER'], CLEANUP_MAX_AGE_SECONDS)
        data = request.get_json(silent=True) or {}
        mesh_data = data.get('mesh', {})
        if not mesh_data:
            return jsonify({'error': 'No mesh data provided'}), 400

        model = model_from_dict(mesh_data)
        ascii_mode = bool(data.get('ascii', False))

        if data.get('separate'):
            filename, zip_path = build_unique_path(app.config['EXPORT_FOLDER'],
                                                   data.get('filename', 'model.zip'), 'zip')
            stem = filename[:-len('.zip')]
            work_dir = tempfile.mkdtemp(dir=app.config['EXPORT_FOLDER'])
            paths = export_fragments_to_stl(model, work_dir, basename=stem, ascii=ascii_mode)
            with zipfile.ZipFile(zip_path, 'w', zipfile.ZIP_DEFLATED) as zf:
                for path in paths:
                    zf.write(path, os.path.basename(path))
            return send_file(zip_path, mimetype='application/zip', as_attachment=True,
                             download_name=filename)

        filename, filepath = build_unique_path(app.config['EXPORT_FOLDER'],
                                               data.get('filename', 'model.stl'), 'stl')
        export_to_stl(model, filepath, fragments=data.get('fragments'), ascii=ascii_mode)

        return send_file(
            filepath,
            mimetype='application/sla',
            as_attachment=True,
            download_name=filename
        )

    except ValueError as e:
        return jsonify({'error': str(e)}), 400
    except Exception as e:
        return jsonify({'error': str(e)}), 500


@app.route('/api/export/3mf', methods=['POST'])
def export_3mf_route():
    """Export model to 3MF with one colored object per fragment."""
    try:
        cleanup_old_files(app.config['EXPORT_FOLDER'], CLEANUP_MAX_AGE_SECONDS)
        data = request.get_json(silent=True) or {}
        mesh_data = data.get('mesh', {})
        if not mesh_data:
            return jsonify({'error': 'No mesh data provided'}), 400

        model = model_from_dict(mesh_data)
        colors = data.get('colors') or mesh_data.get('metadata', {}).get('options', {}).get('colors')

        filename, filepath = build_unique_path(app.config['EXPORT_FOLDER'],
                                               data.get('filename', 'model.3mf'), '3mf')
        export_to_3mf(model, filepath, colors=colors)

        return send_file(
            filepath,
            mimetype='application/vnd.ms-package.3dmanufacturing-3dmodel+xml',
            as_attachment=True,
            download_name=filename
        )

    except ValueError as e:
        return jsonify({'error': str(e)}), 400
    except Exception as e:
        return jsonify({'error': str(e)}), 500


@app.route('/api/heightmap', methods=['POST'])
def heightmap():
    """Generate a relief solid from an uploaded image (multipart field "file")."""
    try:
        if 'file' not in request.files:
            return jsonify({'error': 'No file provided'}), 400
        file = request.files['file']
        if file.filename == '':
            return jsonify({'error': 'No file selected'}), 400

        try:
            height_scale = float(request.form.get('height_scale', 1.0))
            resolution = int(request.form.get('resolution', 100))
            size = float(request.form.get('size', 10.0))
            base_thickness = float(request.form.get('base_thickness', 1.0))
        except ValueError as e:
            return jsonify({'error': f'Invalid parameter: {e}'}), 400
        if not 1 <= resolution <= MAX_RESOLUTION:
            return jsonify({'error': f'Resolution must be between 1 and {MAX_RESOLUTION}'}), 400

        try:
            mesh = generate_heightmap(file.read(), height_scale, resolution, size, base_thickness)
        except OSError as e:
            return jsonify({'error': f'Unreadable image: {e}'}), 400

        return jsonify({
            'success': True,
            'mesh': mesh.to_dict(),
            'bounds': mesh.bounds(),
        })

    except Exception as e:
        return jsonify({'error': str(e)}), 500


@app.route('/api/health', methods=['GET'])
def health():
    """Liveness check."""
    return jsonify({
        'status': 'healthy',
        'service': 'maprelief'
    })


if __name__ == '__main__':
    app.run(host='0.0.0.0', port=5001, debug=is_debug_enabled())
