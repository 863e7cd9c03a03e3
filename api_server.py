#!/usr/bin/env python3
"""
Running Record Composer API Server
Upload a photo and a record screenshot, process, drag the overlay around on
the preview, then download the full-resolution composite.
"""

import os
import logging
import uuid
import base64
from io import BytesIO
from typing import Dict, Optional
from dotenv import load_dotenv

# Load environment variables first
load_dotenv()

from flask import Flask, request, jsonify, send_file
from flask_cors import CORS
from werkzeug.exceptions import HTTPException
from werkzeug.utils import secure_filename

# --- Centralized Logging Configuration ---
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)-25s - %(levelname)-8s - %(message)s',
    datefmt='%H:%M:%S'
)

from runcard.errors import DecodeFailure, PipelineStateError
from runcard.models.image import Image
from runcard.pipeline.run_composer import RunComposer, generate_filename
from runcard.services.compositor_service import CompositorService
from runcard.services.image_service import ImageService

app = Flask(__name__)
CORS(app)  # Enable CORS for frontend communication

# Configuration
ALLOWED_EXTENSIONS = set(os.getenv("ALLOWED_EXTENSIONS", "png,jpg,jpeg,bmp,webp").split(","))
MAX_CONTENT_LENGTH = int(os.getenv("MAX_UPLOAD_SIZE_MB", "30")) * 1024 * 1024

app.config['MAX_CONTENT_LENGTH'] = MAX_CONTENT_LENGTH

# Initialize services (the compositor's render engine is checked here, once)
image_service = ImageService()
compositor = CompositorService()

logger = logging.getLogger(__name__)

# Session storage for composer state
sessions: Dict[str, RunComposer] = {}


def get_or_create_session(session_id: str = None) -> tuple:
    """Get existing composer or create a new one."""
    if not session_id:
        session_id = str(uuid.uuid4())

    if session_id not in sessions:
        sessions[session_id] = RunComposer(image_service=image_service, compositor=compositor)

    return session_id, sessions[session_id]


def get_session(payload: Optional[dict]):
    session_id = (payload or {}).get('session_id')
    if not session_id or session_id not in sessions:
        return None, None
    return session_id, sessions[session_id]


def allowed_file(filename: str) -> bool:
    """Check if file extension is allowed."""
    return '.' in filename and filename.rsplit('.', 1)[1].lower() in ALLOWED_EXTENSIONS


def image_to_base64(image: Image) -> str:
    """Convert Image object to a PNG data URL for JSON responses."""
    base64_string = base64.b64encode(image_service.encode_png(image)).decode('utf-8')
    return f"data:image/png;base64,{base64_string}"


def preview_payload(session_id: str, composer: RunComposer, preview: Image, message: str) -> dict:
    return {
        'success': True,
        'session_id': session_id,
        'state': composer.state.value,
        'preview': image_to_base64(preview),
        'canvas': {'width': preview.width, 'height': preview.height},
        'placement': composer.placement.as_dict() if composer.placement else None,
        'message': message,
    }


def error_response(message: str, status: int):
    return jsonify({'success': False, 'message': message}), status


@app.route('/api/load-images', methods=['POST'])
def load_images():
    """Load background photo and record screenshot into a session."""
    try:
        session_id, composer = get_or_create_session(request.form.get('session_id'))

        files = {}
        for key in ('background_image', 'record_image'):
            upload = request.files.get(key)
            if upload is None or upload.filename == '':
                return error_response(f'No {key} provided', 400)
            if not allowed_file(secure_filename(upload.filename)):
                return error_response(f'Unsupported file type: {upload.filename}', 400)
            files[key] = upload.read()

        background, record = composer.load_images(files['background_image'], files['record_image'])

        return jsonify({
            'success': True,
            'session_id': session_id,
            'state': composer.state.value,
            'background': {'width': background.width, 'height': background.height},
            'record': {'width': record.width, 'height': record.height},
            'message': 'Loaded background and record images'
        })

    except DecodeFailure as e:
        logger.error(f"Image decode error: {e}")
        return error_response(f'Could not read image: {e}', 400)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Image loading error: {e}")
        return error_response(f'Error loading images: {str(e)}', 500)


@app.route('/api/process', methods=['POST'])
def process_step():
    """Smart-crop, matte and render the first preview."""
    payload = request.get_json(silent=True) or {}
    session_id, composer = get_session(payload)
    if composer is None:
        return error_response('Invalid session', 400)

    try:
        preview = composer.process(payload.get('color_mode', 'white'), payload.get('sensitivity'))
        if preview is None:
            return error_response('Run superseded by a newer request', 409)
        return jsonify(preview_payload(session_id, composer, preview, 'Preview ready'))

    except PipelineStateError as e:
        return error_response(str(e), 409)
    except ValueError as e:
        return error_response(str(e), 400)
    except Exception as e:
        logger.error(f"Processing error: {e}")
        return error_response(f'Error in processing: {str(e)}', 500)


@app.route('/api/placement/drag', methods=['POST'])
def drag_overlay():
    """Move the overlay by (dx, dy) preview pixels."""
    payload = request.get_json(silent=True) or {}
    session_id, composer = get_session(payload)
    if composer is None:
        return error_response('Invalid session', 400)

    try:
        preview = composer.drag(float(payload.get('dx', 0)), float(payload.get('dy', 0)))
        return jsonify(preview_payload(session_id, composer, preview, 'Overlay moved'))
    except PipelineStateError as e:
        return error_response(str(e), 409)
    except (TypeError, ValueError, OverflowError) as e:
        return error_response(str(e), 400)


@app.route('/api/placement/reset', methods=['POST'])
def reset_overlay():
    """Put the overlay back at its default position and size."""
    payload = request.get_json(silent=True) or {}
    session_id, composer = get_session(payload)
    if composer is None:
        return error_response('Invalid session', 400)

    try:
        preview = composer.reset_placement()
        return jsonify(preview_payload(session_id, composer, preview, 'Overlay position reset'))
    except PipelineStateError as e:
        return error_response(str(e), 409)


@app.route('/api/export', methods=['POST'])
def export_image():
    """Render at the photo's native resolution and download as PNG."""
    payload = request.get_json(silent=True) or {}
    session_id, composer = get_session(payload)
    if composer is None:
        return error_response('Invalid session', 400)

    try:
        result = composer.export()
        filename = generate_filename()
        logger.info(f"Session {session_id} exported {result.width}x{result.height} as {filename}")
        return send_file(
            BytesIO(image_service.encode_png(result)),
            mimetype='image/png',
            as_attachment=True,
            download_name=filename,
        )
    except PipelineStateError as e:
        return error_response(str(e), 409)
    except Exception as e:
        logger.error(f"Export error: {e}")
        return error_response(f'Error in export: {str(e)}', 500)


@app.route('/api/health', methods=['GET'])
def health_check():
    """Health check endpoint."""
    return jsonify({
        'status': 'healthy',
        'message': 'Running Record Composer API is running',
        'render_backend': compositor.engine.backend_version,
        'active_sessions': len(sessions)
    })


@app.route('/api/clear-session', methods=['POST'])
def clear_session():
    """Clear a session and free memory."""
    payload = request.get_json(silent=True) or {}
    session_id = payload.get('session_id')
    if session_id and session_id in sessions:
        del sessions[session_id]
        return jsonify({'success': True, 'message': 'Session cleared'})
    return jsonify({'success': False, 'message': 'Session not found'})


@app.errorhandler(413)
def too_large(e):
    """Handle file too large error."""
    return error_response(f'File too large. Maximum size is {MAX_CONTENT_LENGTH // (1024*1024)}MB.', 413)


@app.errorhandler(400)
def bad_request(e):
    """Handle bad request error."""
    return error_response('Bad request', 400)


@app.errorhandler(500)
def internal_error(e):
    """Handle internal server error."""
    logger.error(f"Internal server error: {e}")
    return error_response('Internal server error', 500)


def main():
    port = int(os.getenv("API_SERVER_PORT", "5002"))
    print("🚀 Starting Running Record Composer API Server...")
    print(f"🔧 Max upload size: {MAX_CONTENT_LENGTH // (1024*1024)}MB")
    print("📋 Steps:")
    print("   1. /api/load-images")
    print("   2. /api/process")
    print("   3. /api/placement/drag, /api/placement/reset")
    print("   4. /api/export")
    print("="*60)
    app.run(debug=False, host='0.0.0.0', port=port)


if __name__ == '__main__':
    main()
