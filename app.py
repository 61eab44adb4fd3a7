"""
CAM Cleaner web service.

Upload a DXF, run one cleanup command on it and get the counts back as JSON,
or the cleaned drawing itself with download=1.

Endpoints:
    POST /api/flatten-normals          multipart field 'file'
    POST /api/audit-purge              multipart field 'file'
    POST /api/normalize-text-styles    multipart field 'file', optional 'style'
    GET  /api/health
    GET  /api/errors                   error counts and alerts
    DELETE /api/errors                reset error counts
"""

import io
import logging

from flask import Blueprint, Flask, jsonify, request, send_file
from werkzeug.utils import secure_filename

from cleaner_config import CleanerConfig, configure_logging, normalizer_config_from_env
from drawing_commands import (
    DrawingSession,
    audit_purge,
    flatten_poly_normals,
    normalize_text_styles,
)
from error_handler import (
    create_error_response,
    error_handler,
    handle_processing_errors,
    log_performance,
)

logger = logging.getLogger(__name__)

cleanup_bp = Blueprint('cleanup', __name__, url_prefix='/api')


def _load_upload():
    """Read the uploaded DXF into a session, or return an error response"""
    upload = request.files.get('file')
    if upload is None or not upload.filename:
        return None, create_error_response('No file uploaded', 400)
    filename = secure_filename(upload.filename)
    if not CleanerConfig.allowed_file(filename):
        return None, create_error_response(f'Unsupported file type: {filename}', 400)
    return DrawingSession.from_bytes(upload.read(), name=filename), None


def _respond(session, result):
    """JSON summary, or the cleaned drawing when download is requested"""
    if request.values.get('download') in ('1', 'true', 'yes'):
        return send_file(
            io.BytesIO(session.to_bytes()),
            mimetype='application/dxf',
            as_attachment=True,
            download_name=f"cleaned_{session.source}",
        )
    payload = result.to_dict()
    payload['success'] = True
    payload['filename'] = session.source
    return jsonify(payload)


@cleanup_bp.route('/health', methods=['GET'])
def health():
    return jsonify({
        'status': 'ok',
        'errors': error_handler.get_error_stats()['total_errors'],
    })


@cleanup_bp.route('/errors', methods=['GET', 'DELETE'])
def errors():
    if request.method == 'DELETE':
        error_handler.reset_error_counts()
    return jsonify(error_handler.get_error_stats())


@cleanup_bp.route('/flatten-normals', methods=['POST'])
@handle_processing_errors
@log_performance
def api_flatten_normals():
    session, error = _load_upload()
    if error:
        return error
    result = flatten_poly_normals(session, config=normalizer_config_from_env())
    return _respond(session, result)


@cleanup_bp.route('/audit-purge', methods=['POST'])
@handle_processing_errors
@log_performance
def api_audit_purge():
    session, error = _load_upload()
    if error:
        return error
    result = audit_purge(session)
    return _respond(session, result)


@cleanup_bp.route('/normalize-text-styles', methods=['POST'])
@handle_processing_errors
@log_performance
def api_normalize_text_styles():
    session, error = _load_upload()
    if error:
        return error
    result = normalize_text_styles(session, style=request.values.get('style') or None)
    return _respond(session, result)


def create_app():
    """Build the Flask app with the cleanup API registered"""
    app = Flask(__name__)
    app.config['MAX_CONTENT_LENGTH'] = CleanerConfig.MAX_CONTENT_LENGTH
    app.register_blueprint(cleanup_bp)

    @app.errorhandler(413)
    def too_large(e):
        return create_error_response('File too large', 413)

    return app


app = create_app()


if __name__ == '__main__':
    configure_logging()
    problems = CleanerConfig.validate_config()
    for problem in problems:
        logger.error(f"Configuration problem: {problem}")
    if not problems:
        logger.info(f"Starting CAM cleaner on {CleanerConfig.HOST}:{CleanerConfig.PORT}")
        app.run(host=CleanerConfig.HOST, port=CleanerConfig.PORT, debug=CleanerConfig.DEBUG)
