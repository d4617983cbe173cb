"""
api.errors - JSON bodies for failures raised inside /api/v1.

Upload size is capped by MAX_CONTENT_LENGTH (config.MAX_UPLOAD_MB); the
413 body names the limit so callers can split their taxonomy file.
"""

import logging

from flask import current_app, jsonify
from werkzeug.exceptions import BadRequest, NotFound, RequestEntityTooLarge

from api import api_bp

logger = logging.getLogger(__name__)


@api_bp.errorhandler(NotFound)
def api_not_found(_e):
    return jsonify({"error": "not found"}), 404


@api_bp.errorhandler(BadRequest)
def api_bad_request(e):
    return jsonify({"error": e.description or "bad request"}), 400


@api_bp.errorhandler(RequestEntityTooLarge)
def api_upload_too_large(_e):
    limit = current_app.config.get("MAX_CONTENT_LENGTH") or 0
    return jsonify({
        "error": "taxonomy file too large",
        "max_bytes": limit,
    }), 413


@api_bp.errorhandler(500)
def api_server_error(e):
    logger.error(f"Unhandled API error: {getattr(e, 'original_exception', e)!r}")
    return jsonify({"error": "internal server error"}), 500
