"""
api.routes_import - /api/v1/import endpoint.

Accepts CSV or XML via multipart file upload or raw request body.
"""

from flask import request, jsonify

from api import api_bp
from db import get_session
from services.vocabulary_service import get_vocabulary
from taxonomy_import import run_import
from taxonomy_import.field_map import IMPORT_MODES, MODE_STANDARD


def _param(name: str, default: str = "") -> str:
    return (request.args.get(name) or request.form.get(name) or default).strip()


@api_bp.route("/import", methods=["POST"])
def api_import_terms():
    """
    POST /api/v1/import?vocabulary=<vid>&mode=standard|canadian_cities&force_new=0|1

    Multipart: field name 'taxonomy_file'
    Or: raw file as request body (Content-Type: text/csv or application/xml).
    """
    vid = _param("vocabulary")
    mode = _param("mode", MODE_STANDARD)
    force_new = _param("force_new", "0") == "1"

    if not vid:
        return jsonify({"error": "vocabulary is required"}), 400
    if mode not in IMPORT_MODES:
        return jsonify({"error": f"unknown mode {mode!r}"}), 400

    if request.content_type and "multipart" in request.content_type:
        f = request.files.get("taxonomy_file")
        if not f:
            return jsonify({"error": "no taxonomy_file in upload"}), 400
        content = f.read()
        filename = f.filename or ""
        mimetype = f.mimetype or ""
    else:
        content = request.get_data()
        filename = ""
        mimetype = request.mimetype or ""

    if not content:
        return jsonify({"error": "empty body"}), 400

    session = get_session()
    try:
        if get_vocabulary(session, vid) is None:
            return jsonify({"error": f"unknown vocabulary {vid!r}"}), 404

        report = run_import(
            content, vid,
            filename=filename, mimetype=mimetype, mode=mode,
            force_new_terms=force_new, session=session,
        )
    finally:
        session.close()

    if not report.ok:
        return jsonify(report.to_dict()), 400
    return jsonify(report.to_dict())
