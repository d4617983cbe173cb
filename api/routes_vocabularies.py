"""
api.routes_vocabularies - /api/v1/vocabularies endpoints.

Lets callers create vocabularies, declare their custom fields, and
inspect the imported two-level term tree.
"""

from flask import request, jsonify

from api import api_bp
from db import get_session
from services.vocabulary_service import (
    declare_field,
    get_or_create_vocabulary,
    get_vocabulary,
    list_vocabularies,
    term_tree,
)
from taxonomy_import.values import FIELD_TYPE_STRING


@api_bp.route("/vocabularies")
def vocabularies_list():
    session = get_session()
    try:
        return jsonify([v.to_dict() for v in list_vocabularies(session)])
    finally:
        session.close()


@api_bp.route("/vocabularies", methods=["POST"])
def vocabularies_create():
    """
    POST /api/v1/vocabularies  {name, description?}

    Idempotent: an existing vocabulary with the same machine name is
    returned unchanged.
    """
    data = request.get_json(silent=True) or {}
    name = str(data.get("name", "")).strip()
    if not name:
        return jsonify({"error": "name is required"}), 400

    session = get_session()
    try:
        vocab = get_or_create_vocabulary(session, name, str(data.get("description", "")))
        return jsonify(vocab.to_dict(with_fields=True)), 201
    finally:
        session.close()


@api_bp.route("/vocabularies/<vid>")
def vocabularies_get(vid: str):
    session = get_session()
    try:
        vocab = get_vocabulary(session, vid)
        if vocab is None:
            return jsonify({"error": "not found"}), 404
        return jsonify(vocab.to_dict(with_fields=True))
    finally:
        session.close()


@api_bp.route("/vocabularies/<vid>/fields", methods=["POST"])
def vocabularies_declare_field(vid: str):
    """POST /api/v1/vocabularies/{vid}/fields  {field_name, field_type?, label?}"""
    data = request.get_json(silent=True) or {}
    session = get_session()
    try:
        if get_vocabulary(session, vid) is None:
            return jsonify({"error": "not found"}), 404
        field = declare_field(
            session, vid,
            str(data.get("field_name", "")).strip(),
            str(data.get("field_type", FIELD_TYPE_STRING)),
            str(data.get("label", "")),
        )
        return jsonify(field.to_dict()), 201
    except ValueError as exc:
        return jsonify({"error": str(exc)}), 400
    finally:
        session.close()


@api_bp.route("/vocabularies/<vid>/terms")
def vocabularies_terms(vid: str):
    session = get_session()
    try:
        if get_vocabulary(session, vid) is None:
            return jsonify({"error": "not found"}), 404
        return jsonify({"vid": vid, "terms": term_tree(session, vid)})
    finally:
        session.close()
