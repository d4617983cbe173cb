"""
api - /api/v1 blueprint for taxonomy imports.

routes_import takes uploads, routes_vocabularies manages vocabularies and
their declared custom fields; errors turns failures into JSON bodies.
"""

from flask import Blueprint

api_bp = Blueprint("api", __name__, url_prefix="/api/v1")

from api import routes_vocabularies   # noqa: F401, E402
from api import routes_import         # noqa: F401, E402
from api import errors                # noqa: F401, E402
