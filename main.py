#!/usr/bin/env python3
"""
TAXIMP - Taxonomy import service
================================

    python main.py                      # run the API server
    python main.py import FILE --vocabulary "Canadian Cities" [--mode canadian_cities] [--force-new] [--no-throttle]

See config.py for all environment-variable tunables.
"""

import argparse
import logging
import sys
from pathlib import Path

from flask import Flask, jsonify

import config
from db import init_db, session_scope
from api import api_bp
from taxonomy_import.field_map import IMPORT_MODES

logger = logging.getLogger(__name__)


def configure_logging(level: str = config.LOG_LEVEL) -> None:
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)-7s %(name)s: %(message)s",
    )


def create_app(db_url: str | None = None) -> Flask:
    """Flask application factory."""

    app = Flask(__name__)
    app.secret_key = config.SECRET
    app.config["MAX_CONTENT_LENGTH"] = config.MAX_UPLOAD_MB * 1024 * 1024

    # ── Initialise database ─────────────────────────────────────────
    url = db_url or config.DB_URL
    init_db(url)
    logger.info(f"Database: {url}")

    # ── Register blueprints ─────────────────────────────────────────
    app.register_blueprint(api_bp)

    @app.route("/health")
    def health():
        return jsonify({"status": "ok"})

    return app


def _cmd_import(args: argparse.Namespace) -> int:
    """Import one file from the command line into a vocabulary (by display name)."""
    from services.vocabulary_service import get_or_create_vocabulary
    from taxonomy_import import run_import
    from taxonomy_import.rate_limit import NullRateLimiter

    path = Path(args.file)
    if not path.exists():
        print(f"FATAL: file not found: {path}")
        return 1

    init_db(config.DB_URL)
    with session_scope() as session:
        vocab = get_or_create_vocabulary(session, args.vocabulary)
        report = run_import(
            path.read_bytes(), vocab.vid,
            filename=path.name, mode=args.mode,
            force_new_terms=args.force_new, session=session,
            rate_limiter=NullRateLimiter() if args.no_throttle else None,
        )

    print(f"  Done: {report.created} created, {report.updated} updated, "
          f"{report.skipped} skipped, {report.failed} failed / {report.total_rows} rows")
    if report.errors:
        print("  First errors (max 10):")
        for err in report.errors[:10]:
            print(f"    Row {err['row']}: {err['reason']}")
    return 0 if report.ok else 1


def _parse_args(argv=None) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Taxonomy import service")
    sub = p.add_subparsers(dest="command")

    sub.add_parser("serve", help="Run the API server (default)")

    imp = sub.add_parser("import", help="Import a CSV or XML file")
    imp.add_argument("file", help="Path to the CSV or XML file")
    imp.add_argument("--vocabulary", required=True,
                     help="Vocabulary display name (created if missing)")
    imp.add_argument("--mode", default="standard",
                     choices=list(IMPORT_MODES),
                     help="CSV column layout (default: standard)")
    imp.add_argument("--force-new", action="store_true",
                     help="Create a new term for every row; never update")
    imp.add_argument("--no-throttle", action="store_true",
                     help="Skip the pauses after parent creation and every batch")
    return p.parse_args(argv)


def main(argv=None) -> int:
    args = _parse_args(argv)
    configure_logging()

    if args.command == "import":
        return _cmd_import(args)

    print("=" * 56)
    print("  TAXIMP - Taxonomy import service")
    print("=" * 56)

    app = create_app()

    print(f"\n  http://{config.HOST}:{config.PORT}/api/v1/vocabularies")
    print("=" * 56)

    app.run(host=config.HOST, port=config.PORT, debug=config.DEBUG)
    return 0


if __name__ == "__main__":
    sys.exit(main())
