#!/usr/bin/env python3
"""Corebound operations CLI.

Commands print JSON on stdout so they can be scripted:

    corebound serve --port 8000
    corebound init-db
    corebound presets --mode balanced
    corebound cadence --hours 0 --minutes 2 --seconds 30
    corebound due-sessions
    corebound generate-key
"""

import sys
import json
import argparse
import logging

from .config import CoreboundConfig
from .credentials import generate_key
from .exceptions import ConfigurationError, CoreboundError, MissingCredentialError
from .validation import ValidationError
from .strategy import (
    STRATEGY_PRESETS,
    apply_preset,
    format_cadence,
    split_cadence,
    total_cadence_seconds,
)

logger = logging.getLogger(__name__)


def json_output(data: dict):
    """Print JSON output for scripts."""
    print(json.dumps(data, indent=2))


def fail(command: str, error: str):
    json_output({"success": False, "error": error})
    logger.error("cli_command_failed", extra={"command": command, "error": error})
    sys.exit(1)


def cmd_serve(config: CoreboundConfig, args):
    """Run the API with uvicorn (blocking)."""
    from .web.server import run

    if args.host:
        config.host = args.host
    if args.port:
        config.port = args.port
    if not config.is_valid():
        raise MissingCredentialError("SUPABASE_JWT_SECRET is required to serve the API")

    valid, error = config.validate_limits()
    if not valid:
        raise ConfigurationError(error)

    run(config)


def cmd_init_db(config: CoreboundConfig, args):
    """Create missing tables in the configured database."""
    from .database.connection import init_db, test_connection

    if not test_connection():
        fail("init-db", "Database connection failed")
    init_db()
    json_output({"success": True, "database": "initialized"})


def cmd_presets(config: CoreboundConfig, args):
    if args.mode:
        json_output({"success": True, "preset": apply_preset(args.mode)})
    else:
        json_output({"success": True, "presets": sorted(STRATEGY_PRESETS)})


def cmd_cadence(config: CoreboundConfig, args):
    """Normalize hours/minutes/seconds the way the strategy form does."""
    seconds = total_cadence_seconds(args.hours, args.minutes, args.seconds)
    parts = split_cadence(seconds)
    json_output({
        "success": True,
        "cadenceSeconds": seconds,
        "parts": parts.to_dict(),
        "display": format_cadence(parts.hours, parts.minutes, parts.seconds),
    })


def cmd_due_sessions(config: CoreboundConfig, args):
    """List running sessions whose cadence has elapsed."""
    from .database.connection import SessionLocal
    from .database.repositories import SessionRepository

    db = SessionLocal()
    try:
        due = SessionRepository(db).get_due_sessions()
        json_output({
            "success": True,
            "count": len(due),
            "sessions": [
                {
                    "id": s.id,
                    "user_id": s.user_id,
                    "mode": s.mode,
                    "cadence_seconds": s.cadence_seconds,
                    "last_tick_at": s.to_dict()["last_tick_at"],
                }
                for s in due
            ],
        })
    finally:
        db.close()


def cmd_refresh_snapshots(config: CoreboundConfig, args):
    """Write a fresh leaderboard snapshot for every active arena entry."""
    from .database.connection import SessionLocal
    from .database.repositories import ArenaRepository

    db = SessionLocal()
    try:
        json_output({"success": True, **ArenaRepository(db).refresh_snapshots()})
    finally:
        db.close()


def cmd_generate_key(config: CoreboundConfig, args):
    json_output({"success": True, "key": generate_key()})


COMMANDS = {
    "serve": cmd_serve,
    "init-db": cmd_init_db,
    "presets": cmd_presets,
    "cadence": cmd_cadence,
    "due-sessions": cmd_due_sessions,
    "refresh-snapshots": cmd_refresh_snapshots,
    "generate-key": cmd_generate_key,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="corebound", description="Corebound API operations")
    subparsers = parser.add_subparsers(dest="command", required=True)

    serve_parser = subparsers.add_parser("serve", help="Run the API server")
    serve_parser.add_argument("--host", default=None, help="Bind address")
    serve_parser.add_argument("--port", type=int, default=None, help="Bind port")

    subparsers.add_parser("init-db", help="Create database tables")

    presets_parser = subparsers.add_parser("presets", help="List strategy presets or show one")
    presets_parser.add_argument("--mode", default=None, help="Preset to apply")

    cadence_parser = subparsers.add_parser("cadence", help="Normalize a decision cadence")
    cadence_parser.add_argument("--hours", default="0")
    cadence_parser.add_argument("--minutes", default="0")
    cadence_parser.add_argument("--seconds", default="0")

    subparsers.add_parser("due-sessions", help="List running sessions due for a decision")
    subparsers.add_parser("refresh-snapshots", help="Recompute arena leaderboard snapshots")
    subparsers.add_parser("generate-key", help="Print a new credentials encryption key")
    return parser


def main(argv=None):
    """Main CLI entry point."""
    from .logging.json_logger import setup_json_logging

    args = build_parser().parse_args(argv)
    config = CoreboundConfig.from_env()

    # Other commands keep stdout for their JSON and log warnings to stderr
    if args.command == "serve":
        setup_json_logging(config.log_level, config.log_file)
    else:
        setup_json_logging("WARNING", config.log_file, stream=sys.stderr)

    try:
        COMMANDS[args.command](config, args)
    except (CoreboundError, ValidationError) as e:
        fail(args.command, e.message)


if __name__ == "__main__":
    main()
