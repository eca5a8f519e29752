"""Command-line entry point of the messaging service."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from collections.abc import Sequence
from datetime import datetime, timezone

from .config import Config, load_config
from .db import DatabaseConfig, DatabaseError, connect
from .scheduled import ScheduledSender
from .server import Endpoints
from .store import ConversationStore

logger = logging.getLogger(__name__)

_DESCRIPTION = """To get started run the serve subcommand which will start a server
on localhost:8080:

    hms serve
"""


class _UsageError(Exception):
    pass


class _Parser(argparse.ArgumentParser):
    def error(self, message: str) -> None:  # type: ignore[override]
        raise _UsageError(message)


class _JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "time": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "source": {
                "function": record.funcName,
                "file": record.pathname,
                "line": record.lineno,
            },
            "msg": record.getMessage(),
        }
        return json.dumps(entry)


class _StdoutHandler(logging.StreamHandler):
    def emit(self, record: logging.LogRecord) -> None:
        self.stream = sys.stdout
        super().emit(record)


def _configure_logging() -> None:
    root = logging.getLogger()
    if any(isinstance(handler, _StdoutHandler) for handler in root.handlers):
        return
    handler = _StdoutHandler(sys.stdout)
    handler.setFormatter(_JsonFormatter())
    root.addHandler(handler)
    if root.level == logging.NOTSET or root.level > logging.INFO:
        root.setLevel(logging.INFO)


def build_parser() -> argparse.ArgumentParser:
    """The ``hms`` argument parser with its ``serve`` subcommand."""
    parser = _Parser(
        prog="hms",
        description="Example hatch messaging service\n\n" + _DESCRIPTION,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--config", default="", help="config file (default is $HOME/.hms.yaml)"
    )
    parser.add_argument("-t", "--toggle", action="store_true", help="Help message for toggle")
    commands = parser.add_subparsers(dest="command")
    commands.add_parser("serve", help="Launches the service on https://localhost:8080")
    return parser


def serve(config: Config) -> None:
    """Open the database, start the scheduled sender and serve HTTP."""
    conn = connect(
        DatabaseConfig(
            host=config.database.host,
            port=config.database.port,
            user=config.database.user,
            password=config.database.password,
            dbname=config.database.name,
        )
    )
    store = ConversationStore(conn)
    sender = ScheduledSender(store)
    sender.start()
    try:
        Endpoints(config.listen_address, store).listen_and_serve()
    finally:
        sender.stop()
        conn.close()


def main(argv: Sequence[str] | None = None) -> int:
    """Run the command line and return the exit status."""
    _configure_logging()
    parser = build_parser()
    try:
        args = parser.parse_args(argv)
    except _UsageError as exc:
        logger.error("error executing root command: %s", exc)
        parser.print_usage(sys.stderr)
        print(f"Error: {exc}", file=sys.stderr)
        return 255

    if args.command != "serve":
        parser.print_help()
        return 0

    config = load_config(args.config)
    try:
        serve(config)
    except (DatabaseError, OSError, ValueError) as exc:
        logger.error("service stopped: %s", exc)
        return 2
    return 0


if __name__ == "__main__":
    sys.exit(main())