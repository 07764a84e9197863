"""Command-line interface for the people registry service."""

from __future__ import annotations
import argparse
import logging
import os
import sys
from pathlib import Path
from typing import Sequence

try:
    import httpx
except ImportError as exc:  # pragma: no cover - exercised in environments missing deps
    raise SystemExit(
        "The 'httpx' package is required. Execute `pip install -e .` from the "
        "project root to install dependencies."
    ) from exc

from people.config import Settings, load_settings
from people.database import Database

logger = logging.getLogger("people.main")

_DEFAULT_SERVICE_URL = "http://localhost:9999"


def _default_port() -> int:
    raw = os.getenv("PORT", "")
    try:
        return int(raw)
    except ValueError:
        return 9999


def _parse_args(argv: Sequence[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="People registry utilities")
    parser.add_argument(
        "--config",
        default=None,
        help="Path to a YAML configuration file (default: PEOPLE_CONFIG or config/people.yaml)",
    )
    subparsers = parser.add_subparsers(dest="command")

    parser.set_defaults(command="serve")

    subparsers.add_parser("init-db", help="Create the record store tables")

    serve_parser = subparsers.add_parser("serve", help="Start the HTTP service")
    serve_parser.add_argument("--host", default="0.0.0.0", help="Bind address for the API")
    serve_parser.add_argument(
        "--port",
        type=int,
        default=_default_port(),
        help="Port for the HTTP API (default: PORT or 9999)",
    )

    count_parser = subparsers.add_parser(
        "count", help="Print the number of people stored, as reported by a running service"
    )
    count_parser.add_argument(
        "--service-url",
        default=_DEFAULT_SERVICE_URL,
        help=f"Base URL of a running service (default: {_DEFAULT_SERVICE_URL})",
    )

    args_list = list(argv) if argv is not None else sys.argv[1:]
    known_commands = {"serve", "init-db", "count"}

    # Global options may precede the subcommand; anything unknown is a serve option.
    head: list[str] = []
    rest = list(args_list)
    while rest:
        if rest[0] == "--config" and len(rest) > 1:
            head.extend(rest[:2])
            rest = rest[2:]
        elif rest[0].startswith("--config="):
            head.append(rest.pop(0))
        else:
            break

    if not rest:
        rest = ["serve"]
    else:
        first = rest[0]
        if first in ("-h", "--help"):
            return parser.parse_args([*head, *rest])
        if first not in known_commands:
            if any(flag in rest for flag in ("-h", "--help")):
                return parser.parse_args([*head, *rest])
            rest = ["serve", *rest]

    return parser.parse_args([*head, *rest])


def _load_settings(config: str | None) -> Settings:
    config_path = Path(config).expanduser().resolve(strict=False) if config else None
    try:
        return load_settings(config_path)
    except ValueError as exc:
        raise SystemExit(f"Invalid configuration: {exc}") from exc


def _initialise_database(settings: Settings) -> Database:
    database = Database(
        settings.database_path,
        pool_size=settings.pool_size,
        channel=settings.channel,
        timeout=settings.query_timeout,
    )
    database.initialize()
    logger.info("Database initialised at %s", settings.database_path)
    return database


def _serve(*, settings: Settings, database: Database, host: str, port: int) -> None:
    from people.service import create_app
    import uvicorn

    logger.info("Starting people registry on http://%s:%s", host, port)
    app = create_app(settings=settings, database=database)
    uvicorn.run(app, host=host, port=port, log_level=settings.log_level.lower())


def _show_count(service_url: str) -> int:
    endpoint = service_url.rstrip("/") + "/contagem-pessoas"
    try:
        response = httpx.get(endpoint, timeout=10.0)
    except httpx.HTTPError as exc:
        print(f"Failed to contact people registry: {exc}")
        return 1

    if response.status_code != 200:
        print(f"Service responded with {response.status_code}: {response.text.strip()}")
        return 1

    try:
        total = int(response.json())
    except (TypeError, ValueError):
        print("Service returned an unexpected response format.")
        return 1

    print(total)
    return 0


def main(argv: Sequence[str] | None = None) -> None:
    """Entry point for CLI usage."""

    args = _parse_args(argv)
    settings = _load_settings(args.config)

    logging.basicConfig(
        level=getattr(logging, settings.log_level),
        format="%(asctime)s [%(levelname)s] %(message)s",
    )

    if args.command == "count":
        raise SystemExit(_show_count(args.service_url))

    database = _initialise_database(settings)

    if args.command == "serve":
        _serve(settings=settings, database=database, host=args.host, port=args.port)
    elif args.command == "init-db":
        print(f"Database initialisation complete: {database.path}")


if __name__ == "__main__":
    main()
