"""Command-line interface for rss_ingest."""

from __future__ import annotations

import argparse
import dataclasses
import json
import logging
from pathlib import Path
from typing import Any, List, Optional
from xml.etree import ElementTree as ET

from sqlalchemy.exc import SQLAlchemyError

from .config import AppConfig, load_env_file, parse_app_config, resolve_connection_string
from .db import Database
from .discovery import discover
from .errors import FeedError
from .fetching import HttpClient
from .parser import parse
from .service import FeedService

logger = logging.getLogger(__name__)

COMMAND_ERRORS = (FeedError, SQLAlchemyError, OSError, ValueError, ET.ParseError)


def build_parser() -> argparse.ArgumentParser:
    """Create the CLI argument parser."""
    parser = argparse.ArgumentParser(
        description="Discover, parse and store RSS, RDF and Atom feeds."
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Path to the main configuration XML file. Defaults apply when omitted.",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Logging level (e.g. DEBUG, INFO, WARNING). Overrides config.",
    )
    parser.add_argument(
        "--log-file",
        default=None,
        help="Optional path to a log file. Overrides config.",
    )
    parser.add_argument(
        "--database",
        metavar="URL",
        default=None,
        help="SQLAlchemy connection string. Overrides config and DATABASE_URL.",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    add = subparsers.add_parser("add", help="Add a feed from a feed or page URL.")
    add.add_argument("url")
    add.set_defaults(handler=_cmd_add)

    refresh = subparsers.add_parser(
        "refresh", help="Refresh the given feeds, or every feed when none is given."
    )
    refresh.add_argument("feed_ids", metavar="FEED_ID", type=int, nargs="*")
    refresh.set_defaults(handler=_cmd_refresh)

    feeds = subparsers.add_parser("feeds", help="List stored feeds with unread counts.")
    feeds.set_defaults(handler=_cmd_feeds)

    discover_cmd = subparsers.add_parser(
        "discover", help="Print candidate feed URLs for a page."
    )
    discover_cmd.add_argument("url")
    discover_cmd.set_defaults(handler=_cmd_discover)

    parse_cmd = subparsers.add_parser(
        "parse", help="Parse a local feed file and print the canonical feed."
    )
    parse_cmd.add_argument("file")
    parse_cmd.add_argument(
        "--url", default=None, help="Feed URL to record (defaults to the file URI)."
    )
    parse_cmd.set_defaults(handler=_cmd_parse)

    import_cmd = subparsers.add_parser(
        "import-opml", help="Add every feed listed in an OPML file."
    )
    import_cmd.add_argument("file")
    import_cmd.set_defaults(handler=_cmd_import_opml)

    return parser


def configure_logging(level_name: str, log_file: Optional[str] = None) -> None:
    """Initialise logging according to options."""
    log_level = getattr(logging, level_name.upper(), None)
    if not isinstance(log_level, int):
        raise ValueError(f"Unsupported log level: {level_name}")

    formatter = logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")

    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
        handler.close()

    root_logger.setLevel(log_level)

    stream_handler = logging.StreamHandler()
    stream_handler.setFormatter(formatter)
    root_logger.addHandler(stream_handler)

    if log_file:
        log_path = Path(log_file)
        if log_path.parent and not log_path.parent.exists():
            log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path, encoding="utf-8")
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)
        logger.debug(
            "Logger initialised with level %s and file output to %s",
            level_name.upper(),
            log_path,
        )
    else:
        logger.debug(
            "Logger initialised with console output at level %s", level_name.upper()
        )


def _print_json(payload: Any) -> None:
    print(json.dumps(payload, indent=2, ensure_ascii=False, default=str))


def _build_client(app_config: AppConfig) -> HttpClient:
    return HttpClient(
        timeout=app_config.http.timeout, user_agent=app_config.http.user_agent
    )


def _build_service(args: argparse.Namespace, app_config: AppConfig) -> FeedService:
    connection_string = resolve_connection_string(app_config, args.database)
    return FeedService(
        Database.from_url(connection_string),
        client=_build_client(app_config),
        concurrency=app_config.concurrency,
        resolve_favicons=app_config.favicons,
    )


def _close_service(service: FeedService) -> None:
    service.client.close()
    service.database.close()


def _cmd_add(args: argparse.Namespace, app_config: AppConfig) -> int:
    service = _build_service(args, app_config)
    try:
        _print_json(service.add_feed(args.url))
    finally:
        _close_service(service)
    return 0


def _cmd_refresh(args: argparse.Namespace, app_config: AppConfig) -> int:
    service = _build_service(args, app_config)
    try:
        if args.feed_ids:
            results = service.refresh_feeds(args.feed_ids)
        else:
            results = service.refresh_all_feeds()
    finally:
        _close_service(service)
    _print_json([dataclasses.asdict(result) for result in results])
    return 0 if all(result.ok for result in results) else 1


def _cmd_feeds(args: argparse.Namespace, app_config: AppConfig) -> int:
    service = _build_service(args, app_config)
    try:
        _print_json(service.get_feeds())
    finally:
        _close_service(service)
    return 0


def _cmd_discover(args: argparse.Namespace, app_config: AppConfig) -> int:
    client = _build_client(app_config)
    try:
        feeds = discover(args.url, client)
    finally:
        client.close()
    _print_json([feed.url for feed in feeds])
    return 0


def _cmd_parse(args: argparse.Namespace, app_config: AppConfig) -> int:
    path = Path(args.file)
    feed_url = args.url or path.resolve().as_uri()
    feed = parse(path.read_bytes(), feed_url)
    _print_json(dataclasses.asdict(feed))
    return 0


def _cmd_import_opml(args: argparse.Namespace, app_config: AppConfig) -> int:
    service = _build_service(args, app_config)
    try:
        results = service.import_opml(args.file)
    finally:
        _close_service(service)
    _print_json([dataclasses.asdict(result) for result in results])
    return 0 if all(result.ok for result in results) else 1


def main(argv: Optional[List[str]] = None) -> int:
    """CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        app_config = parse_app_config(args.config) if args.config else AppConfig()
        load_env_file(app_config)

        # CLI overrides config
        log_level = args.log_level or app_config.logging.level
        log_file = args.log_file or app_config.logging.file
        configure_logging(log_level, log_file)
    except ValueError as exc:
        parser.error(str(exc))
    except (OSError, ET.ParseError) as exc:
        logger.error("%s", exc)
        return 1

    try:
        return args.handler(args, app_config)
    except COMMAND_ERRORS as exc:
        logger.error("%s", exc)
        return 1
