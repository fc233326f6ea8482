"""Configuration loading for the ingestion tools."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Optional
from xml.etree import ElementTree as ET

from .fetching import DEFAULT_TIMEOUT, DEFAULT_USER_AGENT
from .service import DEFAULT_CONCURRENCY

logger = logging.getLogger(__name__)

DATABASE_URL_ENV = "DATABASE_URL"
DEFAULT_DATABASE_URL = "sqlite:///rss_ingest.db"


@dataclass
class LoggingConfig:
    level: str = "INFO"
    file: Optional[str] = None


@dataclass
class DatabaseConfig:
    connection_string: Optional[str] = None


@dataclass
class HttpConfig:
    timeout: float = DEFAULT_TIMEOUT
    user_agent: str = DEFAULT_USER_AGENT


@dataclass
class AppConfig:
    env_file: Optional[str] = None
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    http: HttpConfig = field(default_factory=HttpConfig)
    concurrency: int = DEFAULT_CONCURRENCY
    favicons: bool = True
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def _resolve_path(base_path: Path, target_path: str) -> str:
    """Resolve a path relative to the base config file if it's not absolute."""
    target = Path(target_path)
    if target.is_absolute():
        return str(target)
    return str((base_path.parent / target).resolve())


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in ("true", "yes", "1", "on")


def parse_env_config(path: str) -> Dict[str, str]:
    """Parse ``<variable name="...">value</variable>`` entries from XML."""
    env_vars: Dict[str, str] = {}
    if not path:
        return env_vars

    logger.info("Loading environment configuration from %s", path)
    try:
        tree = ET.parse(path)
    except (OSError, ET.ParseError) as exc:
        logger.warning("Failed to load environment config: %s", exc)
        raise

    for var in tree.getroot().findall("variable"):
        name = var.attrib.get("name")
        value = var.text
        if name and value:
            env_vars[name] = value.strip()
    return env_vars


def parse_app_config(path: str) -> AppConfig:
    """Parse the main application configuration XML."""
    config_path = Path(path).resolve()
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    logger.info("Loading application configuration from %s", config_path)
    root = ET.parse(config_path).getroot()
    config = AppConfig()

    env_text = root.findtext("env")
    if env_text and env_text.strip():
        config.env_file = _resolve_path(config_path, env_text.strip())

    db_node = root.find("database")
    if db_node is not None:
        connection_string = (db_node.findtext("connection-string") or "").strip()
        config.database.connection_string = connection_string or None

    http_node = root.find("http")
    if http_node is not None:
        timeout = http_node.findtext("timeout")
        if timeout:
            config.http.timeout = float(timeout)
        user_agent = (http_node.findtext("user-agent") or "").strip()
        if user_agent:
            config.http.user_agent = user_agent

    config.concurrency = int(root.findtext("concurrency", str(DEFAULT_CONCURRENCY)))
    if config.concurrency < 1:
        raise ValueError("<concurrency> must be at least 1")

    favicons = root.findtext("favicons")
    if favicons:
        config.favicons = _parse_bool(favicons)

    log_node = root.find("logging")
    if log_node is not None:
        config.logging.level = log_node.findtext("level", "INFO").strip()
        log_file = log_node.findtext("file")
        if log_file:
            config.logging.file = _resolve_path(config_path, log_file.strip())

    return config


def load_env_file(config: AppConfig) -> None:
    """Export the variables of the configured env file into ``os.environ``."""
    if config.env_file:
        os.environ.update(parse_env_config(config.env_file))


def resolve_connection_string(
    config: AppConfig, override: Optional[str] = None
) -> str:
    """Pick the database URL: explicit override, config, ``DATABASE_URL``, default."""
    return (
        override
        or config.database.connection_string
        or os.environ.get(DATABASE_URL_ENV)
        or DEFAULT_DATABASE_URL
    )
