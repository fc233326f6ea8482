import textwrap

import pytest

from rss_ingest.config import (
    DATABASE_URL_ENV,
    DEFAULT_DATABASE_URL,
    AppConfig,
    load_env_file,
    parse_app_config,
    parse_env_config,
    resolve_connection_string,
)
from rss_ingest.fetching import DEFAULT_TIMEOUT, DEFAULT_USER_AGENT


def write(path, text):
    path.write_text(textwrap.dedent(text), encoding="utf-8")
    return path


def test_parse_app_config_reads_all_sections(tmp_path):
    config_dir = tmp_path / "configs"
    config_dir.mkdir()
    config = write(
        config_dir / "config.xml",
        """\
        <config>
          <env>env.xml</env>
          <database><connection-string>sqlite:///feeds.db</connection-string></database>
          <http><timeout>7.5</timeout><user-agent>custom/2.0</user-agent></http>
          <concurrency>3</concurrency>
          <favicons>false</favicons>
          <logging><level>DEBUG</level><file>logs/ingest.log</file></logging>
        </config>
        """,
    )

    app_config = parse_app_config(str(config))

    assert app_config.env_file == str((config_dir / "env.xml").resolve())
    assert app_config.database.connection_string == "sqlite:///feeds.db"
    assert app_config.http.timeout == 7.5
    assert app_config.http.user_agent == "custom/2.0"
    assert app_config.concurrency == 3
    assert app_config.favicons is False
    assert app_config.logging.level == "DEBUG"
    assert app_config.logging.file == str((config_dir / "logs" / "ingest.log").resolve())


def test_parse_app_config_defaults(tmp_path):
    config = write(tmp_path / "config.xml", "<config/>")

    app_config = parse_app_config(str(config))

    assert app_config.env_file is None
    assert app_config.database.connection_string is None
    assert app_config.http.timeout == DEFAULT_TIMEOUT
    assert app_config.http.user_agent == DEFAULT_USER_AGENT
    assert app_config.favicons is True
    assert app_config.logging.level == "INFO"
    assert app_config.logging.file is None


def test_parse_app_config_missing_file_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        parse_app_config(str(tmp_path / "missing.xml"))


def test_parse_app_config_rejects_zero_concurrency(tmp_path):
    config = write(tmp_path / "config.xml", "<config><concurrency>0</concurrency></config>")
    with pytest.raises(ValueError):
        parse_app_config(str(config))


def test_parse_env_config_reads_variables(tmp_path):
    env = write(
        tmp_path / "env.xml",
        """\
        <variables>
          <variable name="DATABASE_URL"> sqlite:///from-env.db </variable>
          <variable name="EMPTY"></variable>
          <variable>no name</variable>
        </variables>
        """,
    )

    assert parse_env_config(str(env)) == {"DATABASE_URL": "sqlite:///from-env.db"}
    assert parse_env_config("") == {}


def test_load_env_file_exports_variables(tmp_path, monkeypatch):
    monkeypatch.setenv(DATABASE_URL_ENV, "placeholder")
    env = write(
        tmp_path / "env.xml",
        '<variables><variable name="DATABASE_URL">sqlite:///x.db</variable></variables>',
    )
    app_config = AppConfig(env_file=str(env))

    load_env_file(app_config)

    assert resolve_connection_string(app_config) == "sqlite:///x.db"


def test_resolve_connection_string_precedence(monkeypatch):
    monkeypatch.setenv(DATABASE_URL_ENV, "sqlite:///env.db")
    app_config = AppConfig()

    assert resolve_connection_string(app_config) == "sqlite:///env.db"

    app_config.database.connection_string = "sqlite:///config.db"
    assert resolve_connection_string(app_config) == "sqlite:///config.db"
    assert resolve_connection_string(app_config, "sqlite:///cli.db") == "sqlite:///cli.db"

    monkeypatch.delenv(DATABASE_URL_ENV)
    assert resolve_connection_string(AppConfig()) == DEFAULT_DATABASE_URL
