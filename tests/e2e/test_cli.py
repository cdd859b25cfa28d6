"""End-to-end CLI coverage for the commands exposed by lib_cert_resolver.

These tests exercise the documented CLI workflows (info, resolve, serve) with
configuration documents written to a temporary directory. Settings that the
resolver reads from the process environment are cleared for every invocation.
"""

from __future__ import annotations

import json
from pathlib import Path

from click.testing import CliRunner

import lib_cli_exit_tools

from lib_cert_resolver import cli
from lib_cert_resolver.domain.errors import ConfigMissing

CLEAN_ENV: dict[str, str | None] = {"APP_ENV": None, "SSL_PORT": None, "SSLPORT": None, "SECURE_PORT": None}


def _runner() -> CliRunner:
    """Return a fresh CLI runner so each test starts from a clean state."""

    return CliRunner()


def _env(**values: str) -> dict[str, str | None]:
    env = dict(CLEAN_ENV)
    env.update(values)
    return env


def _write_pyproject(directory: Path, certs: dict[str, tuple[Path | str, Path | str]]) -> Path:
    """Write a ``pyproject.toml`` whose ``[tool.lib_cert_resolver.certs]`` lists *certs* in order."""

    lines = ['[project]\nname = "demo"\n']
    for name, (cert, key) in certs.items():
        lines.append(f'[tool.lib_cert_resolver.certs."{name}"]\ncert = "{cert}"\nkey = "{key}"\n')
    path = directory / "pyproject.toml"
    path.write_text("\n".join(lines), encoding="utf-8")
    return path


def test_cli_resolve_outputs_json(tmp_path: Path, certificate_pair) -> None:
    """`cli resolve` should report the selected entry and the elevated production port."""

    cert, key = certificate_pair
    config = _write_pyproject(tmp_path, {"staging": ("missing.pem", "missing.key"), "prod": (cert, key)})

    result = _runner().invoke(
        cli.cli,
        ["resolve", "--config", str(config), "--indent", "0"],
        env=_env(APP_ENV="production"),
    )

    assert result.exit_code == 0
    payload = json.loads(result.output)
    assert payload["environment"] == "production"
    assert payload["production"] is True
    assert (payload["port"], payload["port_source"], payload["elevated"]) == (443, "default", True)
    assert payload["selected"]["environment"] == "prod"
    assert [record["reason"] for record in payload["skipped"]] == ["environment key does not match"]
    assert payload["settings"] == {"APP_ENV": "production", "SSL_PORT": None, "SSLPORT": None, "SECURE_PORT": None}


def test_cli_resolve_explicit_options(tmp_path: Path, certificate_pair) -> None:
    """`--environment` and `--port` take precedence over the process environment."""

    cert, key = certificate_pair
    config = _write_pyproject(tmp_path, {"production": (cert, key)})

    result = _runner().invoke(
        cli.cli,
        ["resolve", "--config", str(config), "-e", "staging", "--port", "8443"],
        env=_env(APP_ENV="production", SSL_PORT="9443"),
    )

    assert result.exit_code == 0
    payload = json.loads(result.output)
    assert payload["environment"] == "staging"
    assert (payload["port"], payload["port_source"]) == (8443, "option")
    assert payload["selected"] is None


def test_cli_resolve_missing_config(tmp_path: Path) -> None:
    """A missing configuration document surfaces as ``ConfigMissing``."""

    result = _runner().invoke(
        cli.cli,
        ["resolve", "--config", str(tmp_path / "absent.toml")],
        env=_env(),
    )

    assert result.exit_code != 0
    assert isinstance(result.exception, ConfigMissing)
    assert "absent.toml" in str(result.exception)


def test_cli_serve_check_binds_and_prints_url(tmp_path: Path, certificate_pair) -> None:
    """`cli serve --check` binds the development certificate and prints its URL."""

    cert, key = certificate_pair
    config = _write_pyproject(tmp_path, {"development": (cert, key)})

    result = _runner().invoke(
        cli.cli,
        ["serve", "--config", str(config), "--host", "127.0.0.1", "--port", "0", "--access-log", "--check"],
        env=_env(),
    )

    assert result.exit_code == 0, result.output
    assert "https://127.0.0.1:" in result.output


def test_cli_serve_without_match_exits_nonzero(tmp_path: Path, certificate_pair) -> None:
    """No matching certificate is not an error, but nothing listens and the exit code is 1."""

    cert, key = certificate_pair
    config = _write_pyproject(tmp_path, {"production": (cert, key)})

    result = _runner().invoke(
        cli.cli,
        ["serve", "--config", str(config), "--port", "0", "--check", "--debug"],
        env=_env(APP_ENV="staging"),
    )

    assert result.exit_code == cli.EXIT_NO_MATCH
    assert "nothing is listening" in result.output


def test_cli_info_lists_settings_and_survives_missing_metadata(monkeypatch) -> None:
    """`cli info` names the settings it reads, and degrades when metadata is absent."""

    shown = _runner().invoke(cli.cli, ["info"])
    assert shown.exit_code == 0
    assert "APP_ENV, SSL_PORT, SSLPORT, SECURE_PORT" in shown.output or "metadata unavailable" in shown.output

    def _no_metadata(*_args, **_kwargs):
        raise cli.metadata.PackageNotFoundError(cli.PROG_NAME)

    monkeypatch.setattr(cli.metadata, "metadata", _no_metadata)
    degraded = _runner().invoke(cli.cli, ["info"])
    assert degraded.exit_code == 0
    assert degraded.output.strip() == "lib_cert_resolver (metadata unavailable)"


def test_cli_main_restores_traceback_flag(tmp_path: Path, certificate_pair, monkeypatch) -> None:
    """`cli main` should restore lib_cli_exit_tools tracebacks after execution."""

    for name in CLEAN_ENV:
        monkeypatch.delenv(name, raising=False)
    cert, key = certificate_pair
    config = _write_pyproject(tmp_path, {"development": (cert, key)})
    previous_traceback = getattr(lib_cli_exit_tools.config, "traceback", False)

    exit_code = cli.main(["--traceback", "resolve", "--config", str(config)], restore_traceback=True)

    assert exit_code == 0
    assert getattr(lib_cli_exit_tools.config, "traceback", False) == previous_traceback


def test_cli_main_reports_config_missing(tmp_path: Path, monkeypatch) -> None:
    """`cli main` converts ``ConfigMissing`` into a non-zero exit code."""

    for name in CLEAN_ENV:
        monkeypatch.delenv(name, raising=False)
    exit_code = cli.main(["resolve", "--config", str(tmp_path / "absent.json")])
    assert exit_code != 0
