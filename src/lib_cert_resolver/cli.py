"""Command line entry points: ``info``, ``resolve`` and ``serve``.

``resolve`` answers "which certificate would this host pick, and on which
port?" as JSON without touching the network. ``serve`` performs the real
startup with a placeholder page, which is enough to check a certificate with
a browser or ``curl``. Failures funnel through ``lib_cli_exit_tools`` so exit
codes and traceback rendering match other tools built on it; ``--traceback``
switches to full tracebacks.
"""

from __future__ import annotations

import asyncio
import json
import sys
import uuid
from contextlib import contextmanager
from importlib import metadata
from pathlib import Path
from typing import Final, Iterator, Optional, Sequence

import lib_cli_exit_tools
import rich_click as click
from aiohttp import web

from .adapters.env.default import DefaultSettingsProvider
from .adapters.listener.aiohttp_site import AiohttpListenerFactory
from .core import resolve_certificate, serve_secure
from .domain.certs import DEFAULT_CONFIG_PATH, DEFAULT_HOSTNAME_TIMEOUT, ConfigPath, ResolutionOptions
from .observability import bind_trace_id

PROG_NAME: Final[str] = "lib_cert_resolver"
CLICK_CONTEXT_SETTINGS = {"help_option_names": ["-h", "--help"]}
_TRACEBACK_SUMMARY_LIMIT: Final[int] = 500
_TRACEBACK_VERBOSE_LIMIT: Final[int] = 10_000
EXIT_NO_MATCH: Final[int] = 1


def _installed_version() -> str:
    try:
        return metadata.version(PROG_NAME)
    except metadata.PackageNotFoundError:
        return "0.0.0"


@click.group(
    help="Pick the TLS certificate for the current environment and serve with it",
    context_settings=CLICK_CONTEXT_SETTINGS,
)
@click.version_option(version=_installed_version(), prog_name=PROG_NAME, message="%(prog)s version %(version)s")
@click.option(
    "--traceback/--no-traceback",
    default=False,
    help="Print the full Python traceback when a command fails",
)
@click.pass_context
def cli(ctx: click.Context, traceback: bool) -> None:
    """Store the traceback preference for ``lib_cli_exit_tools``."""

    ctx.ensure_object(dict)["traceback"] = traceback
    lib_cli_exit_tools.config.traceback = traceback
    lib_cli_exit_tools.config.traceback_force_color = traceback


@cli.command("info", context_settings=CLICK_CONTEXT_SETTINGS)
def cli_info() -> None:
    """Show the installed version and the settings the resolver reads."""

    try:
        meta = metadata.metadata(PROG_NAME)
    except metadata.PackageNotFoundError:
        click.echo(f"{PROG_NAME} (metadata unavailable)")
        return
    click.echo(f"{meta.get('Name', PROG_NAME)} {meta.get('Version', _installed_version())}")
    if meta.get("Summary"):
        click.echo(f"  {meta['Summary']}")
    click.echo(f"  Default config  : {DEFAULT_CONFIG_PATH}")
    click.echo("  Settings read   : APP_ENV, SSL_PORT, SSLPORT, SECURE_PORT")


def _resolution_options(func):  # type: ignore[no-untyped-def]
    """Attach the options shared by ``resolve`` and ``serve``."""

    func = click.option(
        "--port",
        type=click.IntRange(0, 65535),
        default=None,
        help="Explicit port (overrides SSL_PORT/SSLPORT/SECURE_PORT and the default)",
    )(func)
    func = click.option(
        "--environment",
        "-e",
        default=None,
        help="Environment name (defaults to $APP_ENV, then 'development')",
    )(func)
    func = click.option(
        "--config",
        "config_path",
        type=click.Path(path_type=Path, dir_okay=False),
        default=DEFAULT_CONFIG_PATH,
        show_default=True,
        help="Document holding the 'certs' table (.toml, .json, .yaml, .yml)",
    )(func)
    return func


@cli.command("resolve", context_settings=CLICK_CONTEXT_SETTINGS)
@_resolution_options
@click.option(
    "--indent",
    type=int,
    default=None,
    help="Indent the JSON output by this many spaces",
)
def cli_resolve(config_path: Path, environment: Optional[str], port: Optional[int], indent: Optional[int]) -> None:
    """Print which certificate and port would be used, without binding.

    The JSON output lists the effective environment, the port and where it came
    from, the selected entry (or ``null``), every skipped candidate, and the
    process settings that were consulted.
    """

    provider = DefaultSettingsProvider()
    options = ResolutionOptions(
        environment=environment,
        port=port,
        certificate_config=ConfigPath(str(config_path)),
        settings=provider,
    )
    payload = resolve_certificate(options).as_dict()
    payload["settings"] = provider.snapshot()
    click.echo(json.dumps(payload, indent=indent))


@cli.command("serve", context_settings=CLICK_CONTEXT_SETTINGS)
@_resolution_options
@click.option("--host", default=None, help="Bind address (defaults to all interfaces)")
@click.option("--debug/--no-debug", default=False, help="Print resolution diagnostics to stderr")
@click.option("--access-log/--no-access-log", default=False, help="Log every request through aiohttp.access")
@click.option(
    "--check/--no-check",
    default=False,
    help="Bind, print the URL, and exit instead of serving until interrupted",
)
def cli_serve(
    config_path: Path,
    environment: Optional[str],
    port: Optional[int],
    host: Optional[str],
    debug: bool,
    access_log: bool,
    check: bool,
) -> None:
    """Serve a placeholder page over TLS with the resolved certificate.

    Exits with status 1 when no certificate matched the environment.
    """

    bind_trace_id(uuid.uuid4().hex)
    options = ResolutionOptions(
        debug=debug,
        port=port,
        environment=environment,
        certificate_config=ConfigPath(str(config_path)),
        host=host,
        sink=lambda line: click.echo(line, err=True),
        hostname_timeout=1.0 if check else DEFAULT_HOSTNAME_TIMEOUT,
        listener_factory=AiohttpListenerFactory(access_log=access_log),
    )
    served = asyncio.run(_serve(options, check=check))
    if not served:
        raise SystemExit(EXIT_NO_MATCH)


async def _serve(options: ResolutionOptions, *, check: bool) -> bool:
    """Run the listener; return ``False`` when no certificate matched."""

    listener = await serve_secure(_placeholder_app(), options)
    if listener is None:
        click.echo("No certificate matched the environment; nothing is listening.", err=True)
        return False
    click.echo(listener.url)
    try:
        if not check:
            await asyncio.Event().wait()
    finally:
        await listener.close()
    return True


def _placeholder_app() -> web.Application:
    async def index(_: web.Request) -> web.Response:
        return web.Response(text="lib_cert_resolver is listening\n")

    app = web.Application()
    app.router.add_route("GET", "/", index)
    return app


@contextmanager
def _restoring_traceback(restore: bool) -> Iterator[None]:
    saved = (
        getattr(lib_cli_exit_tools.config, "traceback", False),
        getattr(lib_cli_exit_tools.config, "traceback_force_color", False),
    )
    try:
        yield
    finally:
        if restore:
            lib_cli_exit_tools.config.traceback, lib_cli_exit_tools.config.traceback_force_color = saved


def main(argv: Optional[Sequence[str]] = None, *, restore_traceback: bool = True) -> int:
    """Run the CLI and return its exit code; errors are printed, never raised."""

    with _restoring_traceback(restore_traceback):
        try:
            return lib_cli_exit_tools.run_cli(cli, argv=list(argv) if argv is not None else None, prog_name=PROG_NAME)
        except BaseException as exc:  # noqa: BLE001 - rendered by lib_cli_exit_tools
            verbose = bool(lib_cli_exit_tools.config.traceback)
            lib_cli_exit_tools.print_exception_message(
                trace_back=verbose,
                length_limit=_TRACEBACK_VERBOSE_LIMIT if verbose else _TRACEBACK_SUMMARY_LIMIT,
            )
            return lib_cli_exit_tools.get_system_exit_code(exc)


if __name__ == "__main__":  # pragma: no cover - console entry point
    raise SystemExit(main(sys.argv[1:]))
