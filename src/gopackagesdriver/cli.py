from __future__ import annotations

import sys
from typing import List, Mapping, Optional

import typer

from gopackagesdriver.bazel import BazelClient, BazelDeps
from gopackagesdriver.config import DriverSettings, load_settings
from gopackagesdriver.diagnostics import Reporter
from gopackagesdriver.driver import run_driver
from gopackagesdriver.exceptions import DriverError

app = typer.Typer(add_completion=False)


def _context_settings(ctx: typer.Context) -> DriverSettings:
    obj = ctx.obj
    if isinstance(obj, Mapping):
        candidate = obj.get("settings")
        if isinstance(candidate, DriverSettings):
            return candidate
    return load_settings()


def _context_bazel_deps(ctx: typer.Context) -> BazelDeps:
    obj = ctx.obj
    if isinstance(obj, Mapping):
        candidate = obj.get("bazel_deps")
        if isinstance(candidate, BazelDeps):
            return candidate
    return BazelDeps()


@app.command()
def driver(
    ctx: typer.Context,
    identifiers: Optional[List[str]] = typer.Argument(
        None,
        help="Bazel labels, file=<path> or query=<expr> patterns.",
        show_default=False,
    ),
) -> None:
    """Report Go package metadata for bazel targets to go/packages.

    Reads the driver request from stdin and writes the driver response to
    stdout.
    """
    settings = _context_settings(ctx)
    reporter = Reporter(verbose=settings.verbose)
    client = BazelClient(
        bazel=settings.bazel,
        startup_flags=settings.bazel_startup_flags,
        cwd=settings.workspace_root,
        deps=_context_bazel_deps(ctx),
    )
    try:
        # Raw bytes; decoding errors are reported as a malformed request.
        output = run_driver(
            list(identifiers or []),
            sys.stdin.buffer.read(),
            settings=settings,
            client=client,
            reporter=reporter,
        )
    except DriverError as exc:
        reporter.error(str(exc))
        raise typer.Exit(code=1) from exc
    typer.echo(output, nl=False)


def main() -> None:
    app(prog_name="gopackagesdriver")
