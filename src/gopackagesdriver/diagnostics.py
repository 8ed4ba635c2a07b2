from __future__ import annotations

from dataclasses import dataclass

import typer

PREFIX = "gopackagesdriver: "


def print_err(message: str) -> None:
    typer.echo(message, err=True, nl=not message.endswith("\n"))


@dataclass(frozen=True)
class Reporter:
    """Writes progress and failures to stderr; stdout belongs to the response."""

    verbose: bool = False

    def info(self, message: str) -> None:
        if self.verbose:
            print_err(f"{PREFIX}{message}")

    def error(self, message: str) -> None:
        typer.secho(f"{PREFIX}{message}", err=True, fg=typer.colors.RED)
