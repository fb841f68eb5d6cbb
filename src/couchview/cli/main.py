"""couchview CLI entry point."""

from __future__ import annotations

import importlib.metadata
from typing import Annotated

import typer

from couchview.cli.publish import publish_cmd
from couchview.cli.render import render_cmd


def _installed_version() -> str:
    try:
        return importlib.metadata.version("couchview")
    except importlib.metadata.PackageNotFoundError:
        return "dev"


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"couchview {_installed_version()}")
        raise typer.Exit()


app = typer.Typer(
    name="couchview",
    help=(
        "couchview — declarative CouchDB views.\n\n"
        "  couchview render   Print the design documents a module declares.\n"
        "  couchview publish  Write them to a CouchDB database."
    ),
    add_completion=False,
)


@app.callback()
def main_callback(
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            callback=_version_callback,
            is_eager=True,
            help="Show version and exit.",
        ),
    ] = False,
) -> None:
    """couchview — declarative CouchDB views."""


app.command("render")(render_cmd)
app.command("publish")(publish_cmd)


@app.command("version")
def version_cmd() -> None:
    """Show the installed couchview version."""
    typer.echo(f"couchview {_installed_version()}")


if __name__ == "__main__":
    app()
