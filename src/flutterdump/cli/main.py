"""Root CLI application for flutterdump."""

import typer

from flutterdump import __version__
from flutterdump.cli import dump

app = typer.Typer(
    name="flutterdump",
    help="Extract live UI layout from a running Flutter app through its VM Service.",
    no_args_is_help=True,
)

# Register subcommands
app.add_typer(dump.app, name="dump", help="Dump widget trees and layouts to JSON")


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"flutterdump {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        False,
        "--version",
        "-v",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
) -> None:
    """flutterdump - Flutter UI layout extraction."""
    pass


if __name__ == "__main__":
    app()
