"""
Main CLI Application
Typer application with global logging options
"""

from typing import Annotated, Optional

import typer
from rich.console import Console

from pio import __version__
from pio.cli.commands import calibrate, optimize
from pio.config import settings
from pio.utils.logging import setup_logging

app = typer.Typer(
    name="pio",
    help="Perceptual image optimizer - compress images at constant perceived quality",
    no_args_is_help=True,
    pretty_exceptions_show_locals=False,
    add_completion=False,
    context_settings={"help_option_names": ["-h", "--help"]},
)

app.command(name="optimize")(optimize.optimize)
app.command(name="calibrate")(calibrate.calibrate)


def version_callback(value: bool) -> None:
    if value:
        Console().print(f"pio {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    verbose: Annotated[
        bool, typer.Option("-v", "--verbose", help="Log search progress")
    ] = False,
    log_level: Annotated[
        Optional[str], typer.Option("--log-level", help="Logging level")
    ] = None,
    json_logs: Annotated[
        Optional[bool], typer.Option("--json-logs/--no-json-logs", help="JSON logs")
    ] = None,
    version: Annotated[
        Optional[bool],
        typer.Option(
            "--version", callback=version_callback, is_eager=True, help="Show version"
        ),
    ] = None,
):
    """Configure logging for all commands."""
    level = (log_level or ("INFO" if verbose else settings.log_level)).upper()
    if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
        raise typer.BadParameter(f"unknown log level {level}", param_hint="--log-level")
    setup_logging(
        log_level=level,
        json_logs=settings.json_logs if json_logs is None else json_logs,
        redact=settings.redact_paths,
    )


if __name__ == "__main__":
    app()
