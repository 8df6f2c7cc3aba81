"""
Calibrate Command
Rebuild the quality-to-target table from a reference corpus
"""

from pathlib import Path
from typing import Annotated, List

import typer
from rich.console import Console

from pio.core.codecs import get_codec
from pio.core.constants import CALIBRATION_STEP
from pio.core.exceptions import PioError
from pio.core.optimization.calibration import build_quality_table, format_table
from pio.core.preprocessing import load_image

console = Console(stderr=True)


def calibrate(
    corpus: Annotated[
        List[Path],
        typer.Argument(help="Reference images", exists=True, dir_okay=False),
    ],
    format_name: Annotated[
        str, typer.Option("-f", "--format", help="Codec to calibrate against")
    ] = "jpeg",
    step: Annotated[
        int, typer.Option("--step", min=1, max=100, help="Quality sampling step")
    ] = CALIBRATION_STEP,
):
    """
    Print a quality table averaged over CORPUS

    Examples:
      pio calibrate corpus/*.png
      pio calibrate corpus/*.png --step 1
    """
    try:
        codec = get_codec(format_name)
        images = []
        for path in corpus:
            image, _ = load_image(path.read_bytes())
            images.append(image)
        table = build_quality_table(images, codec, step=step)
    except PioError as e:
        console.print(f"[red]Error:[/red] {e.message}")
        raise typer.Exit(1)
    except ValueError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)

    typer.echo(format_table(table))
