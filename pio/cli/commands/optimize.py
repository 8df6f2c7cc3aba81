"""
Optimize Command
Compress an image at constant perceived quality
"""

import asyncio
from pathlib import Path
from typing import Annotated, List, Optional

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.table import Table

from pio.config import settings
from pio.core.codecs import FORMAT_ALIASES, format_from_path, get_codec
from pio.core.exceptions import PioError
from pio.models.optimization import OptimizeRequest
from pio.services.optimization_service import OptimizationService
from pio.utils.output import write_output

# Stdout may carry image data, so everything human-readable goes to stderr
console = Console(stderr=True)


def resolve_destination(output: str, winner_format: str, candidate_count: int) -> str:
    """Pick the output path, adjusting the suffix when several formats competed."""
    if output == "-" or candidate_count == 1:
        return output
    path = Path(output)
    if FORMAT_ALIASES.get(path.suffix.lower().lstrip(".")) == winner_format:
        return output
    return str(path.with_suffix(get_codec(winner_format).extension))


def existing_destinations(output: str, formats: List[str]) -> List[str]:
    """Paths any candidate format could be written to that already exist."""
    if output == "-":
        return []
    candidates = dict.fromkeys(
        resolve_destination(output, name, len(formats)) for name in formats
    )
    return [path for path in candidates if Path(path).exists()]


def optimize(
    input_path: Annotated[
        Path,
        typer.Argument(
            help="Input image (JPEG, PNG or WebP)",
            exists=True,
            dir_okay=False,
            readable=True,
        ),
    ],
    output: Annotated[str, typer.Argument(help="Output file path, or - for stdout")],
    quality: Annotated[
        Optional[float],
        typer.Option("-q", "--quality", min=0, max=100, help="Perceived quality (0-100)"),
    ] = None,
    spread: Annotated[
        Optional[float],
        typer.Option("--spread", min=0, max=100, help="Quality band half-width"),
    ] = None,
    target: Annotated[
        Optional[float],
        typer.Option("--target", min=0, help="Explicit dissimilarity target"),
    ] = None,
    min_param: Annotated[
        Optional[int], typer.Option("--min", help="Lowest native parameter to try")
    ] = None,
    max_param: Annotated[
        Optional[int], typer.Option("--max", help="Highest native parameter to try")
    ] = None,
    formats: Annotated[
        Optional[List[str]],
        typer.Option(
            "-f", "--format", help="Candidate output format (repeatable)"
        ),
    ] = None,
    chroma_subsampling: Annotated[
        Optional[str],
        typer.Option("--chroma-subsampling", help="JPEG chroma subsampling"),
    ] = None,
    budget: Annotated[
        Optional[int], typer.Option("--budget", min=1, help="Maximum trials per format")
    ] = None,
    workers: Annotated[
        Optional[int], typer.Option("--workers", min=1, help="Trial worker threads")
    ] = None,
    timeout: Annotated[
        Optional[float], typer.Option("--timeout", help="Global search timeout (s)")
    ] = None,
    overwrite: Annotated[
        bool, typer.Option("--overwrite", help="Replace an existing output file")
    ] = False,
):
    """
    Compress an image to the smallest size that keeps its perceived quality

    Examples:
      pio optimize photo.jpg small.jpg
      pio optimize photo.png out.webp -q 70
      pio optimize photo.png out -f webp -f jpeg -f png
    """
    try:
        if not formats:
            formats = [format_from_path(input_path if output == "-" else output)]

        request = OptimizeRequest(
            formats=formats,
            quality=settings.default_quality if quality is None else quality,
            spread=settings.default_spread if spread is None else spread,
            target_score=target,
            min_param=min_param,
            max_param=max_param,
            chroma_subsampling=chroma_subsampling or settings.chroma_subsampling,
            trial_budget=budget,
            max_workers=workers,
            timeout=timeout,
        )
    except ValidationError as e:
        for error in e.errors():
            field = ".".join(str(part) for part in error["loc"]) or "request"
            console.print(f"[red]Invalid {field}:[/red] {error['msg']}")
        raise typer.Exit(2)
    except PioError as e:
        console.print(f"[red]Error:[/red] {e.message}")
        raise typer.Exit(1)

    if not overwrite:
        existing = existing_destinations(output, request.formats)
        if existing:
            console.print(
                f"[red]Error:[/red] {', '.join(existing)} exists, use --overwrite to replace it"
            )
            raise typer.Exit(1)

    image_data = input_path.read_bytes()

    service = OptimizationService(settings)
    try:
        result, input_format = asyncio.run(service.optimize_bytes(image_data, request))
    except PioError as e:
        console.print(f"[red]Error:[/red] {e.message}")
        failures = e.details.get("failures") if isinstance(e.details, dict) else None
        for name, reason in (failures or {}).items():
            console.print(f"  {name}: {reason}")
        raise typer.Exit(1)

    destination = resolve_destination(output, result.format, len(request.formats))
    data = result.encoded_bytes
    kept_original = False
    if result.size >= len(image_data) and result.format == input_format:
        # Re-encoding only made it bigger
        data = image_data
        kept_original = True

    write_output(destination, data)

    summary = Table(show_header=False, box=None)
    summary.add_column("Setting", style="cyan")
    summary.add_column("Value")
    summary.add_row("Output", destination)
    summary.add_row("Format", result.format)
    summary.add_row("Parameter", str(result.parameter))
    summary.add_row(
        "Score",
        f"{result.dissimilarity_score:.6f} (target {result.target_score:.6f})",
    )
    summary.add_row("Trials", str(result.trial_count))
    summary.add_row(
        "Size",
        f"{len(image_data):,} -> {len(data):,} bytes "
        f"({100 * len(data) / max(1, len(image_data)):.1f}%)",
    )
    console.print(summary)

    if not result.satisfied:
        console.print(
            "[yellow]Warning:[/yellow] no trial reached the target; "
            "using the closest one"
        )
    if kept_original:
        console.print(
            "[yellow]Could not make the image smaller, wrote the input unchanged[/yellow]"
        )
