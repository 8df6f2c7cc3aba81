"""Offline rebuild of the quality-to-target table from a reference corpus."""

from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from pio.core.codecs.base import Codec
from pio.core.constants import CALIBRATION_STEP, MAX_QUALITY, MIN_QUALITY
from pio.core.exceptions import EncodeError
from pio.core.image import RasterImage
from pio.core.optimization.evaluator import PerceptualEvaluator
from pio.core.preprocessing import prepare_for_codec
from pio.utils.logging import get_logger

logger = get_logger(__name__)


def calibration_qualities(step: int = CALIBRATION_STEP) -> List[int]:
    """Operator quality levels sampled by the table, always including 100."""
    if step < 1:
        raise ValueError("step must be at least 1")
    qualities = list(range(MIN_QUALITY, MAX_QUALITY + 1, step))
    if qualities[-1] != MAX_QUALITY:
        qualities.append(MAX_QUALITY)
    return qualities


def build_quality_table(
    corpus: Iterable[RasterImage],
    codec: Codec,
    evaluator: Optional[PerceptualEvaluator] = None,
    step: int = CALIBRATION_STEP,
) -> Tuple[Tuple[int, float], ...]:
    """Average the evaluator's score per quality level over a corpus.

    Every image is encoded at the native parameter for each sampled quality.
    Encodes the codec rejects are skipped.

    Returns:
        ``(quality, mean_score)`` pairs in ascending quality order
    """
    evaluator = evaluator or PerceptualEvaluator()
    qualities = calibration_qualities(step)
    totals: Dict[int, float] = {q: 0.0 for q in qualities}
    counts: Dict[int, int] = {q: 0 for q in qualities}

    for index, image in enumerate(corpus):
        source = prepare_for_codec(image, codec.supports_alpha)
        for quality in qualities:
            parameter = codec.native_param_for(quality)
            try:
                encoded = codec.encode(source, parameter)
            except EncodeError as e:
                logger.warning(
                    "Skipping calibration sample",
                    image_index=index,
                    quality=quality,
                    error=e.message,
                )
                continue
            score = evaluator.evaluate(source, codec.decode(encoded))
            totals[quality] += score
            counts[quality] += 1
        logger.debug("Calibrated corpus image", image_index=index, format=codec.name)

    if not any(counts.values()):
        raise ValueError("Calibration corpus produced no samples")

    return tuple(
        (quality, totals[quality] / counts[quality])
        for quality in qualities
        if counts[quality]
    )


def format_table(table: Sequence[Tuple[int, float]]) -> str:
    """Render a table as Python source for embedding."""
    lines = ["QUALITY_TABLE: Tuple[Tuple[int, float], ...] = ("]
    lines.extend(f"    ({quality}, {score:.6f})," for quality, score in table)
    lines.append(")")
    return "\n".join(lines)
