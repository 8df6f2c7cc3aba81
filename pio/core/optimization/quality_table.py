"""Operator quality to dissimilarity target mapping.

The table is anchored on evaluator scores measured for JPEG output at quality
50, 80 and 95 on a smooth 512x384 gradient, with and without mild sensor
noise, averaged per quality. Entries between the anchors are filled in
log-linearly and entries below quality 50 follow a power law in quality.
Regenerate it from a real photo corpus with ``pio calibrate``.

It is module-level immutable data; nothing writes to it at run time.
"""

from bisect import bisect_right
from dataclasses import dataclass
from typing import Optional, Tuple

from pio.core.codecs.base import Codec
from pio.core.constants import MAX_QUALITY, MIN_QUALITY
from pio.core.exceptions import ConfigurationError

# (quality, score) pairs, quality ascending, score descending
QUALITY_TABLE: Tuple[Tuple[int, float], ...] = (
    (0, 3.648700),
    (5, 0.537500),
    (10, 0.235650),
    (15, 0.145340),
    (20, 0.103270),
    (25, 0.079170),
    (30, 0.063680),
    (35, 0.053050),
    (40, 0.045250),
    (45, 0.039340),
    (50, 0.034700),
    (55, 0.029009),
    (60, 0.024252),
    (65, 0.020274),
    (70, 0.016949),
    (75, 0.014170),
    (80, 0.011846),
    (85, 0.009903),
    (90, 0.008279),
    (95, 0.006921),
    (100, 0.005786),
)


@dataclass(frozen=True)
class QualityTarget:
    """Search goal for one format, in that format's native units."""

    target_score: float
    min_param: int
    max_param: int

    def __post_init__(self) -> None:
        if self.target_score < 0:
            raise ConfigurationError(
                f"target_score must be >= 0, got {self.target_score}",
                details={"config_key": "target_score", "config_value": self.target_score},
            )
        if self.min_param > self.max_param:
            raise ConfigurationError(
                f"min_param {self.min_param} is greater than max_param {self.max_param}",
                details={"config_key": "min_param", "config_value": self.min_param},
            )


def interpolate(table: Tuple[Tuple[int, float], ...], quality: float) -> float:
    """Linear interpolation in a (quality, score) table, clamped at both ends."""
    qualities = [q for q, _ in table]
    if quality <= qualities[0]:
        return table[0][1]
    if quality >= qualities[-1]:
        return table[-1][1]

    index = bisect_right(qualities, quality)
    (q0, s0), (q1, s1) = table[index - 1], table[index]
    if quality == q0:
        return s0
    t = (quality - q0) / (q1 - q0)
    return s0 + t * (s1 - s0)


def target_score_for(quality: float) -> float:
    """Expected dissimilarity for an operator quality level."""
    return interpolate(QUALITY_TABLE, quality)


def _check_override(codec: Codec, key: str, value: int) -> int:
    low, high = codec.native_range()
    if not low <= value <= high:
        raise ConfigurationError(
            f"{key} {value} outside {codec.name} range {low}-{high}",
            details={"config_key": key, "config_value": value, "valid_range": (low, high)},
        )
    return value


def derive_target(
    codec: Codec,
    quality: float,
    spread: float = 0,
    min_param: Optional[int] = None,
    max_param: Optional[int] = None,
    target_score: Optional[float] = None,
) -> QualityTarget:
    """Derive a format's search target from operator settings.

    The band is ``quality - spread`` to ``quality + spread`` mapped into native
    units, clamped to the codec's range. Giving ``min_param`` or ``max_param``
    replaces the derived band entirely: quality then only selects the target
    score, and an end left out is the codec's own limit. An explicit
    ``target_score`` replaces the table lookup.

    Example: JPEG, quality 80, spread 10 gives the band 70..90.
    """
    if not MIN_QUALITY <= quality <= MAX_QUALITY:
        raise ConfigurationError(
            f"quality must be between {MIN_QUALITY} and {MAX_QUALITY}, got {quality}",
            details={"config_key": "quality", "config_value": quality},
        )
    if spread < 0:
        raise ConfigurationError(
            f"spread must be >= 0, got {spread}",
            details={"config_key": "spread", "config_value": spread},
        )

    if min_param is None and max_param is None:
        min_param = codec.native_param_for(quality - spread)
        max_param = codec.native_param_for(quality + spread)
    else:
        # an explicit bound replaces the derived band; a missing end opens to the codec limit
        low, high = codec.native_range()
        min_param = low if min_param is None else _check_override(codec, "min_param", min_param)
        max_param = high if max_param is None else _check_override(codec, "max_param", max_param)

    score = target_score_for(quality) if target_score is None else target_score
    return QualityTarget(target_score=score, min_param=min_param, max_param=max_param)
