"""Quality search: find the smallest encoding that still looks like the source.

Each candidate format gets an independent integer bisection over its native
parameter band. The comparison against the target score only picks the
direction of the next step; encoders are not monotonic in general, so this is
a heuristic search bounded by a trial budget, not a proof of convergence. The
best trial seen anywhere during the search is kept, not just the last one.
"""

import asyncio
from dataclasses import dataclass
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from pio.core.codecs.base import Codec
from pio.core.constants import DEFAULT_BACKGROUND, DEFAULT_TRIAL_BUDGET
from pio.core.exceptions import (
    EncodeError,
    NoViableEncodingError,
    PioError,
)
from pio.core.image import RasterImage
from pio.core.optimization.quality_table import QualityTarget
from pio.core.optimization.scheduler import Trial, TrialRequest, TrialScheduler
from pio.core.preprocessing import prepare_for_codec
from pio.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class SearchResult:
    """Winning trial of a format search, plus how it was found."""

    format: str
    parameter: int
    encoded_bytes: bytes
    dissimilarity_score: float
    trial_count: int
    target_score: float

    @classmethod
    def from_trial(
        cls, trial: Trial, trial_count: int, target_score: float
    ) -> "SearchResult":
        return cls(
            format=trial.format,
            parameter=trial.parameter,
            encoded_bytes=trial.encoded_bytes,
            dissimilarity_score=trial.dissimilarity_score,
            trial_count=trial_count,
            target_score=target_score,
        )

    @property
    def size(self) -> int:
        return len(self.encoded_bytes)

    @property
    def satisfied(self) -> bool:
        return self.dissimilarity_score <= self.target_score

    def __repr__(self) -> str:
        return (
            f"SearchResult(format={self.format!r}, parameter={self.parameter}, "
            f"size={self.size}, score={self.dissimilarity_score:.6f}, "
            f"trials={self.trial_count})"
        )


def selection_key(size: int, score: float, parameter: int, target_score: float) -> Tuple:
    """Sort key for candidates: lower is better.

    Candidates within tolerance rank by size alone; the rest rank by how far
    their score is from the target. Remaining ties go to the smaller file,
    then the higher parameter.
    """
    if score <= target_score:
        return (0, size, 0.0, -parameter)
    return (1, abs(score - target_score), size, -parameter)


def best_trial(trials: Iterable[Trial], target_score: float) -> Optional[Trial]:
    """Pick the best trial for a target, or None if there are no trials."""
    return min(
        trials,
        key=lambda t: selection_key(
            t.size, t.dissimilarity_score, t.parameter, target_score
        ),
        default=None,
    )


def best_result(results: Iterable[SearchResult]) -> Optional[SearchResult]:
    """Pick the overall winner across formats.

    ``min`` keeps the first of equal candidates, so exact ties go to the
    format listed first.
    """
    return min(
        results,
        key=lambda r: selection_key(
            r.size, r.dissimilarity_score, r.parameter, r.target_score
        ),
        default=None,
    )


class FormatSearch:
    """Bisection state for a single format.

    Owns its bounds, its trial cache and its best-so-far tracker, so several
    searches can run concurrently without sharing anything mutable.
    """

    def __init__(
        self,
        codec: Codec,
        source: RasterImage,
        target: QualityTarget,
        trial_budget: int = DEFAULT_TRIAL_BUDGET,
    ):
        if trial_budget < 1:
            raise ValueError("trial_budget must be at least 1")
        self.codec = codec
        self.source = source
        self.target = target
        self.trial_budget = trial_budget
        self.trial_count = 0
        self.best: Optional[Trial] = None
        self.trials: Dict[int, Trial] = {}
        self.failures: Dict[int, EncodeError] = {}

    @property
    def format(self) -> str:
        return self.codec.name

    @property
    def failure_reason(self) -> Optional[str]:
        if self.best is not None:
            return None
        if self.failures:
            last = self.failures[max(self.failures)]
            return f"all {len(self.failures)} trials failed to encode: {last.message}"
        return "no trials were run"

    def result(self) -> Optional[SearchResult]:
        """Best result so far, or None if no trial has succeeded."""
        if self.best is None:
            return None
        return SearchResult.from_trial(
            self.best, self.trial_count, self.target.target_score
        )

    async def run(self, scheduler: TrialScheduler) -> Optional[SearchResult]:
        """Bisect the band and return the best trial found.

        Raises:
            DecodeError: If the codec cannot decode its own output
            DimensionMismatchError: If a decoded trial changed size
        """
        low, high = self.target.min_param, self.target.max_param
        target_score = self.target.target_score

        if low == high:
            logger.debug(
                "Single-parameter band, skipping bisection",
                format=self.format,
                parameter=low,
            )

        while low <= high and self.trial_count < self.trial_budget:
            mid = low + (high - low) // 2
            trial = await self._trial(scheduler, mid)

            if trial is None or trial.dissimilarity_score > target_score:
                # Too different from the source (or unusable): compress less
                low = mid + 1
            else:
                high = mid - 1

        result = self.result()
        if result is not None:
            logger.info(
                "Format search finished",
                format=self.format,
                parameter=result.parameter,
                score=round(result.dissimilarity_score, 6),
                target=round(target_score, 6),
                size=result.size,
                trials=self.trial_count,
            )
        return result

    async def _trial(self, scheduler: TrialScheduler, parameter: int) -> Optional[Trial]:
        if parameter in self.trials:
            return self.trials[parameter]

        request = TrialRequest(codec=self.codec, source=self.source, parameter=parameter)
        (outcome,) = await scheduler.run_batch([request])
        self.trial_count += 1

        if not outcome.ok:
            if isinstance(outcome.error, EncodeError):
                self.failures[parameter] = outcome.error
                return None
            raise outcome.error

        trial = outcome.trial
        self.trials[parameter] = trial
        self.best = best_trial(
            [t for t in (self.best, trial) if t is not None],
            self.target.target_score,
        )
        return trial


class SearchController:
    """Runs one search per candidate format and picks the overall winner."""

    def __init__(
        self,
        scheduler: TrialScheduler,
        trial_budget: int = DEFAULT_TRIAL_BUDGET,
        background: Tuple[int, int, int] = DEFAULT_BACKGROUND,
        timeout: Optional[float] = None,
    ):
        self.scheduler = scheduler
        self.trial_budget = trial_budget
        self.background = background
        self.timeout = timeout

    async def run(
        self,
        source: RasterImage,
        codecs: Sequence[Codec],
        targets: Mapping[str, QualityTarget],
    ) -> SearchResult:
        """Search every candidate format concurrently and return the winner.

        Raises:
            NoViableEncodingError: If no format produced a usable trial
        """
        searches = self._create_searches(source, codecs, targets)
        tasks = [
            asyncio.create_task(search.run(self.scheduler), name=f"search-{search.format}")
            for search in searches
        ]

        done, pending = await asyncio.wait(tasks, timeout=self.timeout)
        if pending:
            logger.warning(
                "Search timeout exceeded, using best results so far",
                timeout=self.timeout,
                unfinished=[s.format for s, t in zip(searches, tasks) if t in pending],
            )
            for task in pending:
                task.cancel()
            await asyncio.gather(*pending, return_exceptions=True)

        results: List[SearchResult] = []
        failures: Dict[str, str] = {}
        for search, task in zip(searches, tasks):
            if task in pending:
                result = search.result()
                if result is None:
                    failures[search.format] = "timed out before any usable trial"
                else:
                    results.append(result)
                continue

            error = task.exception()
            if error is not None:
                if not isinstance(error, PioError):
                    raise error
                logger.error(
                    "Format search aborted",
                    format=search.format,
                    error_code=error.error_code,
                    error=error.message,
                )
                failures[search.format] = error.message
                continue

            result = task.result()
            if result is None:
                logger.warning(
                    "Format dropped", format=search.format, reason=search.failure_reason
                )
                failures[search.format] = search.failure_reason
            else:
                results.append(result)

        winner = best_result(results)
        if winner is None:
            raise NoViableEncodingError(
                "No candidate format produced a usable encoding",
                details={"formats": [s.format for s in searches], "failures": failures},
            )

        logger.info(
            "Selected encoding",
            format=winner.format,
            parameter=winner.parameter,
            size=winner.size,
            score=round(winner.dissimilarity_score, 6),
            satisfied=winner.satisfied,
            candidates=len(results),
        )
        return winner

    def _create_searches(
        self,
        source: RasterImage,
        codecs: Sequence[Codec],
        targets: Mapping[str, QualityTarget],
    ) -> List[FormatSearch]:
        if not codecs:
            raise NoViableEncodingError(
                "No candidate formats given", details={"formats": []}
            )

        searches: List[FormatSearch] = []
        seen = set()
        for codec in codecs:
            if codec.name in seen:
                continue
            seen.add(codec.name)
            prepared = prepare_for_codec(source, codec.supports_alpha, self.background)
            searches.append(
                FormatSearch(codec, prepared, targets[codec.name], self.trial_budget)
            )
        return searches
