"""Fan-out/fan-in of encode, decode, evaluate trials over a thread pool."""

import asyncio
import contextvars
import os
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import List, Optional, Sequence

from pio.core.codecs.base import Codec
from pio.core.exceptions import PioError
from pio.core.image import RasterImage
from pio.core.optimization.evaluator import PerceptualEvaluator
from pio.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class Trial:
    """One scored encode at a specific (format, parameter)."""

    format: str
    parameter: int
    encoded_bytes: bytes
    dissimilarity_score: float
    processing_time: float = 0.0

    @property
    def size(self) -> int:
        return len(self.encoded_bytes)

    def __repr__(self) -> str:
        return (
            f"Trial(format={self.format!r}, parameter={self.parameter}, "
            f"size={self.size}, score={self.dissimilarity_score:.6f})"
        )


@dataclass(frozen=True, eq=False)
class TrialRequest:
    """Encode ``source`` with ``codec`` at ``parameter`` and score the result."""

    codec: Codec
    source: RasterImage
    parameter: int

    @property
    def format(self) -> str:
        return self.codec.name


@dataclass(frozen=True, eq=False)
class TrialOutcome:
    """Either a scored trial or the error that prevented it."""

    request: TrialRequest
    trial: Optional[Trial] = None
    error: Optional[PioError] = None

    @property
    def ok(self) -> bool:
        return self.trial is not None


def default_worker_count() -> int:
    return os.cpu_count() or 1


class TrialScheduler:
    """Runs batches of independent trials on a bounded worker pool.

    Requests in a batch share nothing but the read-only source image. A
    failing request is reported in its own outcome and never affects its
    siblings. Outcomes come back in request order once the whole batch has
    finished.
    """

    def __init__(
        self,
        evaluator: Optional[PerceptualEvaluator] = None,
        max_workers: Optional[int] = None,
    ):
        self.evaluator = evaluator or PerceptualEvaluator()
        self.max_workers = max_workers or default_worker_count()
        self._executor: Optional[ThreadPoolExecutor] = None

    async def __aenter__(self) -> "TrialScheduler":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    @property
    def executor(self) -> ThreadPoolExecutor:
        if self._executor is None:
            self._executor = ThreadPoolExecutor(
                max_workers=self.max_workers, thread_name_prefix="pio_trial"
            )
        return self._executor

    def close(self) -> None:
        """Shut the pool down without waiting for abandoned trials."""
        if self._executor is not None:
            self._executor.shutdown(wait=False, cancel_futures=True)
            self._executor = None

    def run_trial(self, request: TrialRequest) -> Trial:
        """Encode, decode and score one request on the calling thread."""
        start = time.perf_counter()
        codec = request.codec
        encoded = codec.encode(request.source, request.parameter)
        decoded = codec.decode(encoded)
        score = self.evaluator.evaluate(request.source, decoded)
        trial = Trial(
            format=codec.name,
            parameter=request.parameter,
            encoded_bytes=encoded,
            dissimilarity_score=score,
            processing_time=time.perf_counter() - start,
        )
        logger.debug(
            "Trial finished",
            format=trial.format,
            parameter=trial.parameter,
            score=round(score, 6),
            size=trial.size,
            elapsed_ms=round(trial.processing_time * 1000, 1),
        )
        return trial

    def _run_request(self, request: TrialRequest) -> TrialOutcome:
        try:
            return TrialOutcome(request=request, trial=self.run_trial(request))
        except PioError as e:
            logger.debug(
                "Trial failed",
                format=request.format,
                parameter=request.parameter,
                error_code=e.error_code,
                error=e.message,
            )
            return TrialOutcome(request=request, error=e)

    async def run_batch(self, requests: Sequence[TrialRequest]) -> List[TrialOutcome]:
        """Run all requests concurrently and wait for every one of them."""
        if not requests:
            return []
        loop = asyncio.get_running_loop()
        # Each worker gets its own copy of the logging context
        futures = [
            loop.run_in_executor(
                self.executor, contextvars.copy_context().run, self._run_request, request
            )
            for request in requests
        ]
        return list(await asyncio.gather(*futures))
