"""Unit tests for the trial scheduler."""

from unittest.mock import MagicMock

import pytest

from pio.core.exceptions import EncodeError
from pio.core.image import RasterImage
from pio.core.optimization.scheduler import (
    Trial,
    TrialRequest,
    TrialScheduler,
    default_worker_count,
)
from pio.utils.logging import LoggingContext
from tests.helpers.fakes import FakeCodec, FakeEvaluator, decreasing_score


@pytest.fixture
def source() -> RasterImage:
    return RasterImage.blank(12, 10, (0, 128, 255))


class TestTrialScheduler:
    """Test batch execution of trials."""

    @pytest.fixture
    def scheduler(self):
        scheduler = TrialScheduler(FakeEvaluator(decreasing_score), max_workers=3)
        yield scheduler
        scheduler.close()

    def test_run_trial(self, scheduler, source):
        """A single trial carries the encoded bytes and their score."""
        trial = scheduler.run_trial(TrialRequest(FakeCodec(), source, 40))

        assert isinstance(trial, Trial)
        assert trial.format == "fake"
        assert trial.parameter == 40
        assert trial.size == 500
        assert trial.dissimilarity_score == pytest.approx(0.06)
        assert trial.processing_time >= 0

    @pytest.mark.asyncio
    async def test_batch_preserves_request_order(self, scheduler, source):
        codec = FakeCodec()
        requests = [TrialRequest(codec, source, p) for p in (90, 10, 55, 70)]

        outcomes = await scheduler.run_batch(requests)

        assert [o.request.parameter for o in outcomes] == [90, 10, 55, 70]
        assert [o.trial.parameter for o in outcomes] == [90, 10, 55, 70]
        assert all(o.ok for o in outcomes)

    @pytest.mark.asyncio
    async def test_failures_are_isolated(self, scheduler, source):
        """A failing request does not affect the rest of its batch."""
        codec = FakeCodec(fail_encode={20})
        requests = [TrialRequest(codec, source, p) for p in (10, 20, 30)]

        outcomes = await scheduler.run_batch(requests)

        assert [o.ok for o in outcomes] == [True, False, True]
        assert isinstance(outcomes[1].error, EncodeError)
        assert outcomes[1].trial is None
        assert outcomes[2].trial.parameter == 30

    @pytest.mark.asyncio
    async def test_empty_batch(self, scheduler):
        assert await scheduler.run_batch([]) == []

    @pytest.mark.asyncio
    async def test_workers_see_logging_context(self, scheduler, source):
        """The run id bound by the caller reaches worker threads."""
        codec = FakeCodec()

        with LoggingContext(run_id="abc123"):
            await scheduler.run_batch([TrialRequest(codec, source, 50)])

        assert codec.contexts[0]["run_id"] == "abc123"

    @pytest.mark.asyncio
    async def test_context_manager_closes_pool(self, source):
        async with TrialScheduler(FakeEvaluator(decreasing_score)) as scheduler:
            await scheduler.run_batch([TrialRequest(FakeCodec(), source, 50)])
            assert scheduler._executor is not None

        assert scheduler._executor is None

    def test_source_is_not_mutated(self, scheduler, source):
        before = source.pixels.copy()

        scheduler.run_trial(TrialRequest(FakeCodec(), source, 10))

        assert (source.pixels == before).all()

    def test_evaluator_receives_source_and_decoded(self, source):
        evaluator = MagicMock()
        evaluator.evaluate.return_value = 0.5
        scheduler = TrialScheduler(evaluator, max_workers=1)

        trial = scheduler.run_trial(TrialRequest(FakeCodec(), source, 10))

        args = evaluator.evaluate.call_args[0]
        assert args[0] is source
        assert args[1].size == source.size
        assert trial.dissimilarity_score == 0.5

    def test_default_worker_count(self):
        assert default_worker_count() >= 1
        assert TrialScheduler().max_workers == default_worker_count()
