"""End-to-end optimization through the service with real codecs."""

import pytest

from pio.config import Settings
from pio.core.codecs import get_codec
from pio.core.exceptions import ConfigurationError, InvalidImageError
from pio.core.optimization import PerceptualEvaluator
from pio.models.optimization import OptimizeRequest
from pio.services.optimization_service import OptimizationService


@pytest.fixture
def service() -> OptimizationService:
    return OptimizationService(Settings(_env_file=None, max_workers=2))


class TestOptimizationService:
    """Test the full search on generated images."""

    @pytest.mark.asyncio
    async def test_jpeg_search_stays_in_band(self, service, photo):
        request = OptimizeRequest(formats=["jpeg"], quality=80, spread=10)

        result = await service.optimize_image(photo, request)

        assert result.format == "jpeg"
        assert 70 <= result.parameter <= 90
        assert 1 <= result.trial_count <= 8
        assert result.target_score == pytest.approx(0.011846)

    @pytest.mark.asyncio
    async def test_result_score_matches_output(self, service, photo):
        """The reported score is the score of the bytes returned."""
        request = OptimizeRequest(formats=["webp"], quality=70)

        result = await service.optimize_image(photo, request)

        decoded = get_codec("webp").decode(result.encoded_bytes)
        assert decoded.size == photo.size
        assert PerceptualEvaluator().evaluate(photo, decoded) == pytest.approx(
            result.dissimilarity_score
        )

    @pytest.mark.asyncio
    async def test_single_parameter_band(self, service, photo):
        request = OptimizeRequest(formats=["jpeg"], min_param=50, max_param=50)

        result = await service.optimize_image(photo, request)

        assert result.parameter == 50
        assert result.trial_count == 1

    @pytest.mark.asyncio
    async def test_multiple_formats(self, service, photo):
        request = OptimizeRequest(formats=["jpeg", "webp", "png"], quality=75)

        result = await service.optimize_image(photo, request)

        assert result.format in ("jpeg", "webp", "png")
        assert get_codec(result.format).decode(result.encoded_bytes).size == photo.size

    @pytest.mark.asyncio
    async def test_transparent_source(self, service, photo_rgba):
        """JPEG gets a flattened source while WebP keeps transparency."""
        request = OptimizeRequest(formats=["jpeg", "webp"], quality=80)

        result = await service.optimize_image(photo_rgba, request)

        decoded = get_codec(result.format).decode(result.encoded_bytes)
        assert decoded.size == photo_rgba.size

    @pytest.mark.asyncio
    async def test_unreachable_target_returns_closest(self, service, photo):
        request = OptimizeRequest(formats=["jpeg"], target_score=0.0, spread=20)

        result = await service.optimize_image(photo, request)

        assert not result.satisfied
        assert result.parameter >= 90

    @pytest.mark.asyncio
    async def test_higher_quality_is_not_smaller(self, service, photo):
        """Soft monotonicity: asking for much more quality never shrinks output."""
        low = await service.optimize_image(
            photo, OptimizeRequest(formats=["jpeg"], quality=30, spread=0)
        )
        high = await service.optimize_image(
            photo, OptimizeRequest(formats=["jpeg"], quality=95, spread=0)
        )

        assert high.size > low.size

    @pytest.mark.asyncio
    async def test_bounds_outside_codec_range(self, service, photo):
        request = OptimizeRequest(formats=["png"], min_param=0, max_param=256)

        with pytest.raises(ConfigurationError):
            await service.optimize_image(photo, request)

    @pytest.mark.asyncio
    async def test_optimize_bytes(self, service, photo_png_bytes):
        request = OptimizeRequest(formats=["jpeg"])

        result, input_format = await service.optimize_bytes(photo_png_bytes, request)

        assert input_format == "png"
        assert result.encoded_bytes[:3] == b"\xff\xd8\xff"

    @pytest.mark.asyncio
    async def test_optimize_invalid_bytes(self, service):
        with pytest.raises(InvalidImageError):
            await service.optimize_bytes(b"", OptimizeRequest(formats=["jpeg"]))

    def test_build_targets(self, service):
        request = OptimizeRequest(formats=["jpeg", "png"], quality=80, spread=10)

        codecs, targets = service.build_targets(request)

        assert [c.name for c in codecs] == ["jpeg", "png"]
        assert (targets["jpeg"].min_param, targets["jpeg"].max_param) == (70, 90)
        assert targets["png"].max_param == 231
        assert targets["jpeg"].target_score == targets["png"].target_score

    def test_build_targets_single_bound(self, service):
        request = OptimizeRequest(formats=["jpeg", "png"], quality=80, min_param=30)

        _, targets = service.build_targets(request)

        assert (targets["jpeg"].min_param, targets["jpeg"].max_param) == (30, 100)
        assert (targets["png"].min_param, targets["png"].max_param) == (30, 256)
