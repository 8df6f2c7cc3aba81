"""Unit tests for the optimization request model."""

import pytest
from pydantic import ValidationError

from pio.models.optimization import OptimizeRequest


class TestOptimizeRequest:
    def test_defaults(self):
        request = OptimizeRequest(formats=["jpeg"])

        assert request.quality == 85
        assert request.spread == 10
        assert request.target_score is None
        assert request.chroma_subsampling == "4:2:0"
        assert request.trial_budget is None

    def test_formats_normalized_and_deduplicated(self):
        request = OptimizeRequest(formats=["JPG", "webp", "jpeg", "png"])

        assert request.formats == ["jpeg", "webp", "png"]

    def test_unknown_format(self):
        with pytest.raises(ValidationError) as exc_info:
            OptimizeRequest(formats=["bmp"])

        assert "Unsupported format" in str(exc_info.value)

    def test_formats_required(self):
        with pytest.raises(ValidationError):
            OptimizeRequest(formats=[])

    def test_param_range(self):
        with pytest.raises(ValidationError):
            OptimizeRequest(formats=["jpeg"], min_param=80, max_param=70)

        request = OptimizeRequest(formats=["jpeg"], min_param=70, max_param=70)
        assert request.min_param == request.max_param == 70

    @pytest.mark.parametrize(
        "field,value",
        [
            ("quality", 101),
            ("quality", -1),
            ("target_score", -0.5),
            ("spread", -1),
            ("trial_budget", 0),
            ("timeout", 0),
            ("chroma_subsampling", "4:4:0"),
        ],
    )
    def test_invalid_values(self, field, value):
        with pytest.raises(ValidationError):
            OptimizeRequest(formats=["jpeg"], **{field: value})
