"""Unit tests for quality table calibration."""

import pytest

from pio.core.codecs import JpegCodec
from pio.core.optimization.calibration import (
    build_quality_table,
    calibration_qualities,
    format_table,
)
from tests.helpers.fakes import FakeCodec, FakeEvaluator, decreasing_score


class TestCalibration:
    """Test rebuilding the quality table."""

    def test_qualities_include_both_ends(self):
        assert calibration_qualities(5)[:3] == [0, 5, 10]
        assert calibration_qualities(30) == [0, 30, 60, 90, 100]
        assert len(calibration_qualities(1)) == 101

    def test_invalid_step(self):
        with pytest.raises(ValueError):
            calibration_qualities(0)

    def test_averages_over_corpus(self, photo, photo_rgba):
        codec = FakeCodec()

        table = build_quality_table(
            [photo, photo_rgba], codec, FakeEvaluator(decreasing_score), step=50
        )

        assert table == ((0, 0.1), (50, 0.05), (100, 0.0))
        assert len(codec.encoded) == 6

    def test_skips_failed_encodes(self, photo):
        codec = FakeCodec(fail_encode={50})

        table = build_quality_table(
            [photo], codec, FakeEvaluator(decreasing_score), step=50
        )

        assert [q for q, _ in table] == [0, 100]

    def test_empty_corpus(self):
        with pytest.raises(ValueError):
            build_quality_table([], FakeCodec(), FakeEvaluator(decreasing_score))

    def test_real_codec_table_is_decreasing(self, photo):
        table = build_quality_table([photo], JpegCodec(), step=25)
        scores = [score for _, score in table]

        assert scores[0] > scores[-1]

    def test_format_table(self):
        text = format_table(((0, 0.1), (100, 0.000611)))

        assert text.splitlines() == [
            "QUALITY_TABLE: Tuple[Tuple[int, float], ...] = (",
            "    (0, 0.100000),",
            "    (100, 0.000611),",
            ")",
        ]
