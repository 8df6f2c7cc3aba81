"""Unit tests for settings loaded from the environment."""

import pytest
from pydantic import ValidationError

from pio.config import Settings, parse_color


class TestSettings:
    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("PIO_TRIAL_BUDGET", raising=False)
        settings = Settings(_env_file=None)

        assert settings.log_level == "WARNING"
        assert settings.default_quality == 85
        assert settings.default_spread == 10
        assert settings.trial_budget == 8
        assert settings.max_workers is None
        assert settings.chroma_subsampling == "4:2:0"
        assert settings.background_rgb == (255, 255, 255)

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("PIO_TRIAL_BUDGET", "12")
        monkeypatch.setenv("PIO_LOG_LEVEL", "debug")
        monkeypatch.setenv("PIO_BACKGROUND", "0,0,0")
        monkeypatch.setenv("PIO_SEARCH_TIMEOUT", "2.5")

        settings = Settings(_env_file=None)

        assert settings.trial_budget == 12
        assert settings.log_level == "DEBUG"
        assert settings.background_rgb == (0, 0, 0)
        assert settings.search_timeout == 2.5

    @pytest.mark.parametrize(
        "field,value",
        [
            ("log_level", "LOUD"),
            ("chroma_subsampling", "4:1:1"),
            ("trial_budget", 0),
            ("trial_budget", 65),
            ("background", "white"),
            ("default_quality", 101),
        ],
    )
    def test_invalid_values(self, field, value):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, **{field: value})


class TestParseColor:
    def test_hex(self):
        assert parse_color("#ff8000") == (255, 128, 0)

    def test_components(self):
        assert parse_color(" 1, 2 ,3 ") == (1, 2, 3)

    @pytest.mark.parametrize("value", ["#fff", "1,2", "1,2,300", "red"])
    def test_invalid(self, value):
        with pytest.raises(ValueError):
            parse_color(value)
