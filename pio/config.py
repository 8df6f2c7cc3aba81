from typing import Optional, Tuple

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from pio.core.constants import (
    DEFAULT_BACKGROUND,
    DEFAULT_CHROMA_SUBSAMPLING,
    DEFAULT_QUALITY,
    DEFAULT_SPREAD,
    DEFAULT_TRIAL_BUDGET,
    MAX_TRIAL_BUDGET,
)


class Settings(BaseSettings):
    # Logging
    log_level: str = Field(default="WARNING", description="Logging level")
    json_logs: bool = Field(default=False, description="Render logs as JSON")
    redact_paths: bool = Field(
        default=True, description="Mask file system paths in logs"
    )

    # Search defaults
    default_quality: int = Field(
        default=DEFAULT_QUALITY, ge=0, le=100, description="Operator quality (0-100)"
    )
    default_spread: int = Field(
        default=DEFAULT_SPREAD, ge=0, le=100, description="Quality band half-width"
    )
    trial_budget: int = Field(
        default=DEFAULT_TRIAL_BUDGET,
        ge=1,
        le=MAX_TRIAL_BUDGET,
        description="Maximum trials per format search",
    )
    max_workers: Optional[int] = Field(
        default=None, ge=1, description="Trial worker threads (default: CPU count)"
    )
    search_timeout: Optional[float] = Field(
        default=None, gt=0, description="Global search timeout in seconds"
    )

    # Encoding
    chroma_subsampling: str = Field(
        default=DEFAULT_CHROMA_SUBSAMPLING, description="JPEG chroma subsampling"
    )
    background: str = Field(
        default="#%02x%02x%02x" % DEFAULT_BACKGROUND,
        description="Background colour for formats without alpha ('#rrggbb' or 'r,g,b')",
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v):
        allowed = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in allowed:
            raise ValueError(f"log_level must be one of {allowed}")
        return v.upper()

    @field_validator("chroma_subsampling")
    @classmethod
    def validate_chroma_subsampling(cls, v):
        allowed = ["4:2:0", "4:2:2", "4:4:4"]
        if v not in allowed:
            raise ValueError(f"chroma_subsampling must be one of {allowed}")
        return v

    @field_validator("background")
    @classmethod
    def validate_background(cls, v):
        parse_color(v)
        return v

    @property
    def background_rgb(self) -> Tuple[int, int, int]:
        return parse_color(self.background)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        env_prefix="PIO_",
    )


def parse_color(value: str) -> Tuple[int, int, int]:
    """Parse a colour given as '#rrggbb' or 'r,g,b'."""
    value = value.strip()
    if value.startswith("#"):
        hex_value = value[1:]
        if len(hex_value) != 6:
            raise ValueError(f"expected #rrggbb, got {value!r}")
        return tuple(int(hex_value[i : i + 2], 16) for i in (0, 2, 4))

    parts = [part.strip() for part in value.split(",")]
    if len(parts) != 3:
        raise ValueError(f"expected r,g,b, got {value!r}")
    rgb = tuple(int(part) for part in parts)
    if any(not 0 <= c <= 255 for c in rgb):
        raise ValueError(f"colour components must be 0-255, got {value!r}")
    return rgb


settings = Settings()
