"""Operator-facing optimization request."""

from typing import List, Literal, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from pio.core.codecs import normalize_format
from pio.core.constants import DEFAULT_QUALITY, DEFAULT_SPREAD, MAX_TRIAL_BUDGET
from pio.core.exceptions import UnsupportedFormatError


class OptimizeRequest(BaseModel):
    """What the operator asks for; turned into one QualityTarget per format."""

    formats: List[str] = Field(
        ..., min_length=1, description="Acceptable output formats, in preference order"
    )
    quality: float = Field(
        default=DEFAULT_QUALITY, ge=0, le=100, description="Perceived quality (0-100)"
    )
    target_score: Optional[float] = Field(
        None, ge=0.0, description="Explicit dissimilarity target, overrides quality"
    )
    spread: float = Field(
        default=DEFAULT_SPREAD, ge=0, le=100, description="Quality band half-width"
    )
    min_param: Optional[int] = Field(
        None, description="Lowest native parameter to try (overrides the band)"
    )
    max_param: Optional[int] = Field(
        None, description="Highest native parameter to try (overrides the band)"
    )
    chroma_subsampling: Literal["4:2:0", "4:2:2", "4:4:4"] = Field(
        default="4:2:0", description="JPEG chroma subsampling"
    )
    trial_budget: Optional[int] = Field(
        None, ge=1, le=MAX_TRIAL_BUDGET, description="Maximum trials per format"
    )
    max_workers: Optional[int] = Field(None, ge=1, description="Trial worker threads")
    timeout: Optional[float] = Field(
        None, gt=0, description="Global search timeout in seconds"
    )

    @field_validator("formats")
    @classmethod
    def normalize_formats(cls, v):
        """Canonicalize names and drop duplicates, keeping the first occurrence."""
        normalized: List[str] = []
        for name in v:
            try:
                canonical = normalize_format(name)
            except UnsupportedFormatError as e:
                raise ValueError(e.message) from None
            if canonical not in normalized:
                normalized.append(canonical)
        return normalized

    @model_validator(mode="after")
    def validate_param_range(self):
        """Ensure max_param >= min_param when both are given."""
        if (
            self.min_param is not None
            and self.max_param is not None
            and self.max_param < self.min_param
        ):
            raise ValueError("max_param must be >= min_param")
        return self
