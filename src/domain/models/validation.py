"""Data-quality validation results.

DataValidationResult        — checks over one ticker's bar set
MetricsValidationResult     — realistic-range checks over computed metrics
CorrelationValidationResult — structural checks over a dense correlation matrix
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from .enums import DataQuality


class DataValidationResult(BaseModel):
    """Bar-set validation outcome.

    quality_score starts at 100 and loses a fixed penalty per failed check;
    data_quality grades it (≥ 90 high, ≥ 70 medium, otherwise low).
    """

    model_config = ConfigDict(frozen=True)

    ticker: str
    is_valid: bool
    issues: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    bar_count: int = Field(ge=0)
    expected_bars: int = Field(ge=0)
    coverage: float = Field(ge=0.0)
    quality_score: float = Field(ge=0.0, le=100.0)
    data_quality: DataQuality


class MetricsValidationResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    is_valid: bool
    issues: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)


class CorrelationValidationResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    is_valid: bool
    issues: list[str] = Field(default_factory=list)
