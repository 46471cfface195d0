import math
from typing import Any

from pydantic import AliasChoices, BaseModel, Field, field_validator


class RelevanceEvaluation(BaseModel):
    """One entry of the relevance filter's JSON answer."""
    index: int = Field(..., ge=0, description="Position of the podcast in the list sent to the LLM.")
    relevance_score: int = Field(..., ge=0, le=10, description="LLM's relevance score (0-10).")
    reason: str = Field(..., min_length=1, validation_alias=AliasChoices("reason", "relevance_reason"))

    class Config:
        validate_assignment = True
        populate_by_name = True

    @field_validator("relevance_score", mode="before")
    @classmethod
    def _floor_fractional_score(cls, value: Any) -> Any:
        # 7.5 -> 7, 4.9 -> 4
        if isinstance(value, float) and math.isfinite(value):
            return math.floor(value)
        return value
