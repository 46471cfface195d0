import json
from typing import Any, Dict, List, Optional

from pydantic import AliasChoices, BaseModel, Field, field_validator

# Caller-facing bounds for a match request
MIN_THRESHOLD = 0.0
MAX_THRESHOLD = 1.0
MIN_REQUESTED_COUNT = 1
MAX_REQUESTED_COUNT = 100


class ProspectQuery(BaseModel):
    """Input to the prospect-to-podcast matching pipeline.

    Field names follow the current API; the legacy dashboard names
    (`prospect_name`, `match_threshold`, ...) are still accepted on input.
    """
    name: str = Field(..., validation_alias=AliasChoices("name", "prospect_name"), description="Prospect full name.")
    bio: Optional[str] = Field(None, validation_alias=AliasChoices("bio", "prospect_bio"), description="Prospect bio/background.")
    similarity_threshold: float = Field(
        0.2,
        validation_alias=AliasChoices("similarity_threshold", "match_threshold"),
        description="Minimum vector similarity for the first search (0-1).",
    )
    requested_count: int = Field(
        50,
        validation_alias=AliasChoices("requested_count", "match_count"),
        description="Number of matches wanted (1-100). Never fewer than the minimum floor are returned.",
    )
    use_relevance_filter: bool = Field(
        True,
        validation_alias=AliasChoices("use_relevance_filter", "use_ai_filter"),
        description="Rerank and filter the candidate pool with the LLM.",
    )
    prospect_id: Optional[str] = Field(None, description="Stored prospect to export matches for.")
    export_to_sheet: bool = Field(False, description="Write the final matches to the prospect's linked sheet.")

    class Config:
        populate_by_name = True
        extra = 'ignore'

    @field_validator("name", mode="before")
    @classmethod
    def _name_required(cls, value: Any) -> str:
        if value is None or not isinstance(value, str) or not value.strip():
            raise ValueError("Prospect name is required")
        return value.strip()

    @field_validator("similarity_threshold")
    @classmethod
    def _threshold_in_range(cls, value: float) -> float:
        if not MIN_THRESHOLD <= value <= MAX_THRESHOLD:
            raise ValueError(f"Match threshold must be between {MIN_THRESHOLD:g} and {MAX_THRESHOLD:g}")
        return value

    @field_validator("requested_count")
    @classmethod
    def _count_in_range(cls, value: int) -> int:
        if not MIN_REQUESTED_COUNT <= value <= MAX_REQUESTED_COUNT:
            raise ValueError(f"Match count must be between {MIN_REQUESTED_COUNT} and {MAX_REQUESTED_COUNT}")
        return value


class PodcastCategory(BaseModel):
    id: Optional[str] = Field(None, validation_alias=AliasChoices("id", "category_id"))
    name: Optional[str] = Field(None, validation_alias=AliasChoices("name", "category_name"))

    class Config:
        populate_by_name = True

    @field_validator("id", mode="before")
    @classmethod
    def _id_as_string(cls, value: Any) -> Optional[str]:
        return None if value is None else str(value)


class RelevanceVerdict(BaseModel):
    """LLM judgment attached to a candidate that survived relevance filtering."""
    relevance_score: int = Field(..., ge=0, le=10, description="AI-assigned relevance (0-10).")
    relevance_reason: str = Field(..., min_length=1, description="One-sentence justification for the score.")


class CandidatePodcast(BaseModel):
    """One podcast returned by the similarity search, optionally annotated by the relevance filter."""
    id: str
    podscan_id: Optional[str] = None
    name: str = Field(..., validation_alias=AliasChoices("name", "podcast_name"))
    description: Optional[str] = Field(None, validation_alias=AliasChoices("description", "podcast_description"))
    categories: List[PodcastCategory] = Field(
        default_factory=list,
        validation_alias=AliasChoices("categories", "podcast_categories"),
    )
    audience_size: Optional[int] = None
    similarity: float = Field(..., description="Vector similarity to the prospect profile; higher is better.")
    relevance_score: Optional[int] = Field(None, ge=0, le=10)
    relevance_reason: Optional[str] = None

    class Config:
        populate_by_name = True
        extra = 'ignore'

    @field_validator("id", "podscan_id", mode="before")
    @classmethod
    def _ids_as_strings(cls, value: Any) -> Optional[str]:
        return None if value is None else str(value)

    @field_validator("categories", mode="before")
    @classmethod
    def _coerce_categories(cls, value: Any) -> List[Dict[str, Any]]:
        # Stored as jsonb; drivers may hand back a string, and old rows hold junk
        if isinstance(value, str):
            try:
                value = json.loads(value)
            except ValueError:
                return []
        if not isinstance(value, list):
            return []
        return [item for item in value if isinstance(item, dict)]

    @property
    def category_names(self) -> List[str]:
        return [c.name for c in self.categories if c.name]

    @property
    def verdict(self) -> Optional[RelevanceVerdict]:
        if self.relevance_score is None or not self.relevance_reason:
            return None
        return RelevanceVerdict(relevance_score=self.relevance_score, relevance_reason=self.relevance_reason)

    def with_verdict(self, verdict: RelevanceVerdict) -> "CandidatePodcast":
        return self.model_copy(update={
            "relevance_score": verdict.relevance_score,
            "relevance_reason": verdict.relevance_reason,
        })


class CascadeResult(BaseModel):
    """Deduplicated candidate pool produced by the retrieval cascade."""
    pool: Dict[str, CandidatePodcast] = Field(default_factory=dict, description="Insertion-ordered map of podcast id to candidate.")
    thresholds_queried: List[float] = Field(default_factory=list, description="Thresholds of every search actually issued, in order.")
    warnings: List[str] = Field(default_factory=list)

    @property
    def candidates(self) -> List[CandidatePodcast]:
        return list(self.pool.values())


class StageResult(BaseModel):
    """Outcome of a best-effort stage: `degraded` marks a fallback to the stage input."""
    candidates: List[CandidatePodcast] = Field(default_factory=list)
    degraded: bool = False
    warning: Optional[str] = None


class MatchResult(BaseModel):
    prospect_text: str
    matches: List[CandidatePodcast] = Field(default_factory=list)
    total_matches: int = 0
    threshold_used: float = Field(..., description="The caller's requested threshold (fallback searches may have used -1.0).")
    thresholds_queried: List[float] = Field(default_factory=list)
    relevance_filter_applied: bool = False
    relevance_filter_degraded: bool = False
    warnings: List[str] = Field(default_factory=list)
    exported_to_sheet: bool = False
    sheet_url: Optional[str] = None
    export_error: Optional[str] = None

    class Config:
        frozen = True


class MatchResponse(BaseModel):
    success: bool
    data: Optional[MatchResult] = None
    error: Optional[str] = None


class ExportOutcome(BaseModel):
    success: bool
    sheet_url: Optional[str] = None
    error: Optional[str] = None
    exported_count: int = 0
