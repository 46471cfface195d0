from pydantic import BaseModel, Field
from typing import Optional, Dict, Any
from datetime import datetime, timezone
import uuid

class MetricRecord(BaseModel):
    """
    Represents a single metric event recorded by the matching pipeline.
    """
    metric_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    event_name: str # e.g., "similarity_search", "relevance_filter", "match_completed"
    prospect_id: Optional[str] = None # Link metric to a stored prospect if applicable
    stage: Optional[str] = None # e.g., "cascade", "relevance_filter", "export"
    duration_ms: Optional[float] = None # For timed events
    count: Optional[int] = None # For counting occurrences
    metadata: Optional[Dict[str, Any]] = None # For extra context (e.g., threshold, cap)
