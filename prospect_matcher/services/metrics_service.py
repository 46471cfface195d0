import logging
from collections import deque
from typing import Any, Deque, Dict, List, Optional

from ..models.metrics import MetricRecord

logger = logging.getLogger(__name__)

DEFAULT_BUFFER_SIZE = 1000

class MetricsService:
    """
    Service responsible for recording pipeline metrics.
    Events are kept in a bounded in-memory buffer and logged at DEBUG.
    """

    def __init__(self, buffer_size: int = DEFAULT_BUFFER_SIZE):
        """Initializes the MetricsService."""
        self._records: Deque[MetricRecord] = deque(maxlen=buffer_size)

    def record_event(
        self,
        event_name: str,
        prospect_id: Optional[str] = None,
        stage: Optional[str] = None,
        duration_ms: Optional[float] = None,
        count: Optional[int] = None,
        metadata: Optional[Dict[str, Any]] = None
    ) -> Optional[MetricRecord]:
        """
        Records a metric event.
        Args:
            event_name: The name of the event being recorded.
            prospect_id: The prospect the event belongs to, if any.
            stage: The pipeline stage during which the event occurred.
            duration_ms: The duration of the event in milliseconds.
            count: A count associated with the event (e.g., number of candidates).
            metadata: Additional key-value pairs for context.
        """
        try:
            metric = MetricRecord(
                event_name=event_name,
                prospect_id=prospect_id,
                stage=stage,
                duration_ms=duration_ms,
                count=count,
                metadata=metadata
            )
        except Exception as e:
            # Metrics must never break the pipeline
            logger.exception(f"Failed to record metric event '{event_name}': {e}")
            return None

        self._records.append(metric)
        logger.debug(f"Metric event: {event_name}, Prospect: {prospect_id}, Stage: {stage}, Count: {count}, Meta: {metadata}")
        return metric

    def get_events(self, event_name: Optional[str] = None) -> List[MetricRecord]:
        """Returns buffered events, oldest first, optionally filtered by name."""
        return [r for r in self._records if event_name is None or r.event_name == event_name]

    def clear(self):
        self._records.clear()
