import logging
import time
from typing import Any, Dict, Optional, Union

from pydantic import ValidationError

from .export_service import ExportService
from .metrics_service import MetricsService
from .prospect_service import ProspectService
from .relevance_filter import RelevanceFilter
from .result_composer import compose_matches
from .retrieval_cascade import RetrievalCascade
from ..api.exceptions import EmbeddingError, SimilaritySearchError
from ..api.openai_client import OpenAIEmbeddingClient
from ..models.matching import MatchResponse, MatchResult, ProspectQuery, StageResult
from ..utils.prospect_text import build_profile_text, is_sufficient_profile
from ..utils.validation import format_validation_error

logger = logging.getLogger(__name__)

BACKFILL_BIO_CHARS = 500
BACKFILL_REQUESTED_COUNT = 15


class PodcastMatchingService:
    """Matches a prospect to podcasts: embed, search cascade, relevance filter, compose, export.

    Every step runs sequentially. Only validation, the embedding and the
    first similarity search can fail a request; later stages degrade.
    """

    def __init__(
        self,
        embedding_client: OpenAIEmbeddingClient,
        cascade: RetrievalCascade,
        relevance_filter: RelevanceFilter,
        export_service: Optional[ExportService] = None,
        prospect_service: Optional[ProspectService] = None,
        metrics_service: Optional[MetricsService] = None,
    ):
        self.embedding_client = embedding_client
        self.cascade = cascade
        self.relevance_filter = relevance_filter
        self.export_service = export_service
        self.prospect_service = prospect_service
        self.metrics_service = metrics_service or MetricsService()

    def match_podcasts(self, request: Union[ProspectQuery, Dict[str, Any]]) -> MatchResponse:
        """Runs the matching pipeline and wraps the outcome in a success/error envelope."""
        start_time = time.time()
        try:
            query = request if isinstance(request, ProspectQuery) else ProspectQuery.model_validate(request)
        except ValidationError as e:
            return MatchResponse(success=False, error=format_validation_error(e))

        prospect_text = build_profile_text(query.name, query.bio)
        if not is_sufficient_profile(prospect_text):
            return MatchResponse(
                success=False,
                error="Insufficient prospect information. Please provide at least a name.",
            )

        try:
            embedding = self.embedding_client.embed(prospect_text)
        except EmbeddingError as e:
            logger.error(f"Embedding failed for prospect '{query.name}': {e}")
            return MatchResponse(success=False, error=f"Failed to generate embedding: {e}")

        try:
            cascade_result = self.cascade.collect(query, embedding)
        except SimilaritySearchError as e:
            return MatchResponse(success=False, error=f"Database search failed: {e}")

        pool = cascade_result.candidates
        warnings = list(cascade_result.warnings)

        filter_result: Optional[StageResult] = None
        if query.use_relevance_filter:
            filter_result = self.relevance_filter.filter(prospect_text, pool, prospect_id=query.prospect_id)
            if filter_result.degraded and filter_result.warning:
                warnings.append(filter_result.warning)

        matches = compose_matches(pool, query.requested_count, filter_result)

        result_fields: Dict[str, Any] = {
            "prospect_text": prospect_text,
            "matches": matches,
            "total_matches": len(matches),
            "threshold_used": query.similarity_threshold,
            "thresholds_queried": cascade_result.thresholds_queried,
            "relevance_filter_applied": filter_result is not None and not filter_result.degraded,
            "relevance_filter_degraded": filter_result is not None and filter_result.degraded,
            "warnings": warnings,
        }

        if matches and query.export_to_sheet and query.prospect_id:
            if self.export_service is None:
                result_fields["export_error"] = "Export is not configured"
            else:
                outcome = self.export_service.export_matches(query.prospect_id, matches)
                result_fields["exported_to_sheet"] = outcome.success
                result_fields["sheet_url"] = outcome.sheet_url
                result_fields["export_error"] = outcome.error

        duration_ms = (time.time() - start_time) * 1000
        self.metrics_service.record_event(
            event_name="match_completed",
            prospect_id=query.prospect_id,
            stage="compose",
            duration_ms=duration_ms,
            count=len(matches),
            metadata={"pool_size": len(pool), "degraded": bool(warnings)},
        )
        logger.info(f"Matched {len(matches)} podcasts for '{query.name}' from a pool of {len(pool)} in {duration_ms:.0f}ms.")
        return MatchResponse(success=True, data=MatchResult(**result_fields))

    def backfill_prospect(self, prospect_id: str, requested_count: int = BACKFILL_REQUESTED_COUNT) -> MatchResponse:
        """Matches a stored prospect from its saved name and bio and exports the result."""
        if self.prospect_service is None:
            return MatchResponse(success=False, error="Prospect store is not configured")

        try:
            profile = self.prospect_service.get_profile(prospect_id)
        except Exception as e:
            logger.exception(f"Failed to load prospect {prospect_id} for backfill: {e}")
            return MatchResponse(success=False, error=f"Failed to load prospect: {e}")
        if profile is None:
            return MatchResponse(success=False, error="Prospect not found")

        bio = (profile.get("bio") or "")[:BACKFILL_BIO_CHARS] or None
        logger.info(f"Backfilling podcasts for prospect {prospect_id} ({profile['name']}).")
        return self.match_podcasts({
            "name": profile["name"],
            "bio": bio,
            "requested_count": requested_count,
            "prospect_id": prospect_id,
            "export_to_sheet": True,
        })
