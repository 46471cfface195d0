import logging
from typing import Dict, Iterable, List, Optional, Sequence

from .metrics_service import MetricsService
from .similarity_search import NO_THRESHOLD, SimilaritySearchGateway
from ..api.exceptions import SimilaritySearchError
from ..models.matching import CandidatePodcast, CascadeResult, ProspectQuery

logger = logging.getLogger(__name__)

# Hard floor on result size when the podcast universe allows it
MIN_RESULTS = 15
# Filtering is lossy, so the first search asks for this many times the target
OVERSAMPLE_FACTOR = 4
WIDENING_CAP = 100


def target_count(requested_count: int) -> int:
    return max(requested_count, MIN_RESULTS)


def initial_cap(query: ProspectQuery) -> int:
    target = target_count(query.requested_count)
    return target * OVERSAMPLE_FACTOR if query.use_relevance_filter else target


def fallback_floor(use_relevance_filter: bool) -> int:
    return MIN_RESULTS * OVERSAMPLE_FACTOR if use_relevance_filter else MIN_RESULTS * 2


def merge_candidates(pool: Dict[str, CandidatePodcast], records: Iterable[CandidatePodcast]) -> Dict[str, CandidatePodcast]:
    """Returns a new pool with `records` appended; ids already present keep their first entry."""
    merged = dict(pool)
    for record in records:
        if record.id not in merged:
            merged[record.id] = record
    return merged


class RetrievalCascade:
    """Runs the similarity searches that build the candidate pool for one prospect.

    1. A search at the caller's threshold, oversampled when the relevance
       filter will run. Its failure is fatal.
    2. A no-threshold backfill when the pool is under the fallback floor.
    3. A no-threshold widening search whenever the relevance filter will run.

    Failures of 2 and 3 are recorded as warnings and the pool built so far is kept.
    """

    def __init__(self, search_gateway: SimilaritySearchGateway, metrics_service: Optional[MetricsService] = None):
        self.search_gateway = search_gateway
        self.metrics_service = metrics_service or MetricsService()

    def _search(self, embedding: Sequence[float], threshold: float, cap: int, purpose: str, prospect_id: Optional[str]) -> List[CandidatePodcast]:
        try:
            results = self.search_gateway.search(embedding, threshold, cap)
        except SimilaritySearchError:
            self.metrics_service.record_event(
                event_name="similarity_search",
                prospect_id=prospect_id,
                stage="cascade",
                metadata={"purpose": purpose, "threshold": threshold, "cap": cap, "failed": True},
            )
            raise
        self.metrics_service.record_event(
            event_name="similarity_search",
            prospect_id=prospect_id,
            stage="cascade",
            count=len(results),
            metadata={"purpose": purpose, "threshold": threshold, "cap": cap, "failed": False},
        )
        return results

    def collect(self, query: ProspectQuery, embedding: Sequence[float]) -> CascadeResult:
        """Builds the deduplicated candidate pool.

        Raises:
            SimilaritySearchError: only when the first search fails.
        """
        prospect_id = query.prospect_id
        thresholds: List[float] = []
        warnings: List[str] = []

        cap = initial_cap(query)
        thresholds.append(query.similarity_threshold)
        first = self._search(embedding, query.similarity_threshold, cap, "primary", prospect_id)
        pool = merge_candidates({}, first)
        logger.info(f"Primary search (threshold={query.similarity_threshold}, cap={cap}) gave {len(pool)} unique podcasts.")

        floor = fallback_floor(query.use_relevance_filter)
        if len(pool) < floor:
            pool = self._widen(embedding, pool, "backfill", thresholds, warnings, prospect_id)

        if query.use_relevance_filter:
            pool = self._widen(embedding, pool, "relevance_widening", thresholds, warnings, prospect_id)

        return CascadeResult(pool=pool, thresholds_queried=thresholds, warnings=warnings)

    def _widen(
        self,
        embedding: Sequence[float],
        pool: Dict[str, CandidatePodcast],
        purpose: str,
        thresholds: List[float],
        warnings: List[str],
        prospect_id: Optional[str],
    ) -> Dict[str, CandidatePodcast]:
        thresholds.append(NO_THRESHOLD)
        try:
            extra = self._search(embedding, NO_THRESHOLD, WIDENING_CAP, purpose, prospect_id)
        except SimilaritySearchError as e:
            warning = f"{purpose} search failed: {e}"
            logger.warning(f"{warning}. Continuing with {len(pool)} podcasts.")
            warnings.append(warning)
            return pool

        merged = merge_candidates(pool, extra)
        logger.info(f"{purpose} search added {len(merged) - len(pool)} new podcasts (pool now {len(merged)}).")
        return merged
