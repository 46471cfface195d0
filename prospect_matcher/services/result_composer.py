import logging
from typing import List, Optional, Sequence

from .retrieval_cascade import target_count
from ..models.matching import CandidatePodcast, StageResult

logger = logging.getLogger(__name__)


def compose_matches(
    pool: Sequence[CandidatePodcast],
    requested_count: int,
    filter_result: Optional[StageResult] = None,
) -> List[CandidatePodcast]:
    """Reconciles the relevance-filtered subset with the target size.

    Args:
        pool: The deduplicated candidate pool, in search order.
        requested_count: Caller's requested count; the target never drops below the minimum floor.
        filter_result: Output of the relevance filter, or None when filtering was not requested.

    Returns:
        AI-approved podcasts first (already ranked), padded with the best
        remaining podcasts by similarity, unannotated, up to the target. When
        filtering was skipped or degraded, the pool truncated to the target.
    """
    target = target_count(requested_count)

    if filter_result is None or filter_result.degraded:
        return list(pool[:target])

    approved = filter_result.candidates
    if len(approved) >= target:
        return list(approved[:target])

    approved_ids = {c.id for c in approved}
    remaining = sorted(
        (c for c in pool if c.id not in approved_ids),
        key=lambda c: c.similarity,
        reverse=True,
    )
    filler = remaining[: target - len(approved)]
    if filler:
        logger.info(f"Padding {len(approved)} AI-approved podcasts with {len(filler)} similarity matches (target {target}).")
    return list(approved) + filler
