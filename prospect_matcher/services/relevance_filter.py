import logging
from typing import Dict, List, Optional, Sequence

from .gemini_service import GeminiService
from .metrics_service import MetricsService
from .relevance_parser import parse_relevance_response
from ..models.llm_outputs import RelevanceEvaluation
from ..models.matching import CandidatePodcast, RelevanceVerdict, StageResult

logger = logging.getLogger(__name__)

MIN_RELEVANCE_SCORE = 5
DESCRIPTION_PREVIEW_CHARS = 300

SYSTEM_INSTRUCTION = (
    "You are a podcast matching expert. Respond with ONLY the JSON array, no other text."
)

PROMPT_TEMPLATE = """You are reviewing podcast recommendations for a prospective podcast guest. Remove the podcasts that do not fit and explain why each remaining podcast is a good fit.

PROSPECT PROFILE:
{profile_text}

PODCAST CANDIDATES:
{candidates}

Score every podcast for relevance on a 0-10 scale:
- 8-10: Highly relevant, an excellent match for this prospect
- 6-7: Relevant, a good potential fit
- 5: Moderately relevant, still worth including
- 0-4: Not relevant, leave it out

Return ONLY a JSON array with one object per podcast scoring 5 or higher (no other text):
[
  {{
    "index": 0,
    "relevance_score": 8,
    "reason": "One sentence on why this podcast fits the prospect"
  }}
]

Be reasonably selective: keep podcasts that are clearly or moderately relevant to the prospect and drop only the ones that are unrelated or generic."""


def summarize_candidate(index: int, candidate: CandidatePodcast) -> str:
    description = (candidate.description or "")[:DESCRIPTION_PREVIEW_CHARS] or "No description"
    categories = ", ".join(candidate.category_names) or "Unknown"
    return f"{index}. {candidate.name}\n   Categories: {categories}\n   Description: {description}"


def build_relevance_prompt(profile_text: str, pool: Sequence[CandidatePodcast]) -> str:
    candidates = "\n\n".join(summarize_candidate(i, c) for i, c in enumerate(pool))
    return PROMPT_TEMPLATE.format(profile_text=profile_text, candidates=candidates)


def apply_evaluations(pool: Sequence[CandidatePodcast], evaluations: List[RelevanceEvaluation]) -> List[CandidatePodcast]:
    """Annotates the pool members the LLM approved and ranks them.

    Indices refer to `pool` as sent in the prompt. Out-of-range indices,
    scores below the cut-off and repeated indices are ignored. Result is
    sorted by relevance score, then similarity, both descending.
    """
    approved: Dict[int, CandidatePodcast] = {}
    for evaluation in evaluations:
        if evaluation.relevance_score < MIN_RELEVANCE_SCORE:
            continue
        if evaluation.index >= len(pool) or evaluation.index in approved:
            continue
        verdict = RelevanceVerdict(relevance_score=evaluation.relevance_score, relevance_reason=evaluation.reason)
        approved[evaluation.index] = pool[evaluation.index].with_verdict(verdict)

    return sorted(approved.values(), key=lambda c: (-c.relevance_score, -c.similarity))


class RelevanceFilter:
    """LLM-based reranking of a candidate pool.

    Never raises: on any failure the unfiltered pool comes back with
    `degraded=True` so callers fall back to similarity ranking.
    """

    def __init__(self, llm_service: GeminiService, metrics_service: Optional[MetricsService] = None):
        self.llm_service = llm_service
        self.metrics_service = metrics_service or MetricsService()

    def filter(self, profile_text: str, pool: Sequence[CandidatePodcast], prospect_id: Optional[str] = None) -> StageResult:
        if not pool:
            return StageResult(candidates=[])

        try:
            prompt = build_relevance_prompt(profile_text, pool)
            raw_text = self.llm_service.complete(prompt, system_instruction=SYSTEM_INSTRUCTION)
            evaluations = parse_relevance_response(raw_text)
            approved = apply_evaluations(pool, evaluations)
        except Exception as e:
            warning = f"Relevance filter failed, using similarity ranking: {e}"
            logger.warning(warning)
            self.metrics_service.record_event(
                event_name="relevance_filter",
                prospect_id=prospect_id,
                stage="relevance_filter",
                count=len(pool),
                metadata={"degraded": True, "error": str(e)[:200]},
            )
            return StageResult(candidates=list(pool), degraded=True, warning=warning)

        logger.info(f"Relevance filter approved {len(approved)} of {len(pool)} podcasts.")
        self.metrics_service.record_event(
            event_name="relevance_filter",
            prospect_id=prospect_id,
            stage="relevance_filter",
            count=len(approved),
            metadata={"degraded": False, "pool_size": len(pool)},
        )
        return StageResult(candidates=approved)
