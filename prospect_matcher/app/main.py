import logging
from functools import lru_cache
from typing import Any, Dict, Optional

from fastapi import Body, Depends, FastAPI, HTTPException

from ..api.openai_client import OpenAIEmbeddingClient
from ..config import get_settings
from ..models.matching import MatchResponse
from ..models.prospect import EnableDashboardRequest, EnableDashboardResponse, ProspectResponse
from ..persistence.postgresql import get_session_factory
from ..services.export_service import ExportService
from ..services.gemini_service import GeminiService
from ..services.matching_service import PodcastMatchingService
from ..services.metrics_service import MetricsService
from ..services.prospect_service import ProspectService
from ..services.relevance_filter import RelevanceFilter
from ..services.retrieval_cascade import RetrievalCascade
from ..services.similarity_search import SimilaritySearchGateway

# Configure logging
logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)

# --- FastAPI App Initialization --- #
app = FastAPI(
    title="Prospect Podcast Matcher API",
    description="Matches prospects to podcasts with vector search and LLM relevance filtering, and manages prospect dashboards.",
    version="0.1.0"
)

# --- Dependency providers --- #

@lru_cache()
def get_metrics_service() -> MetricsService:
    return MetricsService()


def get_prospect_service() -> ProspectService:
    settings = get_settings()
    return ProspectService(get_session_factory(), app_url=settings.APP_URL)


@lru_cache()
def get_embedding_client() -> OpenAIEmbeddingClient:
    """One embedding client (and its HTTP session) per process."""
    return OpenAIEmbeddingClient.from_settings(get_settings())


@lru_cache()
def get_gemini_service() -> GeminiService:
    return GeminiService.from_settings(get_settings())


def get_matching_service() -> PodcastMatchingService:
    settings = get_settings()
    session_factory = get_session_factory()
    metrics_service = get_metrics_service()
    return PodcastMatchingService(
        embedding_client=get_embedding_client(),
        cascade=RetrievalCascade(
            SimilaritySearchGateway(session_factory, settings.SIMILARITY_SEARCH_FUNCTION),
            metrics_service=metrics_service,
        ),
        relevance_filter=RelevanceFilter(get_gemini_service(), metrics_service=metrics_service),
        export_service=ExportService(session_factory, metrics_service=metrics_service),
        prospect_service=ProspectService(session_factory, app_url=settings.APP_URL),
        metrics_service=metrics_service,
    )

# --- API Endpoints --- #

@app.get("/", tags=["Status"])
def read_root():
    """Root endpoint for basic API status check."""
    return {"message": "Prospect Podcast Matcher API is running."}


@app.post("/match-podcasts", response_model=MatchResponse, tags=["Matching"])
def match_podcasts(
    payload: Dict[str, Any] = Body(..., description="ProspectQuery fields plus optional prospect_id and export_to_sheet."),
    service: PodcastMatchingService = Depends(get_matching_service),
):
    """Ranked podcast matches for a prospect. Failures come back in the envelope, not as HTTP errors."""
    response = service.match_podcasts(payload)
    if not response.success:
        logger.warning(f"Match request failed: {response.error}")
    return response


@app.post("/prospects", response_model=ProspectResponse, tags=["Prospects"])
def create_prospect(
    payload: Dict[str, Any] = Body(...),
    service: ProspectService = Depends(get_prospect_service),
):
    return service.create_prospect(payload)


@app.post("/prospects/{prospect_id}/enable", response_model=EnableDashboardResponse, tags=["Prospects"])
def enable_prospect_dashboard(
    prospect_id: str,
    request: Optional[EnableDashboardRequest] = None,
    service: ProspectService = Depends(get_prospect_service),
):
    response = service.enable_dashboard(prospect_id, tagline=request.tagline if request else None)
    if not response.success and response.error == "Prospect not found":
        raise HTTPException(status_code=404, detail=f"Prospect '{prospect_id}' not found.")
    return response


@app.post("/prospects/{prospect_id}/backfill", response_model=MatchResponse, tags=["Prospects", "Matching"])
def backfill_prospect_podcasts(
    prospect_id: str,
    service: PodcastMatchingService = Depends(get_matching_service),
):
    """Matches a stored prospect and exports the podcasts to their linked sheet."""
    response = service.backfill_prospect(prospect_id)
    if not response.success and response.error == "Prospect not found":
        raise HTTPException(status_code=404, detail=f"Prospect '{prospect_id}' not found.")
    return response


@app.on_event("shutdown")
def shutdown_event():
    """Close the shared embedding HTTP session if one was opened."""
    if get_embedding_client.cache_info().currsize:
        logger.info("Closing embedding client session.")
        get_embedding_client().session.close()
        get_embedding_client.cache_clear()
