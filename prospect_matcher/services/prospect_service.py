import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..models.prospect import (
    CreateProspectRequest,
    EnableDashboardResponse,
    ProspectResponse,
    ProspectSummary,
)
from ..persistence.postgresql import create_prospect, get_prospect, update_prospect
from ..utils.prospect_text import generate_slug, parse_sheet_reference
from ..utils.validation import format_validation_error

logger = logging.getLogger(__name__)


class ProspectService:
    """Create and enable prospect dashboards."""

    def __init__(self, session_factory: Callable[[], Session], app_url: str):
        self.session_factory = session_factory
        self.app_url = app_url.rstrip("/")

    def dashboard_url(self, slug: str) -> str:
        return f"{self.app_url}/prospect/{slug}"

    def create_prospect(self, payload: Dict[str, Any]) -> ProspectResponse:
        try:
            request = CreateProspectRequest.model_validate(payload)
        except ValidationError as e:
            return ProspectResponse(success=False, error=format_validation_error(e))

        spreadsheet_id, spreadsheet_url = parse_sheet_reference(request.google_sheet_url)
        try:
            with self.session_factory() as db:
                prospect = create_prospect(
                    db,
                    slug=generate_slug(),
                    prospect_name=request.prospect_name,
                    prospect_bio=request.bio or None,
                    prospect_image_url=request.profile_picture_url or None,
                    spreadsheet_id=spreadsheet_id,
                    spreadsheet_url=spreadsheet_url,
                    content_ready=True,
                )
                summary = ProspectSummary(
                    id=prospect.id,
                    name=prospect.prospect_name,
                    slug=prospect.slug,
                    dashboard_url=self.dashboard_url(prospect.slug),
                    spreadsheet_url=prospect.spreadsheet_url,
                )
        except SQLAlchemyError as e:
            logger.error(f"Failed to create prospect '{request.prospect_name}': {e}")
            return ProspectResponse(success=False, error=f"Failed to create prospect: {e}")

        return ProspectResponse(success=True, prospect=summary)

    def enable_dashboard(self, prospect_id: str, tagline: Optional[str] = None) -> EnableDashboardResponse:
        fields: Dict[str, Any] = {"content_ready": True}
        if tagline:
            fields["personalized_tagline"] = tagline
        try:
            with self.session_factory() as db:
                prospect = update_prospect(db, prospect_id, **fields)
                if prospect is None:
                    return EnableDashboardResponse(success=False, error="Prospect not found")
                slug = prospect.slug
        except SQLAlchemyError as e:
            logger.error(f"Failed to enable dashboard for prospect {prospect_id}: {e}")
            return EnableDashboardResponse(success=False, error=f"Failed to enable prospect dashboard: {e}")

        return EnableDashboardResponse(
            success=True,
            dashboard_url=self.dashboard_url(slug),
            enabled_at=datetime.now(timezone.utc).isoformat(),
        )

    def get_profile(self, prospect_id: str) -> Optional[Dict[str, Optional[str]]]:
        """Returns the stored name and bio for a prospect, or None if unknown."""
        with self.session_factory() as db:
            prospect = get_prospect(db, prospect_id)
            if prospect is None:
                return None
            return {"name": prospect.prospect_name, "bio": prospect.prospect_bio}
