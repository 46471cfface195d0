import logging
from datetime import datetime, timezone
from typing import Callable, List, Optional

from sqlalchemy.orm import Session

from .metrics_service import MetricsService
from ..models.matching import CandidatePodcast, ExportOutcome
from ..persistence.postgresql import get_prospect, upsert_podcast_links

log = logging.getLogger(__name__)

class ExportService:
    """
    Writes a prospect's final matches to the link table behind their shared sheet.
    """

    def __init__(self, session_factory: Callable[[], Session], metrics_service: Optional[MetricsService] = None):
        self.session_factory = session_factory
        self.metrics_service = metrics_service or MetricsService()

    def export_matches(self, prospect_id: str, matches: List[CandidatePodcast]) -> ExportOutcome:
        """
        Upserts one link row per match for the prospect.

        Re-running the export for the same prospect and podcasts overwrites
        the stored score and timestamp instead of adding rows. Errors are
        reported in the outcome; nothing is raised.

        Args:
            prospect_id: The stored prospect dashboard id.
            matches: The final, ordered match list.

        Returns:
            An ExportOutcome with the sheet URL on success or an error message.
        """
        log.info(f"Exporting {len(matches)} matches for prospect {prospect_id}.")
        try:
            with self.session_factory() as db:
                prospect = get_prospect(db, prospect_id)
                if prospect is None:
                    return ExportOutcome(success=False, error="Prospect not found or no spreadsheet linked")
                if not prospect.spreadsheet_url:
                    return ExportOutcome(success=False, error="No Google Sheet linked to this prospect")

                matched_at = datetime.now(timezone.utc)
                links = [
                    {
                        "prospect_id": prospect_id,
                        "podcast_id": match.id,
                        "similarity_score": match.similarity,
                        "matched_at": matched_at,
                    }
                    for match in matches
                ]
                try:
                    written = upsert_podcast_links(db, links)
                except Exception as e:
                    log.error(f"Export for prospect {prospect_id} failed: {e}", exc_info=True)
                    return ExportOutcome(success=False, error=f"Failed to export: {e}")
                sheet_url = prospect.spreadsheet_url
        except Exception as e:
            log.error(f"Unexpected error exporting matches for prospect {prospect_id}: {e}", exc_info=True)
            return ExportOutcome(success=False, error=str(e) or "Unknown error during export")

        self.metrics_service.record_event(
            event_name="matches_exported",
            prospect_id=prospect_id,
            stage="export",
            count=written,
        )
        log.info(f"Exported {written} matches for prospect {prospect_id} to {sheet_url}.")
        return ExportOutcome(success=True, sheet_url=sheet_url, exported_count=written)
