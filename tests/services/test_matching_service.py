import json
import unittest
from unittest.mock import MagicMock

import requests

from prospect_matcher.api.exceptions import EmbeddingError, SimilaritySearchError
from prospect_matcher.api.openai_client import OpenAIEmbeddingClient
from prospect_matcher.models.matching import CandidatePodcast, ExportOutcome
from prospect_matcher.services.export_service import ExportService
from prospect_matcher.services.gemini_service import GeminiService
from prospect_matcher.services.matching_service import PodcastMatchingService
from prospect_matcher.services.metrics_service import MetricsService
from prospect_matcher.services.prospect_service import ProspectService
from prospect_matcher.services.relevance_filter import RelevanceFilter
from prospect_matcher.services.retrieval_cascade import RetrievalCascade
from prospect_matcher.services.similarity_search import NO_THRESHOLD, SimilaritySearchGateway

EMBEDDING = [0.01] * 8
PROSPECT_ID = "6f1c2b1e-1111-4c3a-9d55-3f2a7b1c0e42"


def podcasts(ids, start=0.9, step=0.01):
    return [
        CandidatePodcast(id=pid, name=f"Podcast {pid}", description="About business", similarity=round(start - i * step, 4))
        for i, pid in enumerate(ids)
    ]


class TestPodcastMatchingService(unittest.TestCase):
    """Pipeline tests with real cascade/filter/composer and mocked external collaborators."""

    def setUp(self):
        self.mock_embedding_client = MagicMock(spec=OpenAIEmbeddingClient)
        self.mock_embedding_client.embed.return_value = EMBEDDING
        self.mock_gateway = MagicMock(spec=SimilaritySearchGateway)
        self.mock_llm = MagicMock(spec=GeminiService)
        self.mock_export_service = MagicMock(spec=ExportService)
        self.mock_prospect_service = MagicMock(spec=ProspectService)
        self.metrics = MetricsService()

        self.service = PodcastMatchingService(
            embedding_client=self.mock_embedding_client,
            cascade=RetrievalCascade(self.mock_gateway, metrics_service=self.metrics),
            relevance_filter=RelevanceFilter(self.mock_llm, metrics_service=self.metrics),
            export_service=self.mock_export_service,
            prospect_service=self.mock_prospect_service,
            metrics_service=self.metrics,
        )

    def assert_no_external_calls(self):
        self.mock_embedding_client.embed.assert_not_called()
        self.mock_gateway.search.assert_not_called()
        self.mock_llm.complete.assert_not_called()

    # --- Validation --- #

    def test_zero_count_is_validation_error_without_network_calls(self):
        response = self.service.match_podcasts({"name": "Jane Doe", "requested_count": 0})
        self.assertFalse(response.success)
        self.assertEqual(response.error, "Validation error: Match count must be between 1 and 100")
        self.assert_no_external_calls()

    def test_missing_or_blank_name(self):
        for payload in ({}, {"name": "   "}, {"prospect_name": ""}):
            response = self.service.match_podcasts(payload)
            self.assertFalse(response.success)
            self.assertIn("Prospect name is required", response.error)
        self.assert_no_external_calls()

    def test_threshold_out_of_range(self):
        response = self.service.match_podcasts({"name": "Jane Doe", "similarity_threshold": 1.5})
        self.assertFalse(response.success)
        self.assertIn("Match threshold must be between 0 and 1", response.error)
        self.assert_no_external_calls()

    def test_legacy_field_names_accepted(self):
        self.mock_gateway.search.return_value = podcasts([f"p{i}" for i in range(20)])
        response = self.service.match_podcasts({
            "prospect_name": "Jane Doe",
            "prospect_bio": "SaaS growth marketer",
            "match_threshold": 0.35,
            "match_count": 20,
            "use_ai_filter": False,
        })
        self.assertTrue(response.success)
        self.assertEqual(response.data.threshold_used, 0.35)
        self.assertEqual(response.data.total_matches, 20)
        self.mock_llm.complete.assert_not_called()

    # --- Upstream-fatal errors --- #

    def test_embedding_failure_is_fatal(self):
        self.mock_embedding_client.embed.side_effect = EmbeddingError("invalid api key")
        response = self.service.match_podcasts({"name": "Jane Doe"})
        self.assertFalse(response.success)
        self.assertEqual(response.error, "Failed to generate embedding: invalid api key")
        self.mock_gateway.search.assert_not_called()

    def test_first_search_failure_is_fatal(self):
        self.mock_gateway.search.side_effect = SimilaritySearchError("function does not exist")
        response = self.service.match_podcasts({"name": "Jane Doe"})
        self.assertFalse(response.success)
        self.assertEqual(response.error, "Database search failed: function does not exist")
        self.mock_llm.complete.assert_not_called()

    # --- Full pipeline --- #

    def test_jane_doe_scenario(self):
        self.mock_gateway.search.side_effect = [
            podcasts([f"p{i}" for i in range(8)]),
            podcasts([f"p{i}" for i in range(30)], start=0.5),
            podcasts([f"p{i}" for i in range(30)], start=0.5),
        ]
        approved_indices = [20, 3, 11, 25, 7, 1]
        self.mock_llm.complete.return_value = json.dumps([
            {"index": idx, "relevance_score": 9 - n // 2, "reason": f"Reason {idx}"}
            for n, idx in enumerate(approved_indices)
        ] + [{"index": 0, "relevance_score": 3, "reason": "Weak."}])

        response = self.service.match_podcasts({
            "name": "Jane Doe", "bio": "SaaS growth marketer",
            "similarity_threshold": 0.2, "requested_count": 10, "use_relevance_filter": True,
        })

        self.assertTrue(response.success)
        data = response.data
        self.assertEqual(self.mock_gateway.search.call_args_list[0].args, (EMBEDDING, 0.2, 60))
        self.assertEqual(self.mock_gateway.search.call_count, 3)
        self.mock_embedding_client.embed.assert_called_once_with("Name: Jane Doe. Background: SaaS growth marketer")
        self.assertEqual(data.prospect_text, "Name: Jane Doe. Background: SaaS growth marketer")
        self.assertEqual(data.total_matches, 15)
        self.assertEqual(len(data.matches), 15)
        ai_part, filler = data.matches[:6], data.matches[6:]
        self.assertTrue(all(m.relevance_score is not None for m in ai_part))
        self.assertEqual([m.relevance_score for m in ai_part], sorted([m.relevance_score for m in ai_part], reverse=True))
        self.assertTrue(all(m.relevance_score is None for m in filler))
        self.assertEqual([m.id for m in filler], ["p0", "p2", "p4", "p5", "p6", "p8", "p9", "p10", "p12"])
        self.assertEqual(data.threshold_used, 0.2)
        self.assertEqual(data.thresholds_queried, [0.2, NO_THRESHOLD, NO_THRESHOLD])
        self.assertTrue(data.relevance_filter_applied)
        self.assertFalse(data.relevance_filter_degraded)
        self.assertFalse(data.exported_to_sheet)

    def test_filter_failure_degrades_to_similarity_ranking(self):
        pool = podcasts([f"p{i}" for i in range(70)], step=0.001)
        self.mock_gateway.search.side_effect = [pool, []]
        self.mock_llm.complete.return_value = "not json at all"

        response = self.service.match_podcasts({"name": "Jane Doe", "requested_count": 20})

        self.assertTrue(response.success)
        self.assertEqual([m.id for m in response.data.matches], [f"p{i}" for i in range(20)])
        self.assertTrue(response.data.relevance_filter_degraded)
        self.assertFalse(response.data.relevance_filter_applied)
        self.assertEqual(len(response.data.warnings), 1)

    def test_minimum_floor_guaranteed(self):
        self.mock_gateway.search.side_effect = [
            podcasts(["a", "b"]),
            podcasts([f"q{i}" for i in range(50)], start=0.3),
        ]
        response = self.service.match_podcasts({"name": "Jane Doe", "requested_count": 1, "use_relevance_filter": False})
        self.assertEqual(response.data.total_matches, 15)

    def test_no_matches_is_success(self):
        self.mock_gateway.search.return_value = []
        response = self.service.match_podcasts({"name": "Jane Doe", "prospect_id": PROSPECT_ID, "export_to_sheet": True})
        self.assertTrue(response.success)
        self.assertEqual(response.data.matches, [])
        self.assertEqual(response.data.total_matches, 0)
        self.mock_llm.complete.assert_not_called()
        self.mock_export_service.export_matches.assert_not_called()

    # --- Export --- #

    def test_export_when_requested(self):
        self.mock_gateway.search.return_value = podcasts([f"p{i}" for i in range(30)])
        self.mock_export_service.export_matches.return_value = ExportOutcome(
            success=True, sheet_url="https://docs.google.com/spreadsheets/d/abc", exported_count=15
        )

        response = self.service.match_podcasts({
            "name": "Jane Doe", "requested_count": 15, "use_relevance_filter": False,
            "prospect_id": PROSPECT_ID, "export_to_sheet": True,
        })

        self.assertTrue(response.data.exported_to_sheet)
        self.assertEqual(response.data.sheet_url, "https://docs.google.com/spreadsheets/d/abc")
        exported_id, exported_matches = self.mock_export_service.export_matches.call_args.args
        self.assertEqual(exported_id, PROSPECT_ID)
        self.assertEqual(exported_matches, response.data.matches)

    def test_export_failure_keeps_matches(self):
        self.mock_gateway.search.return_value = podcasts([f"p{i}" for i in range(30)])
        self.mock_export_service.export_matches.return_value = ExportOutcome(
            success=False, error="No Google Sheet linked to this prospect"
        )

        response = self.service.match_podcasts({
            "name": "Jane Doe", "use_relevance_filter": False, "requested_count": 15,
            "prospect_id": PROSPECT_ID, "export_to_sheet": True,
        })

        self.assertTrue(response.success)
        self.assertEqual(response.data.total_matches, 15)
        self.assertFalse(response.data.exported_to_sheet)
        self.assertEqual(response.data.export_error, "No Google Sheet linked to this prospect")

    def test_export_skipped_without_prospect_id(self):
        self.mock_gateway.search.return_value = podcasts([f"p{i}" for i in range(30)])
        self.service.match_podcasts({"name": "Jane Doe", "use_relevance_filter": False, "export_to_sheet": True})
        self.mock_export_service.export_matches.assert_not_called()

    # --- Backfill --- #

    def test_backfill_uses_stored_profile_and_exports(self):
        self.mock_prospect_service.get_profile.return_value = {"name": "Jane Doe", "bio": "b" * 800}
        self.mock_gateway.search.return_value = podcasts([f"p{i}" for i in range(30)])
        self.mock_llm.complete.return_value = "[]"
        self.mock_export_service.export_matches.return_value = ExportOutcome(success=True, sheet_url="https://sheet")

        response = self.service.backfill_prospect(PROSPECT_ID)

        self.assertTrue(response.success)
        embedded_text = self.mock_embedding_client.embed.call_args.args[0]
        self.assertEqual(embedded_text, "Name: Jane Doe. Background: " + "b" * 500)
        self.assertEqual(response.data.total_matches, 15)
        self.mock_export_service.export_matches.assert_called_once()

    def test_backfill_unknown_prospect(self):
        self.mock_prospect_service.get_profile.return_value = None
        response = self.service.backfill_prospect(PROSPECT_ID)
        self.assertFalse(response.success)
        self.assertEqual(response.error, "Prospect not found")
        self.assert_no_external_calls()

    def test_records_completion_metric(self):
        self.mock_gateway.search.return_value = podcasts(["a"])
        self.service.match_podcasts({"name": "Jane Doe", "use_relevance_filter": False})
        events = self.metrics.get_events("match_completed")
        self.assertEqual(len(events), 1)
        self.assertEqual(events[0].count, 1)

class TestEmbeddingFailuresStayInEnvelope(unittest.TestCase):
    """Upstream embedding responses that cannot be used come back as a failed envelope."""

    def setUp(self):
        self.session = MagicMock(spec=requests.Session)
        self.session.headers = {}
        self.mock_gateway = MagicMock(spec=SimilaritySearchGateway)
        self.service = PodcastMatchingService(
            embedding_client=OpenAIEmbeddingClient(api_key="sk-test", dimensions=3, session=self.session),
            cascade=RetrievalCascade(self.mock_gateway),
            relevance_filter=RelevanceFilter(MagicMock(spec=GeminiService)),
        )

    def respond(self, status_code=200, payload=None, headers=None):
        response = MagicMock()
        response.status_code = status_code
        response.headers = headers or {}
        response.text = ""
        response.json.return_value = payload
        self.session.request.return_value = response

    def assert_embedding_failure(self):
        response = self.service.match_podcasts({"name": "Jane Doe"})
        self.assertFalse(response.success)
        self.assertTrue(response.error.startswith("Failed to generate embedding: "))
        self.mock_gateway.search.assert_not_called()

    def test_rate_limit_with_http_date_retry_after(self):
        self.respond(status_code=429, headers={"Retry-After": "Wed, 21 Oct 2026 07:28:00 GMT"})
        self.assert_embedding_failure()

    def test_data_entry_not_an_object(self):
        self.respond(payload={"data": [None]})
        self.assert_embedding_failure()

    def test_vector_with_non_numeric_value(self):
        self.respond(payload={"data": [{"embedding": [0.1, None, 0.3]}]})
        self.assert_embedding_failure()



if __name__ == '__main__':
    unittest.main()
