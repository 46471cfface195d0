import json

import pytest
from unittest.mock import MagicMock
from sqlalchemy.exc import OperationalError

from prospect_matcher.api.exceptions import SimilaritySearchError
from prospect_matcher.services.similarity_search import NO_THRESHOLD, SimilaritySearchGateway, _vector_literal

ROWS = [
    {
        "id": "0b6b3a4e-aaaa-4bbb-8ccc-000000000001",
        "podscan_id": "pd_123",
        "podcast_name": "Growth Loops",
        "podcast_description": "B2B SaaS growth tactics",
        "podcast_categories": [{"category_id": "c1", "category_name": "Business"}],
        "audience_size": 12000,
        "similarity": 0.61,
    },
    {
        "id": "0b6b3a4e-aaaa-4bbb-8ccc-000000000002",
        "podscan_id": None,
        "podcast_name": "Founder Stories",
        "podcast_description": None,
        "podcast_categories": json.dumps([{"category_id": "c2", "category_name": "Entrepreneurship"}]),
        "audience_size": None,
        "similarity": 0.42,
    },
]


def make_gateway(rows=None, error=None):
    session = MagicMock()
    if error is not None:
        session.execute.side_effect = error
    else:
        session.execute.return_value.mappings.return_value.all.return_value = rows or []
    factory = MagicMock()
    factory.return_value.__enter__.return_value = session
    return SimilaritySearchGateway(factory), session


def test_vector_literal():
    assert _vector_literal([0.5, 1, -0.25]) == "[0.5,1.0,-0.25]"


def test_search_maps_rows_to_candidates():
    gateway, session = make_gateway(ROWS)

    results = gateway.search([0.1, 0.2], 0.2, 60)

    assert [r.name for r in results] == ["Growth Loops", "Founder Stories"]
    assert results[0].category_names == ["Business"]
    assert results[0].audience_size == 12000
    assert results[1].category_names == ["Entrepreneurship"]
    assert results[1].description is None
    statement, params = session.execute.call_args.args
    assert "search_similar_podcasts" in str(statement)
    assert params == {"query_embedding": "[0.1,0.2]", "match_threshold": 0.2, "match_count": 60}


def test_search_passes_sentinel_threshold():
    gateway, session = make_gateway([])
    assert gateway.search([0.1], NO_THRESHOLD, 100) == []
    assert session.execute.call_args.args[1]["match_threshold"] == -1.0


def test_database_error_wrapped():
    gateway, _ = make_gateway(error=OperationalError("SELECT", {}, Exception("connection refused")))
    with pytest.raises(SimilaritySearchError, match="connection refused"):
        gateway.search([0.1], 0.2, 60)


def test_malformed_rows_wrapped():
    gateway, _ = make_gateway([{"id": "x", "podcast_name": "No similarity column"}])
    with pytest.raises(SimilaritySearchError, match="Malformed search result"):
        gateway.search([0.1], 0.2, 60)


@pytest.mark.parametrize("name", ["search_similar_podcasts", "public.search_podcasts_v2"])
def test_accepts_plain_identifiers(name):
    gateway = SimilaritySearchGateway(MagicMock(), function_name=name)
    assert gateway.function_name == name


@pytest.mark.parametrize("name", ["search(); DROP TABLE podcasts;--", "", "1search"])
def test_rejects_unsafe_function_names(name):
    with pytest.raises(ValueError):
        SimilaritySearchGateway(MagicMock(), function_name=name)
