import logging
import re
from typing import Callable, List, Sequence

from pydantic import ValidationError
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..api.exceptions import SimilaritySearchError
from ..models.matching import CandidatePodcast

logger = logging.getLogger(__name__)

# Reserved threshold: no similarity cut-off, rows still ranked by similarity
NO_THRESHOLD = -1.0

_IDENTIFIER_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*(\.[A-Za-z_][A-Za-z0-9_]*)?$")


def _vector_literal(vector: Sequence[float]) -> str:
    """Formats an embedding the way pgvector parses it: '[0.1,0.2,...]'."""
    return "[" + ",".join(repr(float(v)) for v in vector) + "]"


class SimilaritySearchGateway:
    """Nearest-neighbour podcast lookup backed by a pgvector SQL function.

    The function is expected to return rows ordered by descending similarity
    with the columns id, podscan_id, podcast_name, podcast_description,
    podcast_categories, audience_size and similarity.
    """

    def __init__(self, session_factory: Callable[[], Session], function_name: str = "search_similar_podcasts"):
        if not _IDENTIFIER_RE.match(function_name):
            raise ValueError(f"Invalid similarity search function name: {function_name!r}")
        self.session_factory = session_factory
        self.function_name = function_name
        self._statement = text(
            f"SELECT * FROM {function_name}("
            "CAST(:query_embedding AS vector), :match_threshold, :match_count)"
        )

    def search(self, query_vector: Sequence[float], threshold: float, cap: int) -> List[CandidatePodcast]:
        """Returns up to `cap` podcasts with similarity >= `threshold`, best first.

        Raises:
            SimilaritySearchError: the query failed or returned rows that do not fit CandidatePodcast.
        """
        params = {
            "query_embedding": _vector_literal(query_vector),
            "match_threshold": threshold,
            "match_count": cap,
        }
        logger.debug(f"Running {self.function_name} with threshold={threshold}, cap={cap}")
        try:
            with self.session_factory() as db:
                rows = db.execute(self._statement, params).mappings().all()
        except SQLAlchemyError as e:
            logger.error(f"Similarity search failed (threshold={threshold}, cap={cap}): {e}")
            raise SimilaritySearchError(str(e)) from e

        try:
            candidates = [CandidatePodcast.model_validate(dict(row)) for row in rows]
        except ValidationError as e:
            logger.error(f"Similarity search returned malformed rows: {e}")
            raise SimilaritySearchError(f"Malformed search result: {e}") from e

        logger.info(f"Similarity search (threshold={threshold}, cap={cap}) returned {len(candidates)} podcasts.")
        return candidates
