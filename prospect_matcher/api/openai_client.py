import logging
from typing import List, Optional

import requests

from .base_client import APIClient
from .exceptions import APIClientError, EmbeddingError
from ..config import Settings

logger = logging.getLogger(__name__)

OPENAI_BASE_URL = "https://api.openai.com/v1"
DEFAULT_EMBEDDING_MODEL = "text-embedding-3-small"
DEFAULT_EMBEDDING_DIMENSIONS = 1536


class OpenAIEmbeddingClient(APIClient):
    """Turns prospect profile text into a dense vector via the OpenAI embeddings API."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = DEFAULT_EMBEDDING_MODEL,
        dimensions: int = DEFAULT_EMBEDDING_DIMENSIONS,
        base_url: str = OPENAI_BASE_URL,
        session: Optional[requests.Session] = None,
    ):
        super().__init__(api_key=api_key, base_url=base_url, session=session)
        self.model = model
        self.dimensions = dimensions

    @classmethod
    def from_settings(cls, settings: Settings) -> "OpenAIEmbeddingClient":
        return cls(
            api_key=settings.OPENAI_API_KEY,
            model=settings.EMBEDDING_MODEL,
            dimensions=settings.EMBEDDING_DIMENSIONS,
            base_url=settings.OPENAI_BASE_URL,
        )

    def _set_auth_header(self):
        self.session.headers.update({
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        })

    def embed(self, text: str) -> List[float]:
        """Returns the embedding for `text`.

        Raises:
            EmbeddingError: missing key, request failure, or a malformed response.
        """
        if not self.api_key:
            raise EmbeddingError("OPENAI_API_KEY is not configured")

        payload = {"model": self.model, "input": text, "dimensions": self.dimensions}
        try:
            response = self._request("POST", "/embeddings", json=payload)
        except APIClientError as e:
            logger.error(f"Embedding request failed: {e}")
            raise EmbeddingError(str(e), status_code=e.status_code) from e

        data = response.get("data") if isinstance(response, dict) else None
        if not data or not isinstance(data, list) or not isinstance(data[0], dict) or "embedding" not in data[0]:
            raise EmbeddingError("Embedding response did not contain a vector")

        embedding = data[0]["embedding"]
        if not isinstance(embedding, list) or len(embedding) != self.dimensions:
            size = len(embedding) if isinstance(embedding, list) else "n/a"
            raise EmbeddingError(f"Expected a {self.dimensions}-dimension embedding, got {size}")

        try:
            vector = [float(v) for v in embedding]
        except (TypeError, ValueError) as e:
            raise EmbeddingError(f"Embedding contained a non-numeric value: {e}") from e

        logger.debug(f"Generated {len(vector)}-dimension embedding with {self.model}.")
        return vector
