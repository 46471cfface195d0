import abc
import requests
import logging
from typing import Dict, Any, Optional

from .exceptions import (
    AuthenticationError, RateLimitError, APIRequestError, APIParsingError
)

logger = logging.getLogger(__name__)

class APIClient(abc.ABC):
    """Abstract base class for JSON HTTP API clients."""

    DEFAULT_TIMEOUT = 30 # Default request timeout in seconds

    def __init__(self, api_key: Optional[str] = None, base_url: str = "", session: Optional[requests.Session] = None):
        self.api_key = api_key
        self.base_url = base_url
        self.session = session or requests.Session()
        if self.api_key:
            self._set_auth_header()

    @abc.abstractmethod
    def _set_auth_header(self):
        """Sets the necessary authentication headers for the specific API."""
        pass

    def _request(self, method: str, endpoint: str, params: Optional[Dict] = None, json: Optional[Dict] = None) -> Dict[str, Any]:
        """Makes a single HTTP request and maps failures to APIClientError subclasses."""
        url = self.base_url.rstrip('/') + '/' + endpoint.lstrip('/')
        try:
            logger.debug(f"Making {method} request to {url} with params: {params}")
            response = self.session.request(
                method=method,
                url=url,
                params=params,
                json=json,
                timeout=self.DEFAULT_TIMEOUT
            )
        except requests.exceptions.RequestException as e:
            # Timeouts, ConnectionError, etc.
            logger.error(f"Request failed for {url}: {e}")
            raise APIRequestError(f"Request failed for {url}: {e}") from e

        # Handle specific HTTP errors
        if response.status_code == 401:
            raise AuthenticationError(f"Authentication failed for {url}", status_code=401)
        if response.status_code == 429:
            retry_after = _parse_retry_after(response.headers.get("Retry-After"))
            raise RateLimitError(f"Rate limit exceeded for {url}", status_code=429, retry_after=retry_after)
        if 400 <= response.status_code < 500:
            raise APIRequestError(f"Client error {response.status_code} for {url}: {response.text}", status_code=response.status_code)
        if response.status_code >= 500:
            raise APIRequestError(f"Server error {response.status_code} for {url}", status_code=response.status_code)

        try:
            json_response = response.json()
            logger.debug(f"Request to {url} successful.")
            return json_response
        except ValueError:
            logger.error(f"Failed to parse JSON response from {url}. Response text: {response.text[:500]}...")
            raise APIParsingError(f"Invalid JSON received from {url}")


def _parse_retry_after(value: Optional[str]) -> Optional[int]:
    """Seconds from a Retry-After header; None for HTTP-date or garbage values."""
    try:
        return int(value) if value is not None else None
    except (TypeError, ValueError):
        return None
