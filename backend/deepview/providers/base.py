import logging
from abc import ABC, abstractmethod
from typing import List, Optional, Sequence

import httpx
import orjson

from deepview.config import settings
from deepview.models.generation import (
    GenerationRequest,
    JobStatusUpdate,
    ProviderCandidate,
)

logger = logging.getLogger(__name__)

# Upstream statuses that will keep failing for a while: auth, payment/quota,
# unprocessable input, rate limit
PERMANENT_FAILURE_STATUSES = frozenset({401, 402, 403, 422, 429})


class ProviderError(Exception):
    """An upstream provider rejected or failed a request"""

    def __init__(self, provider: str, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.provider = provider
        self.message = message
        self.status_code = status_code

    @property
    def is_permanent(self) -> bool:
        return self.status_code in PERMANENT_FAILURE_STATUSES

    def __str__(self) -> str:
        if self.status_code is not None:
            return f"{self.provider} error {self.status_code}: {self.message}"
        return f"{self.provider} error: {self.message}"


class BaseProvider(ABC):
    """Abstract base class for upstream AI HTTP APIs"""

    name: str  # Provider identifier: "gateway", "replicate", "runway", "luma"
    base_url: str = ""

    def __init__(
        self,
        api_key: Optional[str],
        base_url: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key
        self.base_url = (base_url or self.base_url).rstrip("/")
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            headers=self._build_headers(),
            timeout=self.timeout,
            transport=transport,
        )

    @property
    def timeout(self) -> float:
        """Get the configured provider timeout in seconds."""
        return float(settings.provider_timeout)

    def _build_headers(self) -> dict:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    async def cleanup(self):
        """Cleanup HTTP client resources."""
        if self._client:
            await self._client.aclose()
            self._client = None

    def is_configured(self) -> bool:
        """Check if provider has valid API key"""
        return bool(self.api_key)

    async def _raise_for_status(self, response: httpx.Response) -> None:
        """Raise ProviderError with the upstream error message for non-2xx responses."""
        if response.is_success:
            return
        error_body = await response.aread()
        try:
            error_json = orjson.loads(error_body)
            error = error_json.get("error") if isinstance(error_json, dict) else None
            if isinstance(error, dict):
                error_msg = error.get("message") or str(error)
            elif error:
                error_msg = str(error)
            else:
                error_msg = error_body.decode("utf-8", errors="replace")
        except orjson.JSONDecodeError:
            error_msg = error_body.decode("utf-8", errors="replace")
        logger.error(
            f"{self.name} API error: status={response.status_code}, error={error_msg[:500]}"
        )
        raise ProviderError(self.name, error_msg, response.status_code)

    def _parse_json(self, response: httpx.Response) -> dict:
        """Decode a JSON object body. Raises ProviderError for anything else."""
        try:
            data = orjson.loads(response.content)
        except orjson.JSONDecodeError as e:
            logger.error(f"{self.name} returned invalid JSON: {e}")
            raise ProviderError(self.name, f"Invalid JSON response: {e}") from e
        if not isinstance(data, dict):
            raise ProviderError(self.name, f"Unexpected response type: {type(data).__name__}")
        return data


class VideoProvider(BaseProvider):
    """Asynchronous job-based video generation API.

    Subclasses declare their candidate models and map their job states onto
    JobStatus.
    """

    @abstractmethod
    def candidates(self) -> List[ProviderCandidate]:
        """Models this provider offers, in preference order"""

    @abstractmethod
    async def submit(self, candidate: ProviderCandidate, request: GenerationRequest) -> str:
        """Create a remote job and return its id. Raises ProviderError."""

    @abstractmethod
    async def get_status(self, job_id: str) -> JobStatusUpdate:
        """Fetch the current state of a remote job. Raises ProviderError."""


def nearest_duration(seconds: int, allowed: Sequence[int]) -> int:
    """Pick the allowed duration closest to the requested one (shorter wins ties)."""
    if not allowed:
        return seconds
    return min(sorted(allowed), key=lambda d: abs(d - seconds))
