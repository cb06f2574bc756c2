import asyncio
import logging
from typing import Dict, List, Optional, Type

from deepview.config import settings
from deepview.models.generation import ProviderCandidate
from deepview.providers.base import VideoProvider
from deepview.providers.gateway import GatewayProvider
from deepview.providers.luma import LumaProvider
from deepview.providers.replicate import ReplicateProvider
from deepview.providers.runway import RunwayProvider
from deepview.services.circuit_breaker import CircuitBreaker

logger = logging.getLogger(__name__)


# Video providers in fallback priority order, keyed by the settings field holding their key
VIDEO_PROVIDER_CLASSES: Dict[str, Type[VideoProvider]] = {
    "replicate_api_key": ReplicateProvider,
    "runway_api_key": RunwayProvider,
    "luma_api_key": LumaProvider,
}


class ProviderRegistry:
    """Central registry for upstream providers - loads from settings"""

    # Maximum time to wait for active streams during cleanup (seconds)
    CLEANUP_TIMEOUT = 10.0

    def __init__(self):
        self.gateway: Optional[GatewayProvider] = None
        self._video_providers: Dict[str, VideoProvider] = {}
        self._active_streams: int = 0
        self._lock = asyncio.Lock()
        # Process-wide; passed by reference into each orchestrator
        self.video_breaker = CircuitBreaker(settings.video_cooldown_seconds, name="video")

    def stream_started(self) -> None:
        """Call when a response stream starts."""
        self._active_streams += 1

    def stream_ended(self) -> None:
        """Call when a response stream ends."""
        self._active_streams = max(0, self._active_streams - 1)

    async def initialize(self):
        """Initialize all providers that have an API key configured"""
        async with self._lock:
            if settings.gateway_api_key:
                self.gateway = GatewayProvider(settings.gateway_api_key)

            for key_field, provider_class in VIDEO_PROVIDER_CLASSES.items():
                api_key = getattr(settings, key_field)
                if not api_key:
                    continue
                try:
                    provider = provider_class(api_key)
                    self._video_providers[provider.name] = provider
                except Exception as e:
                    logger.error(f"Error initializing provider '{provider_class.name}': {e}")

        logger.info(
            f"Providers ready: gateway={'yes' if self.gateway else 'no'}, "
            f"video={self.get_provider_names()}"
        )

    def get_video_providers(self) -> Dict[str, VideoProvider]:
        return dict(self._video_providers)

    def get_video_candidates(self) -> List[ProviderCandidate]:
        """All candidate models across configured video providers, in priority order"""
        candidates: List[ProviderCandidate] = []
        for provider in self._video_providers.values():
            if provider.is_configured():
                candidates.extend(provider.candidates())
        return candidates

    def get_provider_names(self) -> List[str]:
        """Return names of all configured video providers"""
        return list(self._video_providers.keys())

    async def cleanup(self):
        """Cleanup all providers, waiting for active streams to complete."""
        # Wait for active streams to complete (with timeout)
        wait_time = 0.0
        while self._active_streams > 0 and wait_time < self.CLEANUP_TIMEOUT:
            logger.debug(f"Waiting for {self._active_streams} active streams to complete...")
            await asyncio.sleep(0.1)
            wait_time += 0.1

        if self._active_streams > 0:
            logger.warning(
                f"Cleanup timeout: {self._active_streams} streams still active after "
                f"{self.CLEANUP_TIMEOUT}s. Proceeding with cleanup."
            )

        providers = list(self._video_providers.values())
        if self.gateway:
            providers.append(self.gateway)
        for provider in providers:
            try:
                await provider.cleanup()
            except Exception as e:
                logger.warning(f"Error cleaning up provider {provider.name}: {e}")
        self._video_providers.clear()
        self.gateway = None


# Singleton instance
provider_registry = ProviderRegistry()
