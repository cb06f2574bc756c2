from deepview.providers.base import BaseProvider, ProviderError, VideoProvider
from deepview.providers.registry import provider_registry

__all__ = ["BaseProvider", "ProviderError", "VideoProvider", "provider_registry"]
