"""
LLM gateway provider (OpenAI-compatible chat completions).

Serves plain chat, multimodal analysis and image generation. Image generation
uses the same endpoint with `modalities: ["image", "text"]`; the generated
images come back under choices[0].delta.images (streaming) or
choices[0].message.images (non-streaming).
"""

import logging
from typing import List, Optional

import httpx
import orjson

from deepview.config import settings
from deepview.providers.base import BaseProvider, ProviderError
from deepview.utils.normalize import normalize_media_urls

logger = logging.getLogger(__name__)

IMAGE_MODALITIES = ["image", "text"]


class GatewayProvider(BaseProvider):
    """Managed LLM gateway."""

    name = "gateway"
    base_url = "https://ai.gateway.lovable.dev/v1"

    def __init__(
        self,
        api_key: Optional[str],
        base_url: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__(api_key, base_url or settings.gateway_base_url, transport)

    async def open_chat_stream(
        self,
        messages: List[dict],
        model: str,
        system_prompt: Optional[str] = None,
        modalities: Optional[List[str]] = None,
    ) -> httpx.Response:
        """
        Start a streaming chat completion.

        Returns the open response so the caller can relay its body; the caller
        must close it. Raises ProviderError on a non-2xx status.
        """
        formatted_messages = []
        if system_prompt:
            formatted_messages.append({"role": "system", "content": system_prompt})
        formatted_messages.extend(messages)

        payload = {
            "model": model,
            "messages": formatted_messages,
            "stream": True,
        }
        if modalities:
            payload["modalities"] = modalities

        request = self._client.build_request("POST", "/chat/completions", json=payload)
        response = await self._client.send(request, stream=True)
        try:
            await self._raise_for_status(response)
        except ProviderError:
            await response.aclose()
            raise
        return response

    async def generate_image(self, prompt: str) -> List[str]:
        """Generate images from a text prompt (non-streaming). Returns image URLs."""
        payload = {
            "model": settings.image_model,
            "messages": [{"role": "user", "content": prompt}],
            "modalities": IMAGE_MODALITIES,
        }
        try:
            response = await self._client.post("/chat/completions", json=payload)
        except httpx.HTTPError as e:
            raise ProviderError(self.name, str(e)) from e
        await self._raise_for_status(response)

        try:
            data = orjson.loads(response.content)
            message = data["choices"][0].get("message") or {}
        except (orjson.JSONDecodeError, KeyError, IndexError, TypeError) as e:
            raise ProviderError(self.name, f"Unexpected image response: {e}") from e

        return normalize_media_urls(message.get("images"), "image_url")
