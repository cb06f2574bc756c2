"""
Luma Dream Machine video provider.
"""

import logging
from typing import List

import httpx

from deepview.config import settings
from deepview.models.generation import (
    GenerationRequest,
    InputShape,
    JobStatus,
    JobStatusUpdate,
    ProviderCandidate,
)
from deepview.providers.base import ProviderError, VideoProvider, nearest_duration

logger = logging.getLogger(__name__)

STATUS_MAP = {
    "queued": JobStatus.PENDING,
    "dreaming": JobStatus.PROCESSING,
    "completed": JobStatus.SUCCEEDED,
    "failed": JobStatus.FAILED,
}


def _luma_duration(seconds: int) -> str:
    allowed = [int(d.rstrip("s")) for d in settings.luma_durations]
    return f"{nearest_duration(seconds, allowed)}s"


class LumaProvider(VideoProvider):
    """Luma ray-2."""

    name = "luma"
    base_url = "https://api.lumalabs.ai/dream-machine/v1"

    def candidates(self) -> List[ProviderCandidate]:
        return [ProviderCandidate(provider=self.name, model="ray-2", input_shape=InputShape.ASPECT_RATIO)]

    async def submit(self, candidate: ProviderCandidate, request: GenerationRequest) -> str:
        body = {
            "prompt": request.prompt,
            "model": candidate.model,
            "resolution": "720p",
            "duration": _luma_duration(settings.video_duration_seconds),
            "aspect_ratio": request.aspect_ratio,
        }
        if request.keyframe_image:
            body["keyframes"] = {"frame0": {"type": "image", "url": request.keyframe_image}}

        try:
            response = await self._client.post("/generations", json=body)
        except httpx.HTTPError as e:
            raise ProviderError(self.name, str(e)) from e
        await self._raise_for_status(response)

        generation_id = self._parse_json(response).get("id")
        if not generation_id:
            raise ProviderError(self.name, "Generation created without an id")
        return str(generation_id)

    async def get_status(self, job_id: str) -> JobStatusUpdate:
        try:
            response = await self._client.get(f"/generations/{job_id}")
        except httpx.HTTPError as e:
            raise ProviderError(self.name, str(e)) from e
        await self._raise_for_status(response)

        generation = self._parse_json(response)
        status = STATUS_MAP.get(generation.get("state"), JobStatus.PENDING)
        video = (generation.get("assets") or {}).get("video")
        return JobStatusUpdate(
            status=status,
            output_urls=[video] if status == JobStatus.SUCCEEDED and video else [],
            error=generation.get("failure_reason"),
        )
