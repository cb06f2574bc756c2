"""
Runway ML video provider.

Text-to-video uses gen3a; when a keyframe image is attached, image-to-video
with gen3a_turbo. Ratio and duration must be one of Runway's accepted values,
so both are normalized from configuration before submission.
"""

import logging
import random
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
from deepview.utils.normalize import normalize_media_urls

logger = logging.getLogger(__name__)

RUNWAY_API_VERSION = "2024-11-06"
IMAGE_TO_VIDEO_MODEL = "gen3a_turbo"

STATUS_MAP = {
    "PENDING": JobStatus.PENDING,
    "THROTTLED": JobStatus.PENDING,
    "RUNNING": JobStatus.PROCESSING,
    "SUCCEEDED": JobStatus.SUCCEEDED,
    "FAILED": JobStatus.FAILED,
    "CANCELLED": JobStatus.CANCELED,
}


class RunwayProvider(VideoProvider):
    """Runway ML gen3 models."""

    name = "runway"
    base_url = "https://api.dev.runwayml.com/v1"

    def _build_headers(self) -> dict:
        headers = super()._build_headers()
        headers["X-Runway-Version"] = RUNWAY_API_VERSION
        return headers

    def candidates(self) -> List[ProviderCandidate]:
        return [ProviderCandidate(provider=self.name, model="gen3a", input_shape=InputShape.RATIO_PIXELS)]

    def _ratio(self, aspect_ratio: str) -> str:
        ratios = settings.runway_ratios
        return ratios.get(aspect_ratio) or ratios.get(settings.default_aspect_ratio) or next(iter(ratios.values()))

    async def submit(self, candidate: ProviderCandidate, request: GenerationRequest) -> str:
        body = {
            "promptText": request.prompt,
            "model": candidate.model,
            "duration": nearest_duration(settings.video_duration_seconds, settings.runway_durations),
            "ratio": self._ratio(request.aspect_ratio),
            "seed": random.randint(0, 999999),
        }
        endpoint = "/text_to_video"
        if request.keyframe_image:
            endpoint = "/image_to_video"
            body["model"] = IMAGE_TO_VIDEO_MODEL
            body["promptImage"] = request.keyframe_image

        try:
            response = await self._client.post(endpoint, json=body)
        except httpx.HTTPError as e:
            raise ProviderError(self.name, str(e)) from e
        await self._raise_for_status(response)

        task_id = self._parse_json(response).get("id")
        if not task_id:
            raise ProviderError(self.name, "Task created without an id")
        return str(task_id)

    async def get_status(self, job_id: str) -> JobStatusUpdate:
        try:
            response = await self._client.get(f"/tasks/{job_id}")
        except httpx.HTTPError as e:
            raise ProviderError(self.name, str(e)) from e
        await self._raise_for_status(response)

        task = self._parse_json(response)
        status = STATUS_MAP.get(task.get("status"), JobStatus.PENDING)
        output = normalize_media_urls(task.get("output"), "video_url")
        return JobStatusUpdate(
            status=status,
            # First output is the rendered video
            output_urls=output[:1] if status == JobStatus.SUCCEEDED else [],
            error=task.get("failure"),
        )
