"""
Replicate video provider.

Predictions are created against the model endpoint (no pinned version, which
avoids 422s when a version is retired) and polled by prediction id.
"""

import logging
from typing import List

import httpx

from deepview.models.generation import (
    GenerationRequest,
    InputShape,
    JobStatus,
    JobStatusUpdate,
    ProviderCandidate,
)
from deepview.providers.base import ProviderError, VideoProvider
from deepview.utils.normalize import normalize_media_urls

logger = logging.getLogger(__name__)

# Replicate prediction states -> JobStatus
STATUS_MAP = {
    "starting": JobStatus.PROCESSING,
    "processing": JobStatus.PROCESSING,
    "succeeded": JobStatus.SUCCEEDED,
    "failed": JobStatus.FAILED,
    "canceled": JobStatus.CANCELED,
}

# (width, height) for models that take pixel dimensions
DIMENSIONS = {"16:9": (512, 320), "9:16": (320, 512)}


class ReplicateProvider(VideoProvider):
    """Replicate hosted video models."""

    name = "replicate"
    base_url = "https://api.replicate.com/v1"

    def candidates(self) -> List[ProviderCandidate]:
        return [
            ProviderCandidate(provider=self.name, model="minimax/video-01", input_shape=InputShape.ASPECT_RATIO),
            ProviderCandidate(provider=self.name, model="lucataco/animate-diff", input_shape=InputShape.DIMENSIONS),
        ]

    def _build_input(self, candidate: ProviderCandidate, request: GenerationRequest) -> dict:
        model_input: dict = {"prompt": request.prompt}
        if candidate.input_shape == InputShape.DIMENSIONS:
            width, height = DIMENSIONS.get(request.aspect_ratio, DIMENSIONS["16:9"])
            model_input["width"] = width
            model_input["height"] = height
        else:
            model_input["aspect_ratio"] = request.aspect_ratio
        if request.keyframe_image:
            model_input["image"] = request.keyframe_image
        return model_input

    async def submit(self, candidate: ProviderCandidate, request: GenerationRequest) -> str:
        payload = {"input": self._build_input(candidate, request)}
        try:
            response = await self._client.post(f"/models/{candidate.model}/predictions", json=payload)
        except httpx.HTTPError as e:
            raise ProviderError(self.name, str(e)) from e
        await self._raise_for_status(response)

        prediction = self._parse_json(response)
        prediction_id = prediction.get("id")
        if not prediction_id:
            raise ProviderError(self.name, "Prediction created without an id")
        return str(prediction_id)

    async def get_status(self, job_id: str) -> JobStatusUpdate:
        try:
            response = await self._client.get(f"/predictions/{job_id}")
        except httpx.HTTPError as e:
            raise ProviderError(self.name, str(e)) from e
        await self._raise_for_status(response)

        prediction = self._parse_json(response)
        status = STATUS_MAP.get(prediction.get("status"), JobStatus.PENDING)
        return JobStatusUpdate(
            status=status,
            output_urls=normalize_media_urls(prediction.get("output"), "video_url")
            if status == JobStatus.SUCCEEDED
            else [],
            error=prediction.get("error"),
        )
