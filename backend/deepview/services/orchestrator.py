"""
Video generation orchestrator with provider fallback.

State machine per request:
    Pending -> (per candidate) Submitting -> Processing -> Succeeded | FailedCandidate
    -> ... -> AllFailed -> FallbackDelivered

- Circuit breaker open: skip all candidates, deliver the storyboard fallback.
- Permanent submission failure (auth, quota, unprocessable, rate limit): trip
  the breaker and abandon every remaining candidate.
- Transient/unknown submission failure: try the next candidate.
- Accepted job: poll on a fixed interval up to a bounded attempt count,
  emitting a non-decreasing videoProgress estimate.
- Failure, cancellation or timeout of the accepted job: storyboard fallback.

Every frame uses the chat-completion delta envelope and the stream always
ends with [DONE], so the client cannot tell this from a native provider stream.
"""

import asyncio
import logging
import re
from typing import AsyncIterator, Awaitable, Callable, Dict, List, Optional, Protocol, Sequence

from deepview.config import settings
from deepview.models.generation import (
    GenerationJob,
    GenerationRequest,
    JobStatus,
    ProviderCandidate,
)
from deepview.providers.base import ProviderError, VideoProvider
from deepview.services.circuit_breaker import CircuitBreaker
from deepview.services.prompts import build_storyboard_prompt
from deepview.utils.message_helpers import get_attachment_urls, get_text_content, last_user_message
from deepview.utils.sse import (
    format_content_sse,
    format_done_sse,
    format_images_sse,
    format_progress_sse,
    format_videos_sse,
)

logger = logging.getLogger(__name__)

# Progress estimate while processing: 10 + 2 per attempt, capped until completion
PROGRESS_BASE = 10
PROGRESS_STEP = 2
PROGRESS_CEILING = 95
PROGRESS_COMPLETE = 99

RATIO_TAG_PATTERN = re.compile(r"\[ratio:(1280:720|720:1280|1920:1080|1080:1920|16:9|9:16)\]")
ANY_RATIO_TAG_PATTERN = re.compile(r"\[ratio:[^\]]+\]")
LANDSCAPE_RATIOS = {"16:9", "1280:720", "1920:1080"}
PORTRAIT_RATIOS = {"9:16", "720:1280", "1080:1920"}


class ImageGenerator(Protocol):
    async def generate_image(self, prompt: str) -> List[str]: ...


def estimate_progress(attempt: int) -> int:
    """Progress shown after a given number of polls, kept within 1..99."""
    value = min(PROGRESS_CEILING, PROGRESS_BASE + attempt * PROGRESS_STEP)
    return max(1, min(PROGRESS_COMPLETE, value))


def build_generation_request(messages: Sequence[dict], default_aspect_ratio: Optional[str] = None) -> GenerationRequest:
    """
    Build a generation request from the latest user message.

    A `[ratio:...]` tag in the text selects the orientation and is stripped
    from the prompt; the first attached image becomes the keyframe.
    """
    aspect_ratio = default_aspect_ratio or settings.default_aspect_ratio
    message = last_user_message(messages) or {}
    text = get_text_content(message)

    match = RATIO_TAG_PATTERN.search(text)
    if match:
        ratio = match.group(1)
        if ratio in LANDSCAPE_RATIOS:
            aspect_ratio = "16:9"
        elif ratio in PORTRAIT_RATIOS:
            aspect_ratio = "9:16"

    images = get_attachment_urls(message, "image_url")
    return GenerationRequest(
        prompt=ANY_RATIO_TAG_PATTERN.sub("", text, count=1).strip(),
        aspect_ratio=aspect_ratio,
        keyframe_image=images[0] if images else None,
    )


class GenerationOrchestrator:
    """
    Drives one video generation request and yields SSE frames.

    Candidates run one at a time (fail fast, then switch); polling is
    sequential. The circuit breaker is owned by the caller and shared across
    requests.
    """

    def __init__(
        self,
        video_providers: Dict[str, VideoProvider],
        candidates: List[ProviderCandidate],
        image_generator: ImageGenerator,
        breaker: CircuitBreaker,
        poll_interval: Optional[float] = None,
        max_poll_attempts: Optional[int] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        is_disconnected: Optional[Callable[[], Awaitable[bool]]] = None,
    ):
        self.video_providers = video_providers
        self.candidates = candidates
        self.image_generator = image_generator
        self.breaker = breaker
        self.poll_interval = settings.video_poll_interval if poll_interval is None else poll_interval
        self.max_poll_attempts = max_poll_attempts or settings.video_max_poll_attempts
        self._sleep = sleep
        self._is_disconnected = is_disconnected
        self._client_gone = False
        self.job: Optional[GenerationJob] = None

    async def run(self, request: GenerationRequest) -> AsyncIterator[str]:
        """Run the generation state machine. Always ends with [DONE] unless the client left."""
        self.job = job = GenerationJob(provider_candidates=list(self.candidates))

        if self.breaker.is_open():
            logger.info(
                f"Video breaker open ({self.breaker.seconds_remaining()}s left), using storyboard"
            )
            async for frame in self._fallback(request):
                yield frame
            return

        if not job.provider_candidates:
            logger.info("No video providers configured, using storyboard")
            async for frame in self._fallback(request):
                yield frame
            return

        yield format_content_sse("Starting video generation...")

        provider: Optional[VideoProvider] = None
        for candidate in job.provider_candidates:
            candidate_provider = self.video_providers.get(candidate.provider)
            if candidate_provider is None:
                logger.warning(f"No provider instance for candidate {candidate.label}")
                continue

            yield format_content_sse(f"\n\nTrying model: {candidate.model}...")
            try:
                job.remote_job_id = await candidate_provider.submit(candidate, request)
            except ProviderError as e:
                if e.is_permanent:
                    self.breaker.trip(str(e))
                    minutes = int(self.breaker.cooldown_seconds // 60)
                    yield format_content_sse(
                        "\n\n⚠️ Model unavailable or out of credit. "
                        f"Switching to storyboard mode for {minutes} minutes."
                    )
                    async for frame in self._fallback(request, announce=False):
                        yield frame
                    return
                logger.warning(f"Candidate {candidate.label} failed: {e}")
                yield format_content_sse("\n\n⚠️ Model unavailable, trying an alternative...")
                continue
            except Exception:
                logger.exception(f"Unexpected error submitting to {candidate.label}")
                continue

            job.active_provider_id = candidate.label
            provider = candidate_provider
            logger.info(f"Video job {job.remote_job_id} started on {candidate.label}")
            yield format_content_sse(
                f"\n\n✅ Model {candidate.model} started (ID: {str(job.remote_job_id)[:8]}...)"
            )
            break

        if provider is None:
            yield format_content_sse("\n\n❌ No video models are available.")
            async for frame in self._fallback(request):
                yield frame
            return

        try:
            async for frame in self._poll(provider, job):
                yield frame
        except Exception as e:
            logger.exception(f"Polling error for job {job.remote_job_id}")
            job.status = JobStatus.FAILED
            job.error = str(e)

        if self._client_gone:
            logger.info(f"Client disconnected, stopped polling job {job.remote_job_id}")
            return

        if job.status == JobStatus.SUCCEEDED and job.output_urls:
            yield format_videos_sse(job.output_urls)
            yield format_content_sse(f"\n\n✅ Video generated with {job.active_provider_id}.")
            yield format_done_sse()
            return

        if job.status == JobStatus.SUCCEEDED:
            yield format_content_sse("\n\n⚠️ Generation finished but no video URL was returned.")
        elif job.status == JobStatus.TIMED_OUT:
            yield format_content_sse("\n\n⏱️ Timed out waiting for the video.")
        else:
            yield format_content_sse(f"\n\n❌ Error: {job.error or 'Generation failed'}")

        async for frame in self._fallback(request):
            yield frame

    async def _poll(self, provider: VideoProvider, job: GenerationJob) -> AsyncIterator[str]:
        """Poll the accepted job until a terminal status or the attempt budget runs out."""
        for attempt in range(1, self.max_poll_attempts + 1):
            await self._sleep(self.poll_interval)
            if self._is_disconnected is not None and await self._is_disconnected():
                self._client_gone = True
                return

            job.attempts = attempt
            try:
                update = await provider.get_status(job.remote_job_id)
            except ProviderError as e:
                logger.error(f"Status check error for job {job.remote_job_id}: {e}")
                continue

            logger.debug(f"Job {job.remote_job_id} status: {update.status.value}")

            if update.status == JobStatus.PROCESSING:
                job.status = JobStatus.PROCESSING
                if job.advance_progress(estimate_progress(attempt)):
                    yield format_progress_sse(job.progress)

            elif update.status == JobStatus.SUCCEEDED:
                job.status = JobStatus.SUCCEEDED
                job.output_urls = update.output_urls
                if job.advance_progress(PROGRESS_COMPLETE):
                    yield format_progress_sse(job.progress)
                return

            elif update.status.is_terminal:
                job.status = update.status
                job.error = update.error
                logger.warning(f"Job {job.remote_job_id} ended with {update.status.value}: {update.error}")
                return

        job.status = JobStatus.TIMED_OUT
        logger.warning(f"Job {job.remote_job_id} timed out after {self.max_poll_attempts} attempts")

    async def _fallback(self, request: GenerationRequest, announce: bool = True) -> AsyncIterator[str]:
        """Deliver the storyboard fallback, then the terminator."""
        async for frame in self._storyboard(request, announce):
            yield frame
        yield format_done_sse()

    async def _storyboard(self, request: GenerationRequest, announce: bool = True) -> AsyncIterator[str]:
        if announce:
            yield format_content_sse(
                "\n\nNo video models are available right now. "
                "Generating a 6-panel storyboard instead..."
            )
        try:
            urls = await self.image_generator.generate_image(
                build_storyboard_prompt(request.prompt, request.aspect_ratio)
            )
        except ProviderError as e:
            logger.error(f"Storyboard fallback failed: {e}")
            yield format_content_sse("\n\n❌ Could not generate the storyboard. Please try again later.")
            return
        except Exception as e:
            logger.exception("Storyboard fallback error")
            yield format_content_sse(f"\n\nError generating storyboard: {e}")
            return

        if urls:
            yield format_images_sse(urls)
            yield format_content_sse("\n\n✅ Storyboard generated as an alternative.")
        else:
            yield format_content_sse("\n\n⚠️ The response did not include images. Please try again later.")
