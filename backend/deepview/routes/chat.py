"""
Chat route.

Every request is classified from its latest user message:
- video generation: served by the generation orchestrator (provider fallback,
  polling, storyboard fallback), re-encoded as chat-completion deltas;
- image generation: gateway image model with image+text modalities;
- multimodal analysis: gateway analysis model;
- plain chat: gateway chat model.

Gateway streams are relayed as decoded bytes (any upstream content-encoding
removed); the client sees one wire format for every path.
"""

import logging
from typing import List

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse, StreamingResponse
from starlette.background import BackgroundTask

from deepview.config import settings
from deepview.models.request import ChatRequest
from deepview.providers.base import ProviderError
from deepview.providers.gateway import IMAGE_MODALITIES
from deepview.providers.registry import provider_registry
from deepview.services.classifier import Intent, RequestClassifier
from deepview.services.orchestrator import GenerationOrchestrator, build_generation_request
from deepview.services.prompts import get_system_prompt
from deepview.utils.exceptions import raise_bad_request, raise_internal_error
from deepview.utils.message_helpers import last_user_message

logger = logging.getLogger(__name__)

router = APIRouter()

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",  # Disable nginx buffering
}

# Gateway statuses passed through to the client as-is
PASSTHROUGH_STATUSES = {
    429: "Rate limit exceeded. Please try again later.",
    402: "Payment required. Please add credits to your workspace.",
}

classifier = RequestClassifier()


def _serialize_messages(request: ChatRequest) -> List[dict]:
    """Convert request messages to plain dicts (content parts included)."""
    messages = []
    for m in request.messages:
        if isinstance(m.content, list):
            content = [item.model_dump() for item in m.content]
        else:
            content = m.content
        messages.append({"role": m.role, "content": content})
    return messages


async def _tracked(stream):
    """Count the stream as active for graceful shutdown."""
    provider_registry.stream_started()
    try:
        async for chunk in stream:
            yield chunk
    finally:
        provider_registry.stream_ended()


@router.post("/chat")
async def chat(request: ChatRequest, http_request: Request):
    """
    POST /api/chat - streaming chat completion

    Returns an SSE stream of `data: {"choices":[{"delta":{...}}]}` frames
    terminated by `data: [DONE]`. Deltas carry `content`, `images`, `videos`
    or `videoProgress`.

    Errors before streaming starts:
    - 429 / 402 from the gateway: same status, {"error": message}
    - missing gateway key or other gateway failure: 500
    """
    gateway = provider_registry.gateway
    if gateway is None:
        raise_internal_error("AI gateway is not configured")

    messages = _serialize_messages(request)
    if last_user_message(messages) is None:
        raise_bad_request("No user message found")

    intent = classifier.classify(messages)
    logger.info(
        f"Chat request: intent={intent.value}, mode={request.mode}, messages={len(messages)}"
        + (f", conversation={request.conversation_id}" if request.conversation_id else "")
    )

    if intent == Intent.VIDEO_GENERATION:
        orchestrator = GenerationOrchestrator(
            video_providers=provider_registry.get_video_providers(),
            candidates=provider_registry.get_video_candidates(),
            image_generator=gateway,
            breaker=provider_registry.video_breaker,
            is_disconnected=http_request.is_disconnected,
        )
        return StreamingResponse(
            _tracked(orchestrator.run(build_generation_request(messages))),
            media_type="text/event-stream",
            headers=SSE_HEADERS,
        )

    modalities = None
    if intent == Intent.IMAGE_GENERATION:
        model = settings.image_model
        modalities = IMAGE_MODALITIES
    elif intent == Intent.MULTIMODAL_ANALYSIS:
        model = settings.analysis_model
    else:
        model = settings.chat_model

    try:
        upstream = await gateway.open_chat_stream(
            messages,
            model=model,
            system_prompt=get_system_prompt(request.mode),
            modalities=modalities,
        )
    except ProviderError as e:
        if e.status_code in PASSTHROUGH_STATUSES:
            return JSONResponse(
                status_code=e.status_code,
                content={"error": PASSTHROUGH_STATUSES[e.status_code]},
            )
        raise_internal_error("AI gateway error")

    return StreamingResponse(
        _tracked(upstream.aiter_bytes()),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
        background=BackgroundTask(upstream.aclose),
    )
