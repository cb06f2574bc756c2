"""
Client streaming session.

Posts a conversation to the chat endpoint, reads the SSE response and turns
it into UI callbacks:
    on_delta(text)          coalesced assistant text
    on_images_ready(urls)   image set replaced
    on_videos_ready(urls)   video set replaced
    on_progress(percent)    video generation progress
    on_done()               stream ended (exactly once)
    on_error(error)         ChatStreamError (exactly once, instead of on_done)

A session may be cancelled through a CancellationToken at any time; the
request is torn down and on_error receives a "stopped" error.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Callable, Iterable, List, Optional, Sequence

import httpx
from pydantic import ValidationError

from deepview.client.cancellation import CancellationToken
from deepview.client.errors import ChatStreamError, ErrorCategory
from deepview.client.frames import FrameParser
from deepview.client.persistence import PersistenceHook
from deepview.client.reconciler import DeltaBatcher, apply_delta, release_held_text
from deepview.client.state import ChatMessage, StreamSessionState
from deepview.config import settings
from deepview.utils.message_helpers import expand_message_parts
from deepview.utils.validation import describe_validation_error, validate_outgoing_message

logger = logging.getLogger(__name__)


def _ignore(*args: Any) -> None:
    return None


@dataclass
class StreamCallbacks:
    on_delta: Callable[[str], None] = _ignore
    on_images_ready: Callable[[List[str]], None] = _ignore
    on_videos_ready: Callable[[List[str]], None] = _ignore
    on_progress: Callable[[int], None] = _ignore
    on_done: Callable[[], None] = _ignore
    on_error: Callable[[ChatStreamError], None] = _ignore


class ChatStreamSession:
    def __init__(
        self,
        chat_url: Optional[str] = None,
        api_key: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
        flush_interval: Optional[float] = None,
        persistence: Optional[PersistenceHook] = None,
    ):
        self.chat_url = chat_url or settings.chat_url
        self.api_key = api_key
        self.flush_interval = settings.stream_flush_interval if flush_interval is None else flush_interval
        self.persistence = persistence
        self._owns_client = client is None
        # Video generation can go minutes without a frame, so reads never time out
        self._client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(float(settings.provider_timeout), read=None)
        )
        self.state = StreamSessionState()

    def _build_headers(self) -> dict:
        headers = {"Content-Type": "application/json", "Accept": "text/event-stream"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    def _build_body(self, messages: Sequence[ChatMessage], mode: str) -> dict:
        body = {
            "messages": [
                expand_message_parts(m.role, m.content, m.images, m.videos) for m in messages
            ],
            "mode": mode,
        }
        if self.persistence is not None:
            body["conversation_id"] = self.persistence.conversation_id
        return body

    async def send(
        self,
        messages: Sequence[ChatMessage],
        mode: str = "formal",
        callbacks: Optional[StreamCallbacks] = None,
        token: Optional[CancellationToken] = None,
    ) -> StreamSessionState:
        """
        Stream one assistant response for the given history.

        Returns the final session state. Exactly one of on_done / on_error is
        invoked per call.
        """
        callbacks = callbacks or StreamCallbacks()
        token = token or CancellationToken()
        self.state = StreamSessionState.start(messages)

        user_message = next((m for m in reversed(messages) if m.role == "user"), None)
        if user_message is None:
            callbacks.on_error(ChatStreamError("No user message to send", ErrorCategory.VALIDATION))
            return self.state
        try:
            validate_outgoing_message(user_message.content, user_message.images, user_message.videos)
        except ValidationError as e:
            callbacks.on_error(ChatStreamError(describe_validation_error(e), ErrorCategory.VALIDATION))
            return self.state

        if token.cancelled:
            callbacks.on_error(ChatStreamError.stopped())
            return self.state

        if self.persistence is not None:
            self.persistence.stream_started(user_message, mode)

        batcher = DeltaBatcher(
            callbacks.on_delta,
            self.flush_interval,
            schedule=asyncio.get_running_loop().call_later,
        )
        stream_task = asyncio.ensure_future(
            self._stream(self._build_body(messages, mode), batcher, callbacks)
        )
        cancel_task = asyncio.ensure_future(token.wait())

        try:
            done, _ = await asyncio.wait(
                {stream_task, cancel_task}, return_when=asyncio.FIRST_COMPLETED
            )
        except asyncio.CancelledError:
            # The caller cancelled send() itself
            cancel_task.cancel()
            await self._abort(stream_task)
            batcher.discard()
            callbacks.on_error(ChatStreamError.stopped())
            self._finish_persistence()
            raise
        finally:
            cancel_task.cancel()

        # A stop that lands in the same iteration as stream completion still wins
        if stream_task not in done or token.cancelled:
            logger.info(f"Stream cancelled: {token.reason or 'stopped by user'}")
            await self._abort(stream_task)
            self._release_held_text(batcher)
            batcher.flush()
            callbacks.on_error(ChatStreamError.stopped())
            self._finish_persistence()
            return self.state

        error = stream_task.result()
        self._release_held_text(batcher)
        batcher.flush()
        if error is not None:
            callbacks.on_error(error)
            return self.state

        self.state = self.state.finish()
        callbacks.on_done()
        self._finish_persistence()
        return self.state

    async def _stream(
        self,
        body: dict,
        batcher: DeltaBatcher,
        callbacks: StreamCallbacks,
    ) -> Optional[ChatStreamError]:
        """Run the request and feed every frame through the reconciler."""
        parser = FrameParser()
        try:
            async with self._client.stream(
                "POST", self.chat_url, json=body, headers=self._build_headers()
            ) as response:
                if not response.is_success:
                    await response.aread()
                    logger.warning(f"Chat endpoint returned {response.status_code}: {response.text[:200]}")
                    return ChatStreamError.from_status(response.status_code)

                async for chunk in response.aiter_bytes():
                    self._apply(parser.feed(chunk), batcher, callbacks)
                    if parser.done:
                        # Leaving the context closes the connection; trailing bytes are never read
                        break

                if not parser.done:
                    self._apply(parser.finish(), batcher, callbacks)
        except httpx.HTTPError as e:
            logger.error(f"Chat stream transport error: {e}")
            return ChatStreamError(str(e) or "Network error", ErrorCategory.TRANSPORT)
        return None

    def _apply(self, payloads: Iterable[Any], batcher: DeltaBatcher, callbacks: StreamCallbacks) -> None:
        for payload in payloads:
            result = apply_delta(self.state, payload)
            self.state = result.state
            if result.text:
                batcher.add(result.text)
            if result.force_flush:
                batcher.flush()
            if result.images is not None:
                callbacks.on_images_ready(list(result.images))
            if result.videos is not None:
                callbacks.on_videos_ready(list(result.videos))
            if result.progress is not None:
                callbacks.on_progress(result.progress)

    def _release_held_text(self, batcher: DeltaBatcher) -> None:
        result = release_held_text(self.state)
        self.state = result.state
        if result.text:
            batcher.add(result.text)

    async def _abort(self, task: asyncio.Future) -> None:
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    def _finish_persistence(self) -> None:
        if self.persistence is not None:
            self.persistence.stream_finished(self.state)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "ChatStreamSession":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()


async def stream_chat(
    messages: Sequence[ChatMessage],
    callbacks: StreamCallbacks,
    mode: str = "formal",
    token: Optional[CancellationToken] = None,
    **session_options: Any,
) -> StreamSessionState:
    """One-shot helper: open a session, stream one response, close it."""
    async with ChatStreamSession(**session_options) as session:
        return await session.send(messages, mode=mode, callbacks=callbacks, token=token)
