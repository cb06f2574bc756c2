"""
Delta reconciler.

Applies one decoded chat-completion payload to the running session state:
    {"choices":[{"delta":{"content": "..."}}]}        append text
    {"choices":[{"delta":{"images": [...]}}]}         replace image set
    {"choices":[{"delta":{"videos": [...]}}]}         replace video set
    {"choices":[{"delta":{"videoProgress": 42}}]}     UI progress only
The non-streamed shape (choices[0].message) is accepted for content, images
and videos; when both are present the delta wins.

apply_delta is pure: it returns a new state plus what changed, and the caller
decides which callbacks to fire.
"""

import logging
import re
import time
from dataclasses import replace
from typing import Any, Callable, List, NamedTuple, Optional, Tuple

from deepview.client.state import ChatMessage, StreamSessionState
from deepview.utils.normalize import normalize_media_urls

logger = logging.getLogger(__name__)

# Inline media placeholders a model may print; structured payloads are the source of truth
PLACEHOLDER_PATTERN = re.compile(
    r"<video>.*?</video>|</?(?:image|video)\s*/?>|\[(?:image|video)\]",
    re.IGNORECASE | re.DOTALL,
)
VIDEO_BLOCK_OPEN = "<video>"
VIDEO_BLOCK_CLOSE = "</video>"
MAX_HELD_TAG_CHARS = 16
MAX_HELD_BLOCK_CHARS = 4096


class ReconcileResult(NamedTuple):
    state: StreamSessionState
    text: Optional[str] = None  # text appended by this payload
    images: Optional[Tuple[str, ...]] = None  # new image set, if replaced
    videos: Optional[Tuple[str, ...]] = None  # new video set, if replaced
    progress: Optional[int] = None  # new video progress, if reported

    @property
    def force_flush(self) -> bool:
        """Media must reach the UI immediately, bypassing text coalescing."""
        return self.images is not None or self.videos is not None


def sanitize_text(text: str) -> str:
    return PLACEHOLDER_PATTERN.sub("", text)


def split_held_tail(text: str) -> Tuple[str, str]:
    """
    Split text into (ready, held).

    A placeholder may arrive across several deltas ("[ima" then "ge]"), so an
    unterminated `[` or `<` tail, or an open <video> block, is held back until
    a later delta closes it. Tails longer than any placeholder are released.
    """
    lowered = text.lower()
    block_start = lowered.rfind(VIDEO_BLOCK_OPEN)
    if block_start != -1 and VIDEO_BLOCK_CLOSE not in lowered[block_start:]:
        if len(text) - block_start <= MAX_HELD_BLOCK_CHARS:
            return text[:block_start], text[block_start:]
        return text, ""

    start = max(text.rfind("["), text.rfind("<"))
    if start == -1:
        return text, ""
    tail = text[start:]
    if "]" in tail or ">" in tail or len(tail) > MAX_HELD_TAG_CHARS:
        return text, ""
    return text[:start], tail


def _as_dict(value: Any) -> dict:
    return value if isinstance(value, dict) else {}


def _first_choice(payload: Any) -> dict:
    choices = _as_dict(payload).get("choices")
    if isinstance(choices, list) and choices:
        return _as_dict(choices[0])
    return {}


def _pick(delta: dict, message: dict, key: str) -> Any:
    value = delta.get(key)
    return value if value is not None else message.get(key)


def _upsert_assistant(state: StreamSessionState) -> StreamSessionState:
    """Write the running assistant entry: replace the last message if it is ours, else append."""
    entry = ChatMessage(
        role="assistant",
        content=state.content,
        images=state.images,
        videos=state.videos,
    )
    if state.assistant_message is not None:
        messages = state.messages[:-1] + (entry,)
    else:
        messages = state.messages + (entry,)
    return replace(state, messages=messages)


def apply_delta(state: StreamSessionState, payload: Any) -> ReconcileResult:
    """Apply one payload to the session state."""
    choice = _first_choice(payload)
    delta = _as_dict(choice.get("delta"))
    message = _as_dict(choice.get("message"))

    new_state = state
    appended: Optional[str] = None
    images: Optional[Tuple[str, ...]] = None
    videos: Optional[Tuple[str, ...]] = None
    progress: Optional[int] = None

    content = _pick(delta, message, "content")
    if isinstance(content, str) and content:
        ready, held = split_held_tail(new_state.held_text + content)
        cleaned = sanitize_text(ready)
        new_state = replace(new_state, held_text=held)
        if cleaned:
            appended = cleaned
            new_state = replace(new_state, content=new_state.content + cleaned)

    image_urls = normalize_media_urls(_pick(delta, message, "images"), "image_url")
    if image_urls:
        images = tuple(image_urls)
        new_state = replace(new_state, images=images)

    video_urls = normalize_media_urls(_pick(delta, message, "videos"), "video_url")
    if video_urls:
        videos = tuple(video_urls)
        new_state = replace(new_state, videos=videos)

    raw_progress = delta.get("videoProgress")
    if raw_progress is not None:
        try:
            progress = max(0, min(100, int(raw_progress)))
        except (TypeError, ValueError):
            logger.debug(f"Ignoring non-numeric videoProgress: {raw_progress!r}")
        else:
            new_state = replace(new_state, video_progress=progress, generating_video=True)

    if appended is not None or images is not None or videos is not None:
        new_state = _upsert_assistant(new_state)

    return ReconcileResult(new_state, appended, images, videos, progress)


def release_held_text(state: StreamSessionState) -> ReconcileResult:
    """Append any held-back tail at end of stream; nothing can close it anymore."""
    if not state.held_text:
        return ReconcileResult(state)
    cleaned = sanitize_text(state.held_text)
    new_state = replace(state, held_text="")
    if not cleaned:
        return ReconcileResult(new_state)
    new_state = _upsert_assistant(replace(new_state, content=new_state.content + cleaned))
    return ReconcileResult(new_state, cleaned)


class DeltaBatcher:
    """
    Coalesces text deltas so the UI is not re-rendered once per token.

    The first delta is emitted at once. Text arriving within the flush
    interval of the last emission is held and emitted by a trailing timer,
    so it never waits on the next delta; flush() emits immediately (media
    arrival, end of stream).
    """

    def __init__(
        self,
        emit: Callable[[str], None],
        interval: float,
        clock: Callable[[], float] = time.monotonic,
        schedule: Optional[Callable[[float, Callable[[], None]], Any]] = None,
    ):
        self._emit = emit
        self.interval = interval
        self._clock = clock
        # call_later-style scheduler; returns a handle with cancel()
        self._schedule = schedule
        self._pending: List[str] = []
        self._last_flush: Optional[float] = None
        self._timer: Any = None

    def add(self, text: str) -> None:
        self._pending.append(text)
        now = self._clock()
        if self._last_flush is None or now - self._last_flush >= self.interval:
            self.flush()
        elif self._timer is None and self._schedule is not None:
            delay = self.interval - (now - self._last_flush)
            self._timer = self._schedule(delay, self.flush)

    def flush(self) -> None:
        self._cancel_timer()
        if not self._pending:
            return
        text = "".join(self._pending)
        self._pending.clear()
        self._last_flush = self._clock()
        self._emit(text)

    def discard(self) -> None:
        self._cancel_timer()
        self._pending.clear()

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
