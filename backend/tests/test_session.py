"""Tests for the client streaming session against a mocked chat endpoint."""

import asyncio

import httpx
import orjson
import pytest

from deepview.client.cancellation import CancellationToken
from deepview.client.errors import STOPPED_MESSAGE, ChatStreamError, ErrorCategory
from deepview.client.persistence import PersistenceHook
from deepview.client.session import ChatStreamSession, StreamCallbacks, stream_chat
from deepview.client.state import ChatMessage

CHAT_URL = "http://testserver/api/chat"


def _frame(**delta) -> bytes:
    return b"data: " + orjson.dumps({"choices": [{"delta": delta}]}) + b"\n\n"


DONE = b"data: [DONE]\n\n"


class Recorder:
    """Collects callback invocations in order."""

    def __init__(self, on_delta=None):
        self.events = []
        self._on_delta = on_delta

    def callbacks(self) -> StreamCallbacks:
        return StreamCallbacks(
            on_delta=self._delta,
            on_images_ready=lambda urls: self.events.append(("images", urls)),
            on_videos_ready=lambda urls: self.events.append(("videos", urls)),
            on_progress=lambda value: self.events.append(("progress", value)),
            on_done=lambda: self.events.append(("done", None)),
            on_error=lambda error: self.events.append(("error", error)),
        )

    def _delta(self, text):
        self.events.append(("delta", text))
        if self._on_delta:
            self._on_delta(text)

    def of(self, kind):
        return [value for event, value in self.events if event == kind]


def _handler(chunks, status_code=200, requests=None):
    def handler(request: httpx.Request) -> httpx.Response:
        if requests is not None:
            requests.append(request)

        async def body():
            for chunk in chunks:
                if isinstance(chunk, (int, float)):
                    await asyncio.sleep(chunk)
                else:
                    yield chunk

        return httpx.Response(status_code, content=body(), headers={"content-type": "text/event-stream"})

    return handler


def _send(handler, messages, flush_interval=0.0, token=None, recorder=None, persistence=None, mode="formal"):
    recorder = recorder or Recorder()

    async def run():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            session = ChatStreamSession(
                chat_url=CHAT_URL,
                client=client,
                flush_interval=flush_interval,
                persistence=persistence,
            )
            state = await session.send(messages, mode=mode, callbacks=recorder.callbacks(), token=token)
            if persistence is not None:
                await persistence.drain()
            return state

    return asyncio.run(run()), recorder


def test_plain_text_stream():
    handler = _handler([_frame(content="Hi"), _frame(content=" there"), DONE])
    state, recorder = _send(handler, [ChatMessage(role="user", content="Hello")])

    assert state.messages[-1] == ChatMessage(role="assistant", content="Hi there")
    assert state.done == True
    assert "".join(recorder.of("delta")) == "Hi there"
    assert len(recorder.of("done")) == 1
    assert recorder.of("error") == []


def test_done_followed_by_trailing_bytes_completes_once():
    handler = _handler([_frame(content="ok") + DONE + _frame(content="ignored"), _frame(content="more")])
    state, recorder = _send(handler, [ChatMessage(role="user", content="Hello")])

    assert state.content == "ok"
    assert len(recorder.of("done")) == 1
    assert recorder.of("delta") == ["ok"]


def test_stream_end_without_done_still_completes():
    handler = _handler([_frame(content="partial"), b'data: {"choices":[{"delta":{"content":"!"}}]}'])
    state, recorder = _send(handler, [ChatMessage(role="user", content="Hello")])

    assert state.content == "partial!"
    assert len(recorder.of("done")) == 1


def test_media_forces_pending_text_out_first():
    handler = _handler([
        _frame(content="A"),
        _frame(content="B"),
        _frame(images=[{"image_url": {"url": "https://img/1.png"}}]),
        _frame(videoProgress=40),
        _frame(videos=["https://vid/1.mp4"]),
        DONE,
    ])
    state, recorder = _send(handler, [ChatMessage(role="user", content="Draw")], flush_interval=10.0)

    assert recorder.events == [
        ("delta", "A"),
        ("delta", "B"),
        ("images", ["https://img/1.png"]),
        ("progress", 40),
        ("videos", ["https://vid/1.mp4"]),
        ("done", None),
    ]
    assert state.messages[-1].images == ("https://img/1.png",)
    assert state.messages[-1].videos == ("https://vid/1.mp4",)


@pytest.mark.parametrize(
    "status_code, category",
    [
        (429, ErrorCategory.RATE_LIMITED),
        (402, ErrorCategory.PAYMENT_REQUIRED),
        (500, ErrorCategory.TRANSPORT),
    ],
)
def test_error_status_maps_to_category(status_code, category):
    handler = _handler([b'{"error": "nope"}'], status_code=status_code)
    _, recorder = _send(handler, [ChatMessage(role="user", content="Hello")])

    errors = recorder.of("error")
    assert len(errors) == 1
    assert errors[0].category == category
    assert recorder.of("done") == []


def test_http_500_message_includes_status():
    handler = _handler([b"oops"], status_code=500)
    _, recorder = _send(handler, [ChatMessage(role="user", content="Hello")])
    assert "500" in recorder.of("error")[0].message


def test_network_failure_is_transport_error():
    def handler(request):
        raise httpx.ConnectError("connection refused")

    _, recorder = _send(handler, [ChatMessage(role="user", content="Hello")])
    errors = recorder.of("error")
    assert len(errors) == 1
    assert errors[0].category == ErrorCategory.TRANSPORT
    assert recorder.of("done") == []


def test_cancel_mid_stream_reports_stopped_once():
    token = CancellationToken()
    recorder = Recorder(on_delta=lambda text: token.cancel("user pressed stop"))
    handler = _handler([_frame(content="Hi"), 30, _frame(content=" late"), DONE])

    state, recorder = _send(handler, [ChatMessage(role="user", content="Hello")], token=token, recorder=recorder)

    errors = recorder.of("error")
    assert len(errors) == 1
    assert errors[0].message == STOPPED_MESSAGE
    assert errors[0].category == ErrorCategory.CANCELLED
    assert recorder.of("done") == []
    assert recorder.of("delta") == ["Hi"]
    assert state.content == "Hi"


def test_cancel_before_send_makes_no_request():
    requests = []
    token = CancellationToken()
    token.cancel()
    _, recorder = _send(_handler([DONE], requests=requests), [ChatMessage(role="user", content="Hello")], token=token)

    assert requests == []
    assert [e.category for e in recorder.of("error")] == [ErrorCategory.CANCELLED]


def test_caller_cancelling_send_reports_stopped():
    recorder = Recorder()
    started = []

    def handler(request):
        async def body():
            yield _frame(content="Hi")
            yield _frame(content=" pending")
            started.append(True)
            await asyncio.sleep(30)
            yield DONE

        return httpx.Response(200, content=body())

    async def run():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            session = ChatStreamSession(chat_url=CHAT_URL, client=client, flush_interval=10.0)
            task = asyncio.ensure_future(
                session.send([ChatMessage(role="user", content="Hello")], callbacks=recorder.callbacks())
            )
            while not started:
                await asyncio.sleep(0.01)
            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task

    asyncio.run(run())
    assert [e.category for e in recorder.of("error")] == [ErrorCategory.CANCELLED]
    assert recorder.of("done") == []
    # Coalesced text still waiting on the flush timer is dropped
    assert recorder.of("delta") == ["Hi"]


def test_stop_landing_with_stream_end_reports_stopped():
    token = CancellationToken()
    recorder = Recorder(on_delta=lambda text: token.cancel() if "last" in text else None)
    # The stop arrives while the final chunk, [DONE] included, is being applied
    handler = _handler([_frame(content="Hi"), _frame(content=" last") + DONE])

    _, recorder = _send(handler, [ChatMessage(role="user", content="Hello")], token=token, recorder=recorder)

    assert [e.category for e in recorder.of("error")] == [ErrorCategory.CANCELLED]
    assert recorder.of("done") == []
    assert recorder.of("delta") == ["Hi", " last"]


def test_coalesced_text_is_delivered_during_silence():
    handler = _handler([
        _frame(content="Starting"),
        _frame(content=" model started"),
        _frame(videoProgress=10),
        0.3,
        _frame(videoProgress=12),
        0.3,
        _frame(videoProgress=14),
        DONE,
    ])
    state, recorder = _send(handler, [ChatMessage(role="user", content="Make a video")], flush_interval=0.15)

    assert recorder.events == [
        ("delta", "Starting"),
        ("progress", 10),
        ("delta", " model started"),
        ("progress", 12),
        ("progress", 14),
        ("done", None),
    ]
    assert state.content == "Starting model started"


def test_placeholder_split_across_frames_never_reaches_ui():
    handler = _handler([
        _frame(content="Here it is [vid"),
        _frame(content="eo] enjoy"),
        _frame(content=" see [1, 2"),
        DONE,
    ])
    state, recorder = _send(handler, [ChatMessage(role="user", content="Make a video")])

    assert "".join(recorder.of("delta")) == "Here it is  enjoy see [1, 2"
    assert all("[vid" not in text for text in recorder.of("delta"))
    assert state.messages[-1].content == "Here it is  enjoy see [1, 2"
    assert len(recorder.of("done")) == 1


def test_invalid_message_rejected_before_network_call():
    requests = []
    handler = _handler([DONE], requests=requests)

    _, recorder = _send(handler, [ChatMessage(role="user", content="   ")])
    _, recorder_bad_url = _send(handler, [ChatMessage(role="user", content="look", images=("ftp://x.png",))])

    assert requests == []
    assert recorder.of("error")[0].category == ErrorCategory.VALIDATION
    assert "empty" in recorder.of("error")[0].message
    assert recorder_bad_url.of("error")[0].category == ErrorCategory.VALIDATION


def test_request_body_uses_content_parts_for_attachments():
    requests = []
    handler = _handler([DONE], requests=requests)
    messages = [
        ChatMessage(role="user", content="Hi"),
        ChatMessage(role="assistant", content="Hello!"),
        ChatMessage(role="user", content="What is this?", images=("data:image/png;base64,AAAA",)),
    ]
    _send(handler, messages, mode="developer")

    body = orjson.loads(requests[0].content)
    assert body["mode"] == "developer"
    assert body["messages"][0] == {"role": "user", "content": "Hi"}
    assert body["messages"][2]["content"] == [
        {"type": "text", "text": "What is this?"},
        {"type": "image_url", "image_url": {"url": "data:image/png;base64,AAAA"}},
    ]


class FakeStore:
    def __init__(self, fail=False):
        self.saved = []
        self.modes = []
        self.fail = fail

    async def save_message(self, conversation_id, message):
        if self.fail:
            raise RuntimeError("database is locked")
        self.saved.append((conversation_id, message))
        return len(self.saved)

    async def load_messages(self, conversation_id):
        return [m for cid, m in self.saved if cid == conversation_id]

    async def update_conversation_title(self, conversation_id, title):
        return True

    async def update_conversation_mode(self, conversation_id, mode):
        self.modes.append((conversation_id, mode))
        return True


def test_persistence_hook_saves_user_and_assistant_messages():
    store = FakeStore()
    hook = PersistenceHook(store, "conv-1")
    requests = []
    handler = _handler([_frame(content="Hi"), _frame(images=["https://img/1.png"]), DONE], requests=requests)

    _send(handler, [ChatMessage(role="user", content="Hello")], persistence=hook, mode="developer")

    assert [m for _, m in store.saved] == [
        ChatMessage(role="user", content="Hello"),
        ChatMessage(role="assistant", content="Hi", images=("https://img/1.png",)),
    ]
    assert store.modes == [("conv-1", "developer")]
    assert orjson.loads(requests[0].content)["conversation_id"] == "conv-1"


def test_persistence_failure_does_not_break_stream():
    hook = PersistenceHook(FakeStore(fail=True), "conv-1")
    handler = _handler([_frame(content="Hi"), DONE])

    state, recorder = _send(handler, [ChatMessage(role="user", content="Hello")], persistence=hook)

    assert state.content == "Hi"
    assert len(recorder.of("done")) == 1
    assert recorder.of("error") == []


def test_error_presentation():
    assert ChatStreamError.from_status(429).severity == "warning"
    assert ChatStreamError.from_status(429).recoverable == True
    assert ChatStreamError.stopped().severity == "info"
    assert ChatStreamError.from_status(503).recoverable == False


def test_stream_chat_helper(monkeypatch):
    handler = _handler([_frame(content="one-shot"), DONE])
    original = httpx.AsyncClient

    def client_factory(**kwargs):
        return original(transport=httpx.MockTransport(handler), **kwargs)

    monkeypatch.setattr(httpx, "AsyncClient", client_factory)
    recorder = Recorder()

    state = asyncio.run(
        stream_chat([ChatMessage(role="user", content="Hello")], recorder.callbacks(), chat_url=CHAT_URL)
    )

    assert state.content == "one-shot"
    assert len(recorder.of("done")) == 1
