from deepview.client.cancellation import CancellationToken
from deepview.client.errors import ChatStreamError, ErrorCategory
from deepview.client.session import ChatStreamSession, StreamCallbacks, stream_chat
from deepview.client.state import ChatMessage, StreamSessionState

__all__ = [
    "CancellationToken",
    "ChatMessage",
    "ChatStreamError",
    "ChatStreamSession",
    "ErrorCategory",
    "StreamCallbacks",
    "StreamSessionState",
    "stream_chat",
]
