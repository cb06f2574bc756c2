"""
Immutable stream session state.

A session starts from the request history and is advanced one payload at a
time by the reconciler; nothing mutates a state in place.
"""

from dataclasses import dataclass, replace
from typing import Optional, Tuple


@dataclass(frozen=True)
class ChatMessage:
    """One turn in a conversation"""

    role: str  # "user" | "assistant"
    content: str = ""
    images: Tuple[str, ...] = ()
    videos: Tuple[str, ...] = ()

    def to_dict(self) -> dict:
        return {
            "role": self.role,
            "content": self.content,
            "images": list(self.images),
            "videos": list(self.videos),
        }


@dataclass(frozen=True)
class StreamSessionState:
    """Running state of one streamed assistant response"""

    messages: Tuple[ChatMessage, ...] = ()
    content: str = ""
    images: Tuple[str, ...] = ()
    videos: Tuple[str, ...] = ()
    video_progress: Optional[int] = None
    generating_video: bool = False
    done: bool = False
    held_text: str = ""  # unterminated markup tail awaiting the next delta

    @classmethod
    def start(cls, history=()) -> "StreamSessionState":
        return cls(messages=tuple(history))

    @property
    def assistant_message(self) -> Optional[ChatMessage]:
        """The assistant entry under construction, if any"""
        if self.messages and self.messages[-1].role == "assistant":
            return self.messages[-1]
        return None

    def finish(self) -> "StreamSessionState":
        return replace(self, done=True, generating_video=False)
