from pydantic import BaseModel, Field, ConfigDict
from typing import List, Optional, Literal, Union


class MediaUrl(BaseModel):
    url: str


class TextContent(BaseModel):
    """Text content part of a multimodal message"""
    type: Literal["text"] = "text"
    text: str = ""


class ImageUrlContent(BaseModel):
    """Image attachment part (data URI or remote URL)"""
    type: Literal["image_url"] = "image_url"
    image_url: MediaUrl


class VideoUrlContent(BaseModel):
    """Video attachment part (data URI or remote URL)"""
    type: Literal["video_url"] = "video_url"
    video_url: MediaUrl


ContentPart = Union[TextContent, ImageUrlContent, VideoUrlContent]


class Message(BaseModel):
    """Message with either text-only (string) or multimodal (array) content"""
    role: str = Field(..., pattern="^(user|assistant)$")
    content: Union[str, List[ContentPart]]

    model_config = ConfigDict(
        json_schema_extra={
            "examples": [
                {
                    "role": "user",
                    "content": "Generate an image of a lighthouse at dusk"
                },
                {
                    "role": "user",
                    "content": [
                        {"type": "text", "text": "What happens in this clip?"},
                        {"type": "video_url", "video_url": {"url": "https://example.com/clip.mp4"}}
                    ]
                }
            ]
        }
    )


class ChatRequest(BaseModel):
    messages: List[Message] = Field(..., min_length=1)
    mode: Literal["formal", "developer"] = "formal"
    conversation_id: Optional[str] = None


class ConversationUpdate(BaseModel):
    """PATCH body for a conversation"""
    title: Optional[str] = None
    mode: Optional[Literal["formal", "developer"]] = None


class StoredMessage(BaseModel):
    """Message as persisted for a conversation"""
    role: str = Field(..., pattern="^(user|assistant)$")
    content: str = ""
    images: List[str] = Field(default_factory=list)
    videos: List[str] = Field(default_factory=list)
