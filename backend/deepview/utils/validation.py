"""
Outgoing message validation.

Rejects messages before any network call: empty or overlong text, too many
attachments, attachments that are neither data URIs nor http(s) URLs.
"""

from typing import List

from pydantic import BaseModel, Field, ValidationError, field_validator

from deepview.config import settings


def _is_media_uri(value: str) -> bool:
    return value.startswith(("data:", "http://", "https://"))


class MessageInput(BaseModel):
    """A user message as typed in the composer."""

    content: str = Field(..., max_length=settings.max_message_chars)
    images: List[str] = Field(default_factory=list, max_length=settings.max_images)
    videos: List[str] = Field(default_factory=list, max_length=settings.max_videos)

    @field_validator("content")
    @classmethod
    def content_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Message cannot be empty")
        return value

    @field_validator("images", "videos")
    @classmethod
    def attachments_are_uris(cls, value: List[str]) -> List[str]:
        for url in value:
            if not _is_media_uri(url):
                raise ValueError(f"Invalid attachment URL: {url[:40]}")
        return value


class ConversationTitle(BaseModel):
    title: str = Field(..., min_length=1, max_length=settings.max_title_chars)

    @field_validator("title", mode="before")
    @classmethod
    def strip_title(cls, value):
        return value.strip() if isinstance(value, str) else value


def describe_validation_error(error: ValidationError) -> str:
    """Turn a pydantic ValidationError into one user-facing sentence."""
    details = []
    for item in error.errors():
        field = ".".join(str(p) for p in item.get("loc", ()))
        message = item.get("msg", "invalid value")
        # pydantic prefixes custom validator messages
        message = message.removeprefix("Value error, ")
        details.append(f"{field}: {message}" if field else message)
    return "; ".join(details) or "Invalid message"


def validate_outgoing_message(content: str, images: List[str], videos: List[str]) -> MessageInput:
    """Validate a message. Raises pydantic.ValidationError on failure."""
    return MessageInput(content=content, images=list(images), videos=list(videos))
