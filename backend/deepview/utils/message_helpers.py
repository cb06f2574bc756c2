"""Message format utilities for multi-modal (image/video) chat messages."""

from typing import Any, Optional, Sequence


def get_text_content(message: dict[str, Any]) -> str:
    """
    Extract the text of a message.

    Args:
        message: Message dict with 'content' field (string or parts array)

    Returns:
        Text content; text parts of a multimodal message are joined with newlines

    Examples:
        >>> get_text_content({"role": "user", "content": "Hi"})
        "Hi"
        >>> get_text_content({"role": "user", "content": [{"type": "text", "text": "Hi"}, {"type": "image_url", ...}]})
        "Hi"
    """
    content = message.get("content")

    if isinstance(content, str):
        return content

    if isinstance(content, list):
        text_parts = [
            item.get("text") or ""
            for item in content
            if isinstance(item, dict) and item.get("type") == "text"
        ]
        return "\n".join(text_parts).strip()

    return ""


def get_attachment_urls(message: dict[str, Any], part_type: str) -> list[str]:
    """
    Collect attachment URLs of one part type from a multimodal message.

    Args:
        message: Message dict with 'content' field
        part_type: "image_url" or "video_url"

    Returns:
        URLs in message order (empty for text-only messages)
    """
    content = message.get("content")
    if not isinstance(content, list):
        return []

    urls = []
    for item in content:
        if isinstance(item, dict) and item.get("type") == part_type:
            url = (item.get(part_type) or {}).get("url")
            if url:
                urls.append(url)
    return urls


def has_images(message: dict[str, Any]) -> bool:
    """Check if a message contains image_url parts."""
    return bool(get_attachment_urls(message, "image_url"))


def has_videos(message: dict[str, Any]) -> bool:
    """Check if a message contains video_url parts."""
    return bool(get_attachment_urls(message, "video_url"))


def last_user_message(messages: Sequence[dict[str, Any]]) -> Optional[dict[str, Any]]:
    """Return the most recent user message, or None."""
    for msg in reversed(messages):
        if msg.get("role") == "user":
            return msg
    return None


def expand_message_parts(
    role: str,
    content: str,
    images: Sequence[str] = (),
    videos: Sequence[str] = (),
) -> dict[str, Any]:
    """
    Build the wire format of a message.

    Messages without attachments keep plain string content. With attachments,
    content becomes one text part followed by one part per image and video:
    {
        "role": "user",
        "content": [
            {"type": "text", "text": "What's in this video?"},
            {"type": "image_url", "image_url": {"url": "data:image/png;base64,..."}},
            {"type": "video_url", "video_url": {"url": "https://..."}}
        ]
    }
    """
    if not images and not videos:
        return {"role": role, "content": content}

    parts: list[dict[str, Any]] = [{"type": "text", "text": content}]
    for url in images:
        parts.append({"type": "image_url", "image_url": {"url": url}})
    for url in videos:
        parts.append({"type": "video_url", "video_url": {"url": url}})

    return {"role": role, "content": parts}
