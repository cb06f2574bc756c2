import orjson

SSE_DONE_FRAME = "data: [DONE]\n\n"


def format_delta_sse(delta: dict) -> str:
    """Format a chat-completion delta as an SSE data frame"""
    payload = {"choices": [{"delta": delta}]}
    return f"data: {orjson.dumps(payload).decode()}\n\n"


def format_content_sse(content: str) -> str:
    return format_delta_sse({"content": content})


def format_images_sse(urls: list[str]) -> str:
    return format_delta_sse({"images": urls})


def format_videos_sse(urls: list[str]) -> str:
    return format_delta_sse({"videos": urls})


def format_progress_sse(progress: int) -> str:
    return format_delta_sse({"videoProgress": progress})


def format_done_sse() -> str:
    """Format the stream terminator"""
    return SSE_DONE_FRAME
