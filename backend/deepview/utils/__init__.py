from deepview.utils.sse import format_delta_sse, format_done_sse
from deepview.utils.normalize import normalize_media_urls

__all__ = ["format_delta_sse", "format_done_sse", "normalize_media_urls"]
