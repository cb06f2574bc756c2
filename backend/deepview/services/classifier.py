"""
Request intent classifier.

Ordered rules over the latest user message (first match wins):
1. video attachment             -> multimodal analysis
2. creation verb + video noun   -> video generation
3. creation verb + image noun   -> image generation
4. image attachment             -> multimodal analysis
5. otherwise                    -> plain chat

Matching is case-insensitive substring search over configurable, bilingual
keyword lists. Known limitation: unrelated sentences that happen to contain
both a verb and a noun (e.g. "the picture I created") are classified as
generation requests.
"""

import logging
from enum import Enum
from typing import Any, List, Sequence

from pydantic import BaseModel

from deepview.config import settings
from deepview.utils.message_helpers import (
    get_text_content,
    has_images,
    has_videos,
    last_user_message,
)

logger = logging.getLogger(__name__)


class Intent(str, Enum):
    PLAIN_CHAT = "plain_chat"
    IMAGE_GENERATION = "image_generation"
    VIDEO_GENERATION = "video_generation"
    MULTIMODAL_ANALYSIS = "multimodal_analysis"


class IntentKeywords(BaseModel):
    """Keyword configuration for generation intent"""
    video_verbs: List[str]
    image_verbs: List[str]
    video_nouns: List[str]
    image_nouns: List[str]

    @classmethod
    def from_settings(cls) -> "IntentKeywords":
        return cls(
            video_verbs=settings.generation_verbs,
            image_verbs=settings.image_generation_verbs,
            video_nouns=settings.video_nouns,
            image_nouns=settings.image_nouns,
        )


def _contains_any(text: str, keywords: Sequence[str]) -> bool:
    return any(keyword.lower() in text for keyword in keywords)


class RequestClassifier:
    def __init__(self, keywords: IntentKeywords | None = None):
        self.keywords = keywords or IntentKeywords.from_settings()

    def is_video_request(self, text: str) -> bool:
        text = text.lower()
        return _contains_any(text, self.keywords.video_verbs) and _contains_any(text, self.keywords.video_nouns)

    def is_image_request(self, text: str) -> bool:
        text = text.lower()
        return _contains_any(text, self.keywords.image_verbs) and _contains_any(text, self.keywords.image_nouns)

    def classify(self, messages: Sequence[dict[str, Any]]) -> Intent:
        message = last_user_message(messages)
        if message is None:
            return Intent.PLAIN_CHAT

        text = get_text_content(message)

        if has_videos(message):
            intent = Intent.MULTIMODAL_ANALYSIS
        elif self.is_video_request(text):
            intent = Intent.VIDEO_GENERATION
        elif self.is_image_request(text):
            intent = Intent.IMAGE_GENERATION
        elif has_images(message):
            intent = Intent.MULTIMODAL_ANALYSIS
        else:
            intent = Intent.PLAIN_CHAT

        logger.debug(f"Classified request as {intent.value}")
        return intent
