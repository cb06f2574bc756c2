"""Tests for outgoing message validation."""

import pytest
from pydantic import ValidationError

from deepview.utils.validation import (
    ConversationTitle,
    describe_validation_error,
    validate_outgoing_message,
)


def test_valid_message_is_stripped():
    message = validate_outgoing_message("  hello  ", ["data:image/png;base64,AAAA"], ["https://x/v.mp4"])
    assert message.content == "hello"


def test_empty_message_rejected():
    with pytest.raises(ValidationError) as exc:
        validate_outgoing_message("   ", [], [])
    assert describe_validation_error(exc.value) == "content: Message cannot be empty"


def test_overlong_message_rejected():
    with pytest.raises(ValidationError):
        validate_outgoing_message("x" * 10001, [], [])
    validate_outgoing_message("x" * 10000, [], [])


def test_attachment_limits():
    with pytest.raises(ValidationError):
        validate_outgoing_message("look", ["https://x/a.png"] * 11, [])
    with pytest.raises(ValidationError):
        validate_outgoing_message("look", [], ["https://x/a.mp4"] * 6)
    validate_outgoing_message("look", ["https://x/a.png"] * 10, ["https://x/a.mp4"] * 5)


def test_attachment_must_be_uri():
    with pytest.raises(ValidationError) as exc:
        validate_outgoing_message("look", ["/tmp/a.png"], [])
    assert "Invalid attachment URL" in describe_validation_error(exc.value)


def test_conversation_title():
    assert ConversationTitle(title="  Trip plans ").title == "Trip plans"
    with pytest.raises(ValidationError):
        ConversationTitle(title="   ")
    with pytest.raises(ValidationError):
        ConversationTitle(title="t" * 201)
