"""Tests for the incremental SSE frame parser."""

import orjson

from deepview.client.frames import FrameParser


def _frame(delta: dict) -> bytes:
    return b"data: " + orjson.dumps({"choices": [{"delta": delta}]}) + b"\n\n"


def test_single_frame():
    parser = FrameParser()
    payloads = parser.feed(_frame({"content": "Hello"}))
    assert payloads == [{"choices": [{"delta": {"content": "Hello"}}]}]


def test_frames_split_at_every_byte():
    stream = _frame({"content": "Hel"}) + _frame({"content": "lo"}) + b"data: [DONE]\n\n"

    whole = FrameParser().feed(stream)

    parser = FrameParser()
    pieces = []
    for i in range(len(stream)):
        pieces.extend(parser.feed(stream[i:i + 1]))

    assert pieces == whole
    assert len(pieces) == 2
    assert parser.done == True


def test_multibyte_character_split_across_chunks():
    stream = _frame({"content": "¿Qué tal? 🎬"})
    cut = stream.index("🎬".encode("utf-8")) + 2

    parser = FrameParser()
    first = parser.feed(stream[:cut])
    second = parser.feed(stream[cut:])

    assert first == []
    assert second[0]["choices"][0]["delta"]["content"] == "¿Qué tal? 🎬"


def test_done_stops_processing():
    parser = FrameParser()
    payloads = parser.feed(b"data: [DONE]\n\n" + _frame({"content": "late"}))
    assert payloads == []
    assert parser.done == True
    assert parser.feed(_frame({"content": "later"})) == []
    assert parser.finish() == []


def test_comments_blank_lines_and_crlf():
    parser = FrameParser()
    payloads = parser.feed(
        b": keep-alive\r\n"
        b"\r\n"
        b"event: message\r\n"
        b'data: {"choices":[{"delta":{"content":"x"}}]}\r\n'
    )
    assert payloads == [{"choices": [{"delta": {"content": "x"}}]}]


def test_partial_json_waits_for_rest_of_line():
    parser = FrameParser()
    assert parser.feed(b'data: {"choices":[{"del') == []
    assert parser.feed(b'ta":{"content":"ok"}}]}\n') == [
        {"choices": [{"delta": {"content": "ok"}}]}
    ]


def test_unparseable_line_is_pushed_back_until_more_data():
    parser = FrameParser()
    assert parser.feed(b"data: {broken\n") == []
    assert parser.pending == "data: {broken\n"


def test_unparseable_line_dropped_once_later_frames_arrive():
    parser = FrameParser()
    parser.feed(b"data: {broken\n")
    payloads = parser.feed(_frame({"content": "after"}))
    assert payloads == [{"choices": [{"delta": {"content": "after"}}]}]


def test_finish_flushes_line_without_newline():
    parser = FrameParser()
    assert parser.feed(b'data: {"choices":[{"delta":{"content":"tail"}}]}') == []
    assert parser.finish() == [{"choices": [{"delta": {"content": "tail"}}]}]


def test_finish_drops_unparseable_leftovers():
    parser = FrameParser()
    parser.feed(b"data: {not json")
    assert parser.finish() == []
    assert parser.pending == ""
