from datetime import datetime, timezone

import pytest

from aigate.events import (
    CompletionModelUsage,
    CredentialsIdent,
    ImageGenerationFinishEvent,
    LLMContentEvent,
    LLMFinishEvent,
    LLMFirstToken,
    LLMStartEvent,
    ModelEvent,
    ModelFinishReason,
    ModelToolCall,
    ToolResultEvent,
    ToolStartEvent,
    event_name,
)


@pytest.mark.parametrize(
    "event, name",
    [
        (LLMStartEvent("openai", "gpt-4o", "[]"), "llm_start"),
        (LLMFirstToken(), "llm_first_token"),
        (LLMContentEvent("hi"), "llm_content"),
        (
            LLMFinishEvent("openai", "gpt-4o", None, None, ModelFinishReason.STOP),
            "llm_stop",
        ),
        (ToolStartEvent("1", "search", "{}"), "tool_start"),
        (ToolResultEvent("1", "search", False, "ok"), "tool_result"),
        (
            ImageGenerationFinishEvent("dall-e", "hd", "1024x1024", 1, 1, CredentialsIdent.OWN),
            "image_generation_finish",
        ),
    ],
)
def test_event_names(event, name):
    assert event_name(event) == name


def test_event_name_rejects_other_objects():
    with pytest.raises(TypeError):
        event_name("llm_start")


def test_credentials_ident_display_and_value():
    assert str(CredentialsIdent.LANGDB) == "langdb"
    assert str(CredentialsIdent.OWN) == "own"
    assert CredentialsIdent("Own") is CredentialsIdent.OWN


def test_finish_reason_json_forms():
    assert ModelFinishReason.STOP_SEQUENCE.to_json() == "stop_sequence"
    assert ModelFinishReason.other("FunctionCall").to_json() == {"other": "FunctionCall"}


@pytest.mark.parametrize(
    "reason",
    [
        ModelFinishReason.STOP,
        ModelFinishReason.LENGTH,
        ModelFinishReason.TOOL_CALLS,
        ModelFinishReason.CONTENT_FILTER,
        ModelFinishReason.GUARDRAIL,
        ModelFinishReason.other("FunctionCall"),
    ],
)
def test_finish_reason_round_trip(reason):
    assert ModelFinishReason.from_json(reason.to_json()) == reason


@pytest.mark.parametrize("bad", ["finished", {"unknown": "x"}, 3, {"other": 1}])
def test_finish_reason_rejects_invalid(bad):
    with pytest.raises(ValueError):
        ModelFinishReason.from_json(bad)


def test_model_event_create_stamps_utc_now():
    before = datetime.now(timezone.utc)
    event = ModelEvent.create(LLMContentEvent("x"), "span", "trace")
    after = datetime.now(timezone.utc)
    assert before <= event.timestamp <= after
    assert event.name == "llm_content"


def test_model_event_dict_shape():
    event = ModelEvent(
        "abc", "def", LLMContentEvent("hello"), datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)
    )
    data = event.to_dict()
    assert data["event"] == {"type": "llm_content", "data": {"content": "hello"}}
    assert data["timestamp"].endswith("Z")


def test_finish_event_round_trip():
    finish = LLMFinishEvent(
        provider_name="openai",
        model_name="gpt-4o",
        output="done",
        usage=CompletionModelUsage(input_tokens=3, output_tokens=4, total_tokens=7),
        finish_reason=ModelFinishReason.TOOL_CALLS,
        tool_calls=[ModelToolCall("id1", "search", '{"q": 1}')],
        credentials_ident=CredentialsIdent.OWN,
    )
    event = ModelEvent.create(finish, "span", "trace")
    restored = ModelEvent.from_dict(event.to_dict())
    assert restored == event


def test_image_event_round_trip():
    image = ImageGenerationFinishEvent("m", "hd", "512x512", 2, 30, CredentialsIdent.LANGDB)
    event = ModelEvent.create(image, "s", "t")
    assert ModelEvent.from_dict(event.to_dict()) == event


def test_image_event_rejects_out_of_range_counts():
    with pytest.raises(ValueError):
        ImageGenerationFinishEvent("m", "hd", "512x512", 256, 1, CredentialsIdent.OWN)


def test_from_dict_accepts_nanosecond_timestamps():
    data = {
        "span_id": "s",
        "trace_id": "t",
        "event": {"type": "llm_first_token", "data": {}},
        "timestamp": "2024-05-06T07:08:09.123456789Z",
    }
    event = ModelEvent.from_dict(data)
    assert event.timestamp == datetime(2024, 5, 6, 7, 8, 9, 123456, tzinfo=timezone.utc)
    assert event.event == LLMFirstToken()


def test_from_dict_rejects_unknown_type():
    data = {
        "span_id": "s",
        "trace_id": "t",
        "event": {"type": "nope", "data": {}},
        "timestamp": "2024-05-06T07:08:09Z",
    }
    with pytest.raises(ValueError):
        ModelEvent.from_dict(data)


def test_from_dict_rejects_missing_fields():
    with pytest.raises(ValueError):
        ModelEvent.from_dict({"span_id": "s"})