"""Events emitted while a model call runs, and their JSON form."""

from __future__ import annotations

import re
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, ClassVar, Union


class CredentialsIdent(str, Enum):
    """Whose credentials paid for a call: the gateway's or the caller's own."""

    LANGDB = "Langdb"
    OWN = "Own"

    def __str__(self) -> str:
        return self.value.lower()


@dataclass
class CompletionModelUsage:
    input_tokens: int = 0
    output_tokens: int = 0
    total_tokens: int = 0

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CompletionModelUsage":
        return cls(
            input_tokens=data.get("input_tokens", 0),
            output_tokens=data.get("output_tokens", 0),
            total_tokens=data.get("total_tokens", 0),
        )


_FINISH_KINDS = (
    "stop",
    "stop_sequence",
    "length",
    "tool_calls",
    "content_filter",
    "guardrail",
)
_OTHER = "other"


@dataclass(frozen=True)
class ModelFinishReason:
    """Why a model stopped; ``kind`` is ``"other"`` when ``detail`` explains it."""

    kind: str
    detail: str | None = None

    STOP: ClassVar["ModelFinishReason"]
    STOP_SEQUENCE: ClassVar["ModelFinishReason"]
    LENGTH: ClassVar["ModelFinishReason"]
    TOOL_CALLS: ClassVar["ModelFinishReason"]
    CONTENT_FILTER: ClassVar["ModelFinishReason"]
    GUARDRAIL: ClassVar["ModelFinishReason"]

    def __post_init__(self) -> None:
        if self.kind == _OTHER:
            if not isinstance(self.detail, str):
                raise ValueError("an 'other' finish reason needs a text detail")
        elif self.kind not in _FINISH_KINDS:
            raise ValueError(f"unknown finish reason: {self.kind!r}")
        elif self.detail is not None:
            raise ValueError(f"finish reason {self.kind!r} takes no detail")

    @classmethod
    def other(cls, detail: str) -> "ModelFinishReason":
        return cls(_OTHER, detail)

    def to_json(self) -> Union[str, dict[str, str]]:
        if self.kind == _OTHER:
            return {_OTHER: self.detail}
        return self.kind

    @classmethod
    def from_json(cls, value: Any) -> "ModelFinishReason":
        if isinstance(value, str):
            return cls(value)
        if isinstance(value, dict) and set(value) == {_OTHER}:
            return cls.other(value[_OTHER])
        raise ValueError(f"invalid finish reason: {value!r}")


ModelFinishReason.STOP = ModelFinishReason("stop")
ModelFinishReason.STOP_SEQUENCE = ModelFinishReason("stop_sequence")
ModelFinishReason.LENGTH = ModelFinishReason("length")
ModelFinishReason.TOOL_CALLS = ModelFinishReason("tool_calls")
ModelFinishReason.CONTENT_FILTER = ModelFinishReason("content_filter")
ModelFinishReason.GUARDRAIL = ModelFinishReason("guardrail")


@dataclass
class ModelToolCall:
    tool_id: str
    tool_name: str
    input: str


@dataclass
class LLMStartEvent:
    provider_name: str
    model_name: str
    input: str


@dataclass
class LLMFirstToken:
    pass


@dataclass
class LLMContentEvent:
    content: str


@dataclass
class LLMFinishEvent:
    provider_name: str
    model_name: str
    output: str | None
    usage: CompletionModelUsage | None
    finish_reason: ModelFinishReason
    tool_calls: list[ModelToolCall] = field(default_factory=list)
    credentials_ident: CredentialsIdent = CredentialsIdent.LANGDB


@dataclass
class ToolStartEvent:
    tool_id: str
    tool_name: str
    input: str


@dataclass
class ToolResultEvent:
    tool_id: str
    tool_name: str
    is_error: bool
    output: str


@dataclass
class ModelToolResult:
    tool_id: str
    tool_name: str
    output: str
    is_error: bool


_U8_MAX = 255


@dataclass
class ImageGenerationFinishEvent:
    model_name: str
    quality: str
    size: Any
    count_of_images: int
    steps: int
    credentials_ident: CredentialsIdent

    def __post_init__(self) -> None:
        for name in ("count_of_images", "steps"):
            value = getattr(self, name)
            if not 0 <= value <= _U8_MAX:
                raise ValueError(f"{name} out of range: {value}")


EventPayload = Union[
    LLMStartEvent,
    LLMFirstToken,
    LLMContentEvent,
    LLMFinishEvent,
    ToolStartEvent,
    ToolResultEvent,
    ImageGenerationFinishEvent,
]

_EVENT_NAMES: dict[type, str] = {
    LLMStartEvent: "llm_start",
    LLMFirstToken: "llm_first_token",
    LLMContentEvent: "llm_content",
    LLMFinishEvent: "llm_stop",
    ToolStartEvent: "tool_start",
    ToolResultEvent: "tool_result",
    ImageGenerationFinishEvent: "image_generation_finish",
}
_EVENT_TYPES = {name: cls for cls, name in _EVENT_NAMES.items()}


def event_name(event: EventPayload) -> str:
    """Return the wire name of an event payload."""
    try:
        return _EVENT_NAMES[type(event)]
    except KeyError:
        raise TypeError(f"not a model event: {type(event).__name__}") from None


def _encode_payload(event: EventPayload) -> dict[str, Any]:
    if isinstance(event, LLMFinishEvent):
        return {
            "provider_name": event.provider_name,
            "model_name": event.model_name,
            "output": event.output,
            "usage": event.usage.to_dict() if event.usage is not None else None,
            "finish_reason": event.finish_reason.to_json(),
            "tool_calls": [asdict(call) for call in event.tool_calls],
            "credentials_ident": event.credentials_ident.value,
        }
    if isinstance(event, ImageGenerationFinishEvent):
        data = asdict(event)
        data["credentials_ident"] = event.credentials_ident.value
        return data
    return asdict(event)


def _decode_payload(name: str, data: dict[str, Any]) -> EventPayload:
    try:
        cls = _EVENT_TYPES[name]
    except KeyError:
        raise ValueError(f"unknown model event type: {name!r}") from None
    try:
        if cls is LLMFinishEvent:
            usage = data.get("usage")
            return LLMFinishEvent(
                provider_name=data["provider_name"],
                model_name=data["model_name"],
                output=data.get("output"),
                usage=CompletionModelUsage.from_dict(usage) if usage is not None else None,
                finish_reason=ModelFinishReason.from_json(data["finish_reason"]),
                tool_calls=[ModelToolCall(**call) for call in data["tool_calls"]],
                credentials_ident=CredentialsIdent(data["credentials_ident"]),
            )
        if cls is ImageGenerationFinishEvent:
            fields = dict(data)
            fields["credentials_ident"] = CredentialsIdent(fields["credentials_ident"])
            return ImageGenerationFinishEvent(**fields)
        return cls(**data)
    except (KeyError, TypeError) as exc:
        raise ValueError(f"malformed {name} event: {exc}") from None


_FRACTION = re.compile(r"\.(\d+)")


def _format_timestamp(moment: datetime) -> str:
    return moment.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def _parse_timestamp(text: str) -> datetime:
    normalised = text.replace("Z", "+00:00")
    normalised = _FRACTION.sub(lambda m: "." + m.group(1)[:6].ljust(6, "0"), normalised, count=1)
    moment = datetime.fromisoformat(normalised)
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


@dataclass
class ModelEvent:
    span_id: str
    trace_id: str
    event: EventPayload
    timestamp: datetime

    @classmethod
    def create(cls, event: EventPayload, span_id: str, trace_id: str) -> "ModelEvent":
        """Stamp an event with the current UTC time."""
        return cls(
            span_id=span_id,
            trace_id=trace_id,
            event=event,
            timestamp=datetime.now(timezone.utc),
        )

    @property
    def name(self) -> str:
        return event_name(self.event)

    def to_dict(self) -> dict[str, Any]:
        return {
            "span_id": self.span_id,
            "trace_id": self.trace_id,
            "event": {"type": event_name(self.event), "data": _encode_payload(self.event)},
            "timestamp": _format_timestamp(self.timestamp),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ModelEvent":
        try:
            event = data["event"]
            payload = _decode_payload(event["type"], event.get("data", {}))
            return cls(
                span_id=data["span_id"],
                trace_id=data["trace_id"],
                event=payload,
                timestamp=_parse_timestamp(data["timestamp"]),
            )
        except KeyError as exc:
            raise ValueError(f"missing field {exc.args[0]!r}") from None