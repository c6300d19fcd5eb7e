"""Collection of exported trace spans and their storage in a traces table."""

from __future__ import annotations

import asyncio
import base64
import copy
import json
import logging
import re
import uuid
from abc import ABC, abstractmethod
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

logger = logging.getLogger(__name__)

TRACES_TABLE = "langdb.traces"
TRACE_COLUMNS = (
    "trace_id",
    "parent_trace_id",
    "span_id",
    "parent_span_id",
    "operation_name",
    "start_time_us",
    "finish_time_us",
    "finish_date",
    "kind",
    "attribute",
    "tenant_id",
    "project_id",
    "thread_id",
    "tags",
    "run_id",
)
BATCH_LIMIT = 1000
FLUSH_INTERVAL = 1.0
QUEUE_SIZE = 1000

_TRACE_ID_LEN = 16
_SPAN_ID_LEN = 8


class SpanKind(str, Enum):
    CLIENT = "CLIENT"
    SERVER = "SERVER"
    PRODUCER = "PRODUCER"
    CONSUMER = "CONSUMER"
    INTERNAL = "INTERNAL"


_KIND_BY_NUMBER = {
    0: SpanKind.INTERNAL,
    1: SpanKind.INTERNAL,
    2: SpanKind.SERVER,
    3: SpanKind.CLIENT,
    4: SpanKind.PRODUCER,
    5: SpanKind.CONSUMER,
}
_KIND_BY_NAME = {
    "SPAN_KIND_UNSPECIFIED": SpanKind.INTERNAL,
    "SPAN_KIND_INTERNAL": SpanKind.INTERNAL,
    "SPAN_KIND_SERVER": SpanKind.SERVER,
    "SPAN_KIND_CLIENT": SpanKind.CLIENT,
    "SPAN_KIND_PRODUCER": SpanKind.PRODUCER,
    "SPAN_KIND_CONSUMER": SpanKind.CONSUMER,
}


@dataclass
class Span:
    trace_id: bytes
    span_id: bytes
    operation_name: str
    kind: SpanKind
    start_time_unix_nano: int
    end_time_unix_nano: int
    parent_trace_id: bytes | None = None
    parent_span_id: bytes | None = None
    attributes: dict[str, Any] = field(default_factory=dict)
    tenant_id: str | None = None
    project_id: str | None = None
    thread_id: str | None = None
    tags: dict[str, Any] = field(default_factory=dict)
    run_id: str | None = None


def trace_id_uuid(trace_id: bytes) -> uuid.UUID:
    """Read a 16-byte trace id as a UUID."""
    return uuid.UUID(bytes=bytes(trace_id))


_SNAKE = re.compile(r"_([a-z])")


def _camel(key: str) -> str:
    return _SNAKE.sub(lambda m: m.group(1).upper(), key)


def _norm(data: Any) -> dict[str, Any]:
    """Accept both camelCase and snake_case field names of the OTLP JSON form."""
    if not isinstance(data, Mapping):
        return {}
    return {_camel(key): value for key, value in data.items()}


def serialize_any_value(value: Any) -> Any:
    """Turn an OTLP ``AnyValue`` into plain JSON data."""
    fields = _norm(value)
    if "stringValue" in fields:
        return str(fields["stringValue"])
    if "boolValue" in fields:
        return bool(fields["boolValue"])
    if "intValue" in fields:
        return int(fields["intValue"])
    if "doubleValue" in fields:
        return float(fields["doubleValue"])
    if "arrayValue" in fields:
        return [serialize_any_value(item) for item in _norm(fields["arrayValue"]).get("values", [])]
    if "kvlistValue" in fields:
        result: dict[str, Any] = {}
        for pair in _norm(fields["kvlistValue"]).get("values", []):
            pair = _norm(pair)
            result[str(pair.get("key", ""))] = serialize_any_value(pair.get("value"))
        return result
    if "bytesValue" in fields:
        raw = fields["bytesValue"]
        if isinstance(raw, str):
            raw = base64.b64decode(raw)
        return list(bytes(raw))
    return None


def _header(headers: Mapping[str, str], name: str) -> str | None:
    for key, value in headers.items():
        if key.lower() == name:
            if isinstance(value, bytes):
                try:
                    value = value.decode("ascii")
                except UnicodeDecodeError:
                    return None
            return value
    return None


def build_baggage(
    headers: Mapping[str, str],
    tenant_name: str | None,
    project_slug: str | None,
    additional_context: Mapping[str, str] | None = None,
) -> list[tuple[str, str]]:
    """Return the baggage entries a request carries into its traces.

    Without a tenant the request carries no baggage.
    """
    if tenant_name is None:
        logger.warning("tenant not found")
        return []
    entries = [
        ("langdb.tenant", tenant_name),
        ("langdb.project_id", project_slug or ""),
    ]
    parent_trace_id = _header(headers, "x-parent-trace-id")
    if parent_trace_id is not None:
        entries.append(("langdb.parent_trace_id", parent_trace_id))
    trace_id = _header(headers, "x-trace-id")
    if trace_id is not None:
        entries.append(("langdb.trace_id", trace_id))
    run_id = _header(headers, "x-run-id")
    entries.append(("langdb.run_id", run_id if run_id is not None else str(uuid.uuid4())))
    label = _header(headers, "x-label")
    if label is not None:
        entries.append(("langdb.label", label))
    if additional_context:
        entries.extend((str(key), str(value)) for key, value in additional_context.items())
    return entries


class SpanWriterTransport(ABC):
    """Somewhere rows of spans can be written."""

    @abstractmethod
    async def insert_values(
        self, table_name: str, columns: Sequence[str], rows: list[list[Any]]
    ) -> str:
        """Insert rows into a table and return the store's reply."""


class DatabaseSpanWriter(SpanWriterTransport):
    """Writes spans through a database transport."""

    def __init__(self, transport: Any) -> None:
        self.transport = transport

    async def insert_values(
        self, table_name: str, columns: Sequence[str], rows: list[list[Any]]
    ) -> str:
        try:
            return await self.transport.insert_values(table_name, columns, rows)
        except Exception as exc:
            raise RuntimeError(str(exc)) from exc


def _finish_date(end_time_unix_nano: int) -> str:
    moment = datetime.fromtimestamp(end_time_unix_nano // 10**9, tz=timezone.utc)
    return moment.date().isoformat()


class SpanWriter:
    """Buffers spans and writes them in batches."""

    def __init__(
        self,
        transport: SpanWriterTransport,
        trace_senders: dict[bytes, list[asyncio.Queue]] | None = None,
    ) -> None:
        self.transport = transport
        self.trace_senders = {} if trace_senders is None else trace_senders
        self.buf: list[list[Any]] = []
        self.finished_traces: list[bytes] = []

    def process(self, span: Span) -> None:
        """Turn a span into a table row and buffer it."""
        if span.parent_span_id is None:
            self.finished_traces.append(span.trace_id)
        self.buf.append(
            [
                str(trace_id_uuid(span.trace_id)),
                str(trace_id_uuid(span.parent_trace_id)) if span.parent_trace_id else None,
                int.from_bytes(span.span_id, "big"),
                int.from_bytes(span.parent_span_id, "big")
                if span.parent_span_id is not None
                else None,
                span.operation_name,
                span.start_time_unix_nano // 1000,
                span.end_time_unix_nano // 1000,
                _finish_date(span.end_time_unix_nano),
                span.kind.value,
                span.attributes,
                span.tenant_id,
                span.project_id,
                span.thread_id,
                span.tags,
                span.run_id,
            ]
        )

    async def flush(self) -> None:
        """Write the buffered rows and forget listeners of finished traces."""
        if not self.buf:
            return
        try:
            await self.transport.insert_values(TRACES_TABLE, TRACE_COLUMNS, list(self.buf))
        except Exception as exc:
            logger.error("%s", exc)
        for trace_id in self.finished_traces:
            self.trace_senders.pop(trace_id, None)
        self.finished_traces.clear()
        self.buf.clear()

    async def run(self, queue: asyncio.Queue) -> None:
        """Consume spans from ``queue`` until it yields ``None``.

        The buffer is written every second and whenever it grows past the batch
        limit; what remains is written before returning.
        """
        loop = asyncio.get_running_loop()
        next_tick = loop.time()
        while True:
            timeout = next_tick - loop.time()
            if timeout <= 0:
                await self.flush()
                next_tick = max(next_tick + FLUSH_INTERVAL, loop.time())
                continue
            try:
                span = await asyncio.wait_for(queue.get(), timeout)
            except asyncio.TimeoutError:
                continue
            if span is None:
                break
            self.process(span)
            if len(self.buf) > BATCH_LIMIT:
                await self.flush()
        while not queue.empty():
            span = queue.get_nowait()
            if span is not None:
                self.process(span)
        await self.flush()


class _RejectedSpan(Exception):
    pass


def _decode_id(value: Any, size: int) -> bytes:
    if isinstance(value, (bytes, bytearray)):
        raw = bytes(value)
    elif isinstance(value, str):
        try:
            raw = bytes.fromhex(value)
        except ValueError:
            raise _RejectedSpan() from None
    else:
        raise _RejectedSpan()
    if len(raw) != size:
        raise _RejectedSpan()
    return raw


def _decode_kind(value: Any) -> SpanKind:
    if isinstance(value, str):
        return _KIND_BY_NAME.get(value, SpanKind.INTERNAL)
    if isinstance(value, int):
        return _KIND_BY_NUMBER.get(value, SpanKind.INTERNAL)
    return SpanKind.INTERNAL


def _pop_str(attributes: dict[str, Any], key: str) -> str | None:
    value = attributes.pop(key, None)
    return value if isinstance(value, str) else None


def _uuid_bytes(text: str | None) -> bytes | None:
    if text is None:
        return None
    try:
        return uuid.UUID(text).bytes
    except ValueError:
        return None


class TraceService:
    """Receives exported spans, hands them to listeners and to the span writer.

    Use as an async context manager to run the writer in the background.
    """

    def __init__(
        self,
        transport: SpanWriterTransport,
        listener_senders: dict[bytes, list[asyncio.Queue]] | None = None,
    ) -> None:
        self.listener_senders = {} if listener_senders is None else listener_senders
        self.writer = SpanWriter(transport, self.listener_senders)
        self.queue: asyncio.Queue = asyncio.Queue(maxsize=QUEUE_SIZE)
        self._task: asyncio.Task | None = None

    async def __aenter__(self) -> "TraceService":
        self._task = asyncio.create_task(self.writer.run(self.queue))
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        if self._task is not None:
            await self.queue.put(None)
            await self._task
            self._task = None

    def subscribe(self, trace_id: bytes) -> asyncio.Queue:
        """Return a queue that receives every span exported for ``trace_id``."""
        listener: asyncio.Queue = asyncio.Queue()
        self.listener_senders.setdefault(bytes(trace_id), []).append(listener)
        return listener

    def _convert(self, raw: Any) -> Span | None:
        data = _norm(raw)
        kind = _decode_kind(data.get("kind", 0))
        trace_id = _decode_id(data.get("traceId", b""), _TRACE_ID_LEN)
        span_id = _decode_id(data.get("spanId", b""), _SPAN_ID_LEN)
        parent_raw = data.get("parentSpanId") or b""
        parent_span_id = _decode_id(parent_raw, _SPAN_ID_LEN) if parent_raw else None
        name = str(data.get("name", ""))

        raw_attributes = [_norm(attr) for attr in data.get("attributes", [])]
        message_ids = [
            value["stringValue"]
            for attr in raw_attributes
            if attr.get("key") == "message_id"
            and "stringValue" in (value := _norm(attr.get("value")))
        ]
        attributes: dict[str, Any] = {
            str(attr.get("key", "")): serialize_any_value(attr.get("value"))
            for attr in raw_attributes
        }
        attributes["message_id"] = message_ids

        tenant_id = _pop_str(attributes, "langdb.tenant")
        if tenant_id is None:
            logger.debug("No tenant id found in span %s with attributes: %r", name, attributes)
            return None
        project_id = _pop_str(attributes, "langdb.project_id")
        thread_id = _pop_str(attributes, "langdb.thread_id")
        parent_trace_id = _uuid_bytes(_pop_str(attributes, "langdb.parent_trace_id"))
        run_id = _pop_str(attributes, "langdb.run_id")
        langdb_trace_id = _uuid_bytes(_pop_str(attributes, "langdb.trace_id"))
        label = _pop_str(attributes, "langdb.label")
        if "label" not in attributes and label is not None:
            attributes["label"] = label
        if langdb_trace_id is not None:
            trace_id = langdb_trace_id

        tags: dict[str, Any] = {}
        tags_value = attributes.pop("tags", None)
        if isinstance(tags_value, str):
            try:
                parsed = json.loads(tags_value)
            except ValueError:
                parsed = None
            if isinstance(parsed, dict):
                tags = parsed

        return Span(
            trace_id=trace_id,
            span_id=span_id,
            operation_name=name,
            kind=kind,
            start_time_unix_nano=int(data.get("startTimeUnixNano", 0)),
            end_time_unix_nano=int(data.get("endTimeUnixNano", 0)),
            parent_trace_id=parent_trace_id,
            parent_span_id=parent_span_id,
            attributes=attributes,
            tenant_id=tenant_id,
            project_id=project_id,
            thread_id=thread_id,
            tags=tags,
            run_id=run_id,
        )

    async def export(self, request: Mapping[str, Any]) -> dict[str, Any]:
        """Accept an OTLP trace export request; count spans with malformed ids."""
        rejected = 0
        for resource in _norm(request).get("resourceSpans", []):
            for scope in _norm(resource).get("scopeSpans", []):
                for raw in _norm(scope).get("spans", []):
                    try:
                        span = self._convert(raw)
                    except _RejectedSpan:
                        rejected += 1
                        continue
                    if span is None:
                        continue
                    for listener in self.listener_senders.get(span.trace_id, []):
                        listener.put_nowait(copy.deepcopy(span))
                    await self.queue.put(span)
        return {"partialSuccess": {"rejectedSpans": rejected, "errorMessage": ""}}