# aigate

Core pieces of an LLM gateway: a catalog of known models, routing between
model targets, the events a model call emits, and collection of trace spans
for storage in a traces table. The package has no dependencies beyond the
standard library.

## Installation

```
pip install aigate
```

For running the tests:

```
pip install "aigate[test]"
pytest
```

## Model catalog

`aigate.catalog` names the models the gateway knows about
(`OpenAICompletionModel`, `OpenAIEmbeddingModel`, `GeminiCompletionModel`,
`AnthropicCompletionModel`, `BedrockCohereCompletionModel`,
`BedrockMetaCompletionModel`, `BedrockMistralCompletionModel`) and describes
them with `ModelMetadata`. Each model's string form is its API name, for
example `str(OpenAICompletionModel.GPT4oMini) == "gpt-4o-mini"`.

```python
from aigate.catalog import ModelCapability, ModelIOFormats, ModelType

ModelType.parse("embeddings")      # ModelType.EMBEDDINGS
ModelType.parse("unknown")         # falls back to ModelType.COMPLETIONS
ModelCapability.parse("tools")     # ModelCapability.TOOLS
ModelIOFormats.parse("image")      # ModelIOFormats.IMAGE
ModelIOFormats.parse("smell")      # raises ValueError
```

`ModelMetadata.from_dict` and `ModelMetadata.to_dict` convert metadata to and
from JSON-ready dictionaries; `from_dict` raises `ValueError` when a field is
missing or malformed.

## Routing

`aigate.routing.metric.route` picks the model with the best value of a
metric. Latency, time to first token and error rate are minimised; request
count and tokens per second are maximised. A model written as
`provider/model` is looked up under that provider only. A bare model name
is looked up under every provider, and the best one is returned as
`provider/model`. Ties go to the earliest candidate.

```python
from aigate.routing.metric import (
    MetricSelector, Metrics, ModelMetrics, ProviderMetrics, TimeMetrics, route,
)

def measured(ttft):
    m = Metrics(ttft=ttft)
    return ModelMetrics(TimeMetrics(total=m, last_15_minutes=m, last_hour=m))

metrics = {
    "openai": ProviderMetrics({"gpt-4o-mini": measured(1800.0)}),
    "gemini": ProviderMetrics({"gemini-1.5-flash-latest": measured(1000.0)}),
}
best = route(
    ["openai/gpt-4o-mini", "gemini/gemini-1.5-flash-latest"],
    metrics,
    MetricSelector.TTFT,
    None,
)
# "gemini/gemini-1.5-flash-latest"
```

If no model has a value for the metric, the first model is returned (an
empty string when the list is empty). Pass a `MetricsDuration` to read the
last hour or last 15 minutes instead of the totals.

`aigate.routing.router.LlmRouter` combines a strategy with a list of targets:

- `FallbackStrategy` returns every target in order;
- `RandomStrategy` returns one target at random;
- `PercentageStrategy` returns one target chosen by weight (the tag
  `a_b_testing` is accepted as well as `percentage`);
- `OptimizedStrategy` returns the best model by a metric (latency by default).

```python
from aigate.routing.router import LlmRouter

router = LlmRouter.from_dict({
    "name": "split",
    "type": "percentage",
    "targets_percentages": [0.5, 0.5],
    "targets": [{"model": "openai/gpt-4o-mini"}, {"model": "openai/gpt-4o"}],
})
targets = router.route(metrics={}, rng=None)
```

`rng` may be any object with `random()` and `randrange()`, such as a seeded
`random.Random`; by default the `random` module is used. Errors are raised as
`RouterError`, or its subclasses `TargetByIndexNotFoundError` and
`UnknownMetricError`. `LlmRouter.to_dict` writes a router back to its JSON
form.

## Model events

`aigate.events` holds the events a model call sends while it runs: start,
first token, content, stop, tool start and tool result, and image generation
finished. `ModelEvent.create` stamps an event with the current UTC time,
`ModelEvent.to_dict` and `ModelEvent.from_dict` write and read events in
their JSON form, and `event_name` gives an event's name, such as
`"llm_start"`. `ModelFinishReason` covers the standard reasons and
`ModelFinishReason.other(detail)` for anything else.

## Tracing

`aigate.tracing.TraceService` takes span export requests in the OTLP JSON
form (camelCase or snake_case field names). It keeps only spans that carry a
`langdb.tenant` attribute, moves the gateway's attributes into dedicated
fields, passes each span to every queue returned by `subscribe(trace_id)`,
and queues it for a `SpanWriter`. Spans with malformed ids are counted in the
reply's `rejectedSpans`.

```python
from aigate.tracing import TraceService

async with TraceService(transport) as service:
    reply = await service.export(request)
```

The writer collects rows and writes them to the `langdb.traces` table through
a `SpanWriterTransport` every second, or sooner when more than 1000 rows are
waiting. `DatabaseSpanWriter` adapts any object with an async
`insert_values(table_name, columns, rows)` method.

`build_baggage` returns the `langdb.*` entries a request carries into its
traces, read from the `x-parent-trace-id`, `x-trace-id`, `x-run-id` and
`x-label` headers; a fresh run id is made when none is given.

## What this package does not do

It does not call any model provider: there are no chat completion clients,
no tool execution and no streaming of model output here. It runs no HTTP or
gRPC server to receive trace exports, and it stores nothing itself; the
transport that writes span rows must be supplied by the caller.