"""Core building blocks of an LLM gateway: model catalog, routing, model events and tracing."""

__version__ = "0.1.0"