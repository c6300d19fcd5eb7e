"""Catalogue of known models and the metadata that describes them."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class _DisplayEnum(str, Enum):
    """String enum whose text form is its value."""

    def __str__(self) -> str:
        return self.value


class OpenAICompletionModel(_DisplayEnum):
    GPT35Turbo0125 = "gpt-3.5-turbo-0125"
    GPT4o = "gpt-4o"
    GPT4oMini = "gpt-4o-mini"
    O1Preview = "o1-preview"
    O1Mini = "o1-mini"


class OpenAIEmbeddingModel(_DisplayEnum):
    Ada = "text-embedding-ada-002"
    EmbeddingSmall = "text-embedding-3-small"
    EmbeddingLarge = "text-embedding-3-large"


class GeminiCompletionModel(_DisplayEnum):
    Gemini15Flash = "gemini-1.5-flash-latest"
    Gemini15Flash8B = "gemini-1.5-flash-8b"
    Gemini15Pro = "gemini-1.5-pro-latest"


class AnthropicCompletionModel(_DisplayEnum):
    Claude3Opus20240229 = "claude-3-opus-20240229"
    Claude3Sonnet20240229 = "claude-3-sonnet-20240229"
    Claude3Haiku20240307 = "claude-3-haiku-20240307"
    Claude35Sonnet20240620 = "claude-3-5-sonnet-20240620"


class BedrockCohereCompletionModel(_DisplayEnum):
    CommandR = "command-r-v1:0"
    CommandRPlus = "command-r-plus-v1:0"


class BedrockMetaCompletionModel(_DisplayEnum):
    Llama38BInstruct = "llama3-8b-instruct-v1:0"
    Llama370BInstruct = "llama3-70b-instruct-v1:0"
    Llama318BInstruct = "llama3-1-8b-instruct-v1:0"
    Llama3170BInstruct = "llama3-1-70b-instruct-v1:0"
    Llama321BInstruct = "llama3-2-1b-instruct-v1:0"
    Llama323BInstruct = "llama3-2-3b-instruct-v1:0"
    Llama3211BInstruct = "llama3-2-11b-instruct-v1:0"
    Llama3370BInstruct = "llama3-3-70b-instruct-v1:0"


class BedrockMistralCompletionModel(_DisplayEnum):
    Mistral7BInstruct = "mistral-7b-instruct-v0:2"
    Mistral8x7BInstruct = "mixtral-8x7b-instruct-v0:1"


class ModelCapability(_DisplayEnum):
    TOOLS = "tools"

    @classmethod
    def parse(cls, text: str) -> "ModelCapability":
        """Parse a capability name; raise ValueError for unknown names."""
        try:
            return cls(text)
        except ValueError:
            raise ValueError("Invalid ModelCapability") from None


class ModelIOFormats(_DisplayEnum):
    TEXT = "text"
    IMAGE = "image"
    AUDIO = "audio"
    VIDEO = "video"

    @classmethod
    def parse(cls, text: str) -> "ModelIOFormats":
        """Parse a format name; raise ValueError for unknown names."""
        try:
            return cls(text)
        except ValueError:
            raise ValueError("Invalid ModelIOFormats") from None


class ModelType(_DisplayEnum):
    COMPLETIONS = "completions"
    EMBEDDINGS = "embeddings"
    IMAGE_GENERATION = "image_generation"

    @classmethod
    def parse(cls, text: str) -> "ModelType":
        """Parse a model type leniently: unknown names mean completions."""
        try:
            return cls(text)
        except ValueError:
            return cls.COMPLETIONS


_U32_MAX = 2**32 - 1


@dataclass
class Limits:
    max_context_size: int

    def __post_init__(self) -> None:
        if not 0 <= self.max_context_size <= _U32_MAX:
            raise ValueError(f"max_context_size out of range: {self.max_context_size}")


@dataclass
class InferenceProvider:
    provider: Any
    model_name: str
    endpoint: str | None = None


@dataclass
class ModelMetadata:
    model: str
    model_provider: str
    inference_provider: InferenceProvider
    price: Any
    input_formats: list[ModelIOFormats]
    output_formats: list[ModelIOFormats]
    capabilities: list[ModelCapability]
    type: ModelType
    limits: Limits
    description: str
    parameters: Any = None
    virtual_model_id: str | None = None
    _extra: dict = field(default_factory=dict, repr=False, compare=False)

    def to_dict(self) -> dict[str, Any]:
        """Return the JSON-compatible representation."""
        return {
            "model": self.model,
            "model_provider": self.model_provider,
            "inference_provider": {
                "provider": self.inference_provider.provider,
                "model_name": self.inference_provider.model_name,
                "endpoint": self.inference_provider.endpoint,
            },
            "price": self.price,
            "input_formats": [f.value for f in self.input_formats],
            "output_formats": [f.value for f in self.output_formats],
            "capabilities": [c.value for c in self.capabilities],
            "type": self.type.value,
            "limits": {"max_context_size": self.limits.max_context_size},
            "description": self.description,
            "parameters": self.parameters,
            "virtual_model_id": self.virtual_model_id,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ModelMetadata":
        """Build metadata from its JSON form; raise ValueError if it is malformed."""
        try:
            provider_data = data["inference_provider"]
            inference_provider = InferenceProvider(
                provider=provider_data["provider"],
                model_name=provider_data["model_name"],
                endpoint=provider_data.get("endpoint"),
            )
            return cls(
                model=data["model"],
                model_provider=data["model_provider"],
                inference_provider=inference_provider,
                price=data["price"],
                input_formats=[ModelIOFormats(v) for v in data["input_formats"]],
                output_formats=[ModelIOFormats(v) for v in data["output_formats"]],
                capabilities=[ModelCapability(v) for v in data["capabilities"]],
                type=ModelType(data["type"]),
                limits=Limits(data["limits"]["max_context_size"]),
                description=data["description"],
                parameters=data.get("parameters"),
                virtual_model_id=data.get("virtual_model_id"),
            )
        except KeyError as exc:
            raise ValueError(f"missing field {exc.args[0]!r}") from None
        except TypeError as exc:
            raise ValueError(f"malformed model metadata: {exc}") from None