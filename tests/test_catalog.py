import pytest

from aigate.catalog import (
    AnthropicCompletionModel,
    BedrockCohereCompletionModel,
    BedrockMetaCompletionModel,
    BedrockMistralCompletionModel,
    GeminiCompletionModel,
    InferenceProvider,
    Limits,
    ModelCapability,
    ModelIOFormats,
    ModelMetadata,
    ModelType,
    OpenAICompletionModel,
    OpenAIEmbeddingModel,
)


def _metadata(**overrides):
    values = dict(
        model="gpt-4o",
        model_provider="openai",
        inference_provider=InferenceProvider(provider="openai", model_name="gpt-4o"),
        price={"per_input_token": 1.0},
        input_formats=[ModelIOFormats.TEXT, ModelIOFormats.IMAGE],
        output_formats=[ModelIOFormats.TEXT],
        capabilities=[ModelCapability.TOOLS],
        type=ModelType.COMPLETIONS,
        limits=Limits(128000),
        description="desc",
    )
    values.update(overrides)
    return ModelMetadata(**values)


@pytest.mark.parametrize(
    "model, text",
    [
        (OpenAICompletionModel.GPT35Turbo0125, "gpt-3.5-turbo-0125"),
        (OpenAICompletionModel.O1Mini, "o1-mini"),
        (OpenAIEmbeddingModel.Ada, "text-embedding-ada-002"),
        (GeminiCompletionModel.Gemini15Flash, "gemini-1.5-flash-latest"),
        (AnthropicCompletionModel.Claude35Sonnet20240620, "claude-3-5-sonnet-20240620"),
        (BedrockCohereCompletionModel.CommandRPlus, "command-r-plus-v1:0"),
        (BedrockMetaCompletionModel.Llama3211BInstruct, "llama3-2-11b-instruct-v1:0"),
        (BedrockMistralCompletionModel.Mistral8x7BInstruct, "mixtral-8x7b-instruct-v0:1"),
    ],
)
def test_model_display(model, text):
    assert str(model) == text


def test_capability_parse():
    assert ModelCapability.parse("tools") is ModelCapability.TOOLS
    with pytest.raises(ValueError, match="Invalid ModelCapability"):
        ModelCapability.parse("vision")


@pytest.mark.parametrize("fmt", list(ModelIOFormats))
def test_io_format_parse_round_trip(fmt):
    assert ModelIOFormats.parse(str(fmt)) is fmt


def test_io_format_parse_rejects_unknown():
    with pytest.raises(ValueError, match="Invalid ModelIOFormats"):
        ModelIOFormats.parse("smell")


def test_model_type_parse_is_lenient():
    assert ModelType.parse("embeddings") is ModelType.EMBEDDINGS
    assert ModelType.parse("image_generation") is ModelType.IMAGE_GENERATION
    assert ModelType.parse("anything") is ModelType.COMPLETIONS
    assert str(ModelType.IMAGE_GENERATION) == "image_generation"


def test_limits_range():
    assert Limits(5).max_context_size == 5
    with pytest.raises(ValueError):
        Limits(-1)


def test_metadata_round_trip():
    meta = _metadata(virtual_model_id="v1", parameters={"a": 1})
    again = ModelMetadata.from_dict(meta.to_dict())
    assert again == meta
    assert again.to_dict() == meta.to_dict()


def test_metadata_serialized_shape():
    data = _metadata().to_dict()
    assert data["type"] == "completions"
    assert data["input_formats"] == ["text", "image"]
    assert data["capabilities"] == ["tools"]
    assert data["limits"] == {"max_context_size": 128000}


def test_metadata_optional_fields_default():
    data = _metadata().to_dict()
    del data["virtual_model_id"]
    del data["parameters"]
    del data["inference_provider"]["endpoint"]
    meta = ModelMetadata.from_dict(data)
    assert meta.virtual_model_id is None
    assert meta.parameters is None
    assert meta.inference_provider.endpoint is None


def test_metadata_missing_field():
    data = _metadata().to_dict()
    del data["model"]
    with pytest.raises(ValueError, match="model"):
        ModelMetadata.from_dict(data)


def test_metadata_strict_type():
    data = _metadata().to_dict()
    data["type"] = "unknown"
    with pytest.raises(ValueError):
        ModelMetadata.from_dict(data)