"""LLM data models."""

from enum import Enum

from pydantic import BaseModel, Field, SecretStr

from agrisearch.config import LocalBackendSettings, LocalModelVariant, RemoteBackendSettings

# Runtime tags for the on-device chat model variants.
LOCAL_MODEL_TAGS = {
    LocalModelVariant.GEMMA_2B: "gemma:2b",
    LocalModelVariant.GEMMA_7B: "gemma:7b",
}


class Role(str, Enum):
    """Message role in a conversation."""

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


class Message(BaseModel):
    """A message in a conversation.

    Attributes:
        role: The role of the message sender.
        content: The message content.
    """

    role: Role = Field(description="Message role")
    content: str = Field(description="Message content")


class GenerationResult(BaseModel):
    """Result from LLM generation.

    Attributes:
        content: The generated text.
        model: Model used for generation.
        prompt_tokens: Number of tokens in the prompt.
        completion_tokens: Number of tokens in the completion.
        total_tokens: Total tokens used.
    """

    content: str = Field(description="Generated text")
    model: str = Field(description="Model used")
    prompt_tokens: int = Field(default=0, description="Prompt token count")
    completion_tokens: int = Field(default=0, description="Completion token count")
    total_tokens: int = Field(default=0, description="Total token count")


class ChatEndpoint(BaseModel):
    """Connection parameters for an OpenAI-compatible chat endpoint."""

    base_url: str = Field(description="API base URL")
    model: str = Field(description="Model name sent with each request")
    api_key: SecretStr = Field(default=SecretStr("not-required"), description="API key")
    timeout: float = Field(default=120.0, description="Request timeout in seconds")
    max_tokens: int = Field(default=256, description="Maximum tokens in response")
    temperature: float = Field(default=0.7, description="Sampling temperature")

    @classmethod
    def from_local(cls, settings: LocalBackendSettings) -> "ChatEndpoint":
        """Endpoint of the on-device runtime."""
        return cls(
            base_url=settings.llm_base_url,
            model=LOCAL_MODEL_TAGS[settings.llm_model],
            timeout=settings.timeout,
            max_tokens=settings.max_tokens,
            temperature=settings.temperature,
        )

    @classmethod
    def from_remote(cls, settings: RemoteBackendSettings) -> "ChatEndpoint":
        """Endpoint of the remote inference service."""
        return cls(
            base_url=settings.llm_base_url,
            model=settings.llm_model,
            api_key=settings.api_key,
            timeout=settings.timeout,
            max_tokens=settings.max_tokens,
            temperature=settings.temperature,
        )
