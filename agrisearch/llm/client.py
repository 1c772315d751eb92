"""LLM client for OpenAI-compatible chat endpoints."""

import httpx

from agrisearch.exceptions import ErrorCode, LLMError
from agrisearch.llm.models import ChatEndpoint, GenerationResult, Message, Role
from agrisearch.logging_config import get_logger

logger = get_logger(__name__)


class OpenAICompatibleClient:
    """LLM client for OpenAI-compatible APIs.

    Serves both backends:
    - on-device: a local runtime such as Ollama (localhost:11434/v1)
    - remote: a hosted chat-completions gateway
    """

    def __init__(
        self,
        endpoint: ChatEndpoint,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the OpenAI-compatible client.

        Args:
            endpoint: Connection parameters.
            client: HTTP client (for testing).
        """
        self._endpoint = endpoint
        self._client = client
        self._owns_client = client is None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._endpoint.timeout)
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None

    @property
    def model_name(self) -> str:
        """Get the model name."""
        return self._endpoint.model

    def _headers(self) -> dict[str, str]:
        api_key = self._endpoint.api_key.get_secret_value()
        if api_key and api_key != "not-required":
            return {"Authorization": f"Bearer {api_key}"}
        return {}

    async def ping(self) -> bool:
        """Check whether the endpoint answers its model listing."""
        client = await self._get_client()
        try:
            response = await client.get(
                f"{self._endpoint.base_url}/models",
                headers=self._headers(),
            )
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.warning(f"LLM endpoint unreachable: {e}")
            return False
        return True

    async def generate(
        self,
        messages: list[Message],
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> GenerationResult:
        """Generate text using chat completions API.

        Raises:
            LLMError: If generation fails.
        """
        client = await self._get_client()
        url = f"{self._endpoint.base_url}/chat/completions"

        payload = {
            "model": self._endpoint.model,
            "messages": [
                {"role": msg.role.value, "content": msg.content} for msg in messages
            ],
            "temperature": (
                temperature if temperature is not None else self._endpoint.temperature
            ),
            "max_tokens": max_tokens or self._endpoint.max_tokens,
        }

        try:
            response = await client.post(url, json=payload, headers=self._headers())
            response.raise_for_status()

        except httpx.TimeoutException as e:
            logger.error(f"LLM request timed out: {e}")
            raise LLMError(
                "LLM request timed out",
                code=ErrorCode.LLM_TIMEOUT,
                details={"timeout": self._endpoint.timeout},
            ) from e

        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            logger.error(f"LLM request failed: {status}")

            if status == 429:
                raise LLMError(
                    "Rate limit exceeded",
                    code=ErrorCode.LLM_RATE_LIMIT,
                    details={"status_code": status},
                ) from e

            raise LLMError(
                f"LLM service returned {status}",
                details={"status_code": status},
            ) from e

        except httpx.RequestError as e:
            logger.error(f"LLM connection error: {e}")
            raise LLMError(
                f"Failed to connect to LLM service: {e}",
                details={"url": url},
            ) from e

        try:
            data = response.json()
            message = data["choices"][0]["message"]
            usage = data.get("usage") or {}

            return GenerationResult(
                content=message["content"].strip(),
                model=data.get("model", self._endpoint.model),
                prompt_tokens=usage.get("prompt_tokens", 0),
                completion_tokens=usage.get("completion_tokens", 0),
                total_tokens=usage.get("total_tokens", 0),
            )

        except (KeyError, IndexError, AttributeError) as e:
            raise LLMError(
                "Unexpected response format from LLM",
                details={"error": str(e)},
            ) from e

    async def generate_text(
        self,
        prompt: str,
        system_prompt: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> GenerationResult:
        """Generate text from a simple prompt."""
        messages: list[Message] = []

        if system_prompt:
            messages.append(Message(role=Role.SYSTEM, content=system_prompt))

        messages.append(Message(role=Role.USER, content=prompt))

        return await self.generate(
            messages=messages,
            temperature=temperature,
            max_tokens=max_tokens,
        )
