"""Chat model clients - streaming HTTP calls to Ollama and OpenAI-compatible APIs."""

import json
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Mapping

import httpx

from seqthink.abort import AbortSignal
from seqthink.exceptions import LLMAPIError, LLMError
from seqthink.logging import get_logger

log = get_logger(__name__)


OLLAMA_NATIVE_BASE_URL = "http://127.0.0.1:11434"
OPENAI_BASE_URL = "https://api.openai.com/v1"


@dataclass
class Message:
    """A message in the conversation."""

    role: str  # "system", "user", "assistant"
    content: str

    def to_dict(self) -> dict[str, str]:
        return {"role": self.role, "content": self.content}


@dataclass
class ContentPart:
    """One typed part of a multi-part delta."""

    type: str  # "text" or "thinking"
    text: str = ""
    thinking: str = ""

    @property
    def is_reasoning(self) -> bool:
        return self.type == "thinking"

    @property
    def value(self) -> str:
        return self.thinking if self.is_reasoning else self.text


@dataclass
class StreamChunk:
    """An incremental response payload.

    ``content`` is either plain text or an ordered list of typed parts;
    ``reasoning_content`` is the side channel some providers use for thinking.
    """

    content: str | list[ContentPart] = ""
    reasoning_content: str | None = None

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "StreamChunk":
        """Build a chunk from a raw provider delta."""
        raw_content = payload.get("content")
        content: str | list[ContentPart]
        if isinstance(raw_content, list):
            content = []
            for part in raw_content:
                if isinstance(part, ContentPart):
                    content.append(part)
                elif isinstance(part, Mapping):
                    content.append(ContentPart(
                        type=str(part.get("type", "text")),
                        text=str(part.get("text", "") or ""),
                        thinking=str(part.get("thinking", "") or ""),
                    ))
        else:
            content = str(raw_content) if raw_content is not None else ""

        extra = payload.get("additional_kwargs") or {}
        reasoning = (
            payload.get("reasoning_content")
            or payload.get("reasoning")
            or payload.get("thinking")
            or (extra.get("reasoning_content") if isinstance(extra, Mapping) else None)
        )
        return cls(content=content, reasoning_content=str(reasoning) if reasoning else None)


@dataclass
class ChatModelInfo:
    """Identity of the model behind a client."""

    provider: str
    model: str
    extra: dict[str, Any] = field(default_factory=dict)


class ChatModel(ABC):
    """Abstract base class for streaming chat models."""

    provider: str = ""
    model: str = ""

    @abstractmethod
    def stream(
        self,
        messages: list[Message],
        abort: AbortSignal | None = None,
    ) -> AsyncIterator[StreamChunk]:
        pass

    def info(self) -> ChatModelInfo:
        return ChatModelInfo(provider=self.provider, model=self.model)

    async def close(self) -> None:
        return None


def parse_ollama_line(line: str) -> tuple[StreamChunk | None, bool]:
    """Parse one NDJSON line from ``/api/chat``; returns (chunk, done)."""
    if not line.strip():
        return None, False
    try:
        data = json.loads(line)
    except json.JSONDecodeError:
        return None, False
    if data.get("error"):
        raise LLMAPIError(f"Ollama stream error: {data['error']}")
    message = data.get("message") or {}
    chunk = StreamChunk(
        content=str(message.get("content") or ""),
        reasoning_content=message.get("thinking") or None,
    )
    return chunk, bool(data.get("done"))


def parse_openai_sse_line(line: str) -> tuple[StreamChunk | None, bool]:
    """Parse one server-sent-event line from ``/chat/completions``; returns (chunk, done)."""
    stripped = line.strip()
    if not stripped.startswith("data:"):
        return None, False
    payload = stripped[len("data:"):].strip()
    if payload == "[DONE]":
        return None, True
    try:
        data = json.loads(payload)
    except json.JSONDecodeError:
        return None, False
    if data.get("error"):
        raise LLMAPIError(f"Stream error: {data['error']}")
    choices = data.get("choices") or []
    if not choices:
        return None, False
    delta = choices[0].get("delta") or {}
    return StreamChunk.from_payload(delta), False


class OllamaChatModel(ChatModel):
    """Direct Ollama API client."""

    provider = "ollama"

    def __init__(
        self,
        model: str = "llama3.2",
        base_url: str = OLLAMA_NATIVE_BASE_URL,
        temperature: float = 0.7,
        max_tokens: int = 4096,
        api_key: str | None = None,
        client: httpx.AsyncClient | None = None,
    ):
        """Initialize Ollama client.

        Args:
            model: Ollama model name (e.g., 'llama3.2', 'qwen3:32b')
            base_url: Ollama API base URL
            temperature: Sampling temperature
            max_tokens: Max tokens to generate
            api_key: Optional API key (Ollama usually doesn't need one locally)
        """
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.api_key = api_key
        self.client = client or httpx.AsyncClient(timeout=120.0, follow_redirects=True)

    async def stream(
        self,
        messages: list[Message],
        abort: AbortSignal | None = None,
    ) -> AsyncIterator[StreamChunk]:
        """Stream a completion, surfacing ``message.thinking`` as reasoning."""
        url = f"{self.base_url}/api/chat"
        body: dict[str, Any] = {
            "model": self.model,
            "messages": [m.to_dict() for m in messages],
            "stream": True,
            "options": {
                "temperature": self.temperature,
                "num_predict": self.max_tokens,
            },
        }
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"

        try:
            log.debug("Calling Ollama", model=self.model, url=url, msg_count=len(messages))
            async with self.client.stream("POST", url, json=body, headers=headers) as response:
                if not response.is_success:
                    error_text = (await response.aread()).decode("utf-8", errors="replace")
                    raise LLMAPIError(
                        f"Ollama API error {response.status_code}: {error_text}",
                        status_code=response.status_code,
                    )
                async for line in response.aiter_lines():
                    if abort is not None and abort.aborted:
                        break
                    chunk, done = parse_ollama_line(line)
                    if chunk is not None:
                        yield chunk
                    if done:
                        break
        except LLMError:
            raise
        except httpx.HTTPError as e:
            raise LLMAPIError(f"Ollama streaming error: {e}") from e
        except Exception as e:
            raise LLMError(f"Ollama stream failed: {e}") from e

    async def close(self) -> None:
        """Close the HTTP client."""
        await self.client.aclose()


class OpenAICompatibleChatModel(ChatModel):
    """OpenAI-style ``/chat/completions`` streaming client.

    Works with providers that put reasoning in ``delta.reasoning_content``
    (DeepSeek) or ``delta.reasoning`` (OpenRouter) alongside plain content.
    """

    def __init__(
        self,
        model: str,
        base_url: str = OPENAI_BASE_URL,
        api_key: str | None = None,
        temperature: float = 0.7,
        max_tokens: int = 4096,
        provider: str = "openai",
        client: httpx.AsyncClient | None = None,
    ):
        self.model = model
        self.provider = provider
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.client = client or httpx.AsyncClient(timeout=120.0, follow_redirects=True)

    async def stream(
        self,
        messages: list[Message],
        abort: AbortSignal | None = None,
    ) -> AsyncIterator[StreamChunk]:
        url = f"{self.base_url}/chat/completions"
        body = {
            "model": self.model,
            "messages": [m.to_dict() for m in messages],
            "stream": True,
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
        }
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"

        try:
            log.debug("Calling chat completions", provider=self.provider, model=self.model, url=url)
            async with self.client.stream("POST", url, json=body, headers=headers) as response:
                if not response.is_success:
                    error_text = (await response.aread()).decode("utf-8", errors="replace")
                    raise LLMAPIError(
                        f"{self.provider} API error {response.status_code}: {error_text}",
                        status_code=response.status_code,
                    )
                async for line in response.aiter_lines():
                    if abort is not None and abort.aborted:
                        break
                    chunk, done = parse_openai_sse_line(line)
                    if chunk is not None:
                        yield chunk
                    if done:
                        break
        except LLMError:
            raise
        except httpx.HTTPError as e:
            raise LLMAPIError(f"{self.provider} streaming error: {e}") from e
        except Exception as e:
            raise LLMError(f"{self.provider} stream failed: {e}") from e

    async def close(self) -> None:
        await self.client.aclose()


_PROVIDER_BASE_URLS = {
    "openai": OPENAI_BASE_URL,
    "deepseek": "https://api.deepseek.com/v1",
    "openrouter": "https://openrouter.ai/api/v1",
}

_PROVIDER_ALIASES = {
    "chatgpt": "openai",
}


def create_chat_model(
    provider: str = "ollama",
    model: str = "llama3.2",
    api_key: str | None = None,
    base_url: str | None = None,
    temperature: float = 0.7,
    max_tokens: int = 4096,
) -> ChatModel:
    """Create a chat model client.

    Args:
        provider: Provider name (ollama, openai, deepseek, openrouter, or any
            OpenAI-compatible name when ``base_url`` is given)
        model: Model name
        api_key: Optional API key
        base_url: Optional base URL
        temperature: Default temperature
        max_tokens: Default max tokens

    Returns:
        Configured ChatModel instance
    """
    key = str(provider or "").strip().lower()
    key = _PROVIDER_ALIASES.get(key, key)
    if key == "ollama":
        return OllamaChatModel(
            model=model,
            base_url=base_url or OLLAMA_NATIVE_BASE_URL,
            temperature=temperature,
            max_tokens=max_tokens,
            api_key=api_key,
        )
    resolved_base = base_url or _PROVIDER_BASE_URLS.get(key)
    if not resolved_base:
        raise ValueError(
            f"Provider '{provider}' not supported. Use 'ollama', 'openai', 'deepseek', "
            "'openrouter' or set a base_url for an OpenAI-compatible endpoint."
        )
    return OpenAICompatibleChatModel(
        model=model,
        base_url=resolved_base,
        api_key=api_key,
        temperature=temperature,
        max_tokens=max_tokens,
        provider=key,
    )


# Global chat model instance
_chat_model: ChatModel | None = None


def get_chat_model() -> ChatModel:
    """Get the global chat model instance."""
    global _chat_model
    if _chat_model is None:
        from seqthink.config import get_config
        cfg = get_config()
        _chat_model = create_chat_model(
            provider=cfg.model.provider,
            model=cfg.model.model,
            api_key=cfg.model.api_key or None,
            base_url=cfg.model.base_url or None,
            temperature=cfg.model.temperature,
            max_tokens=cfg.model.max_tokens,
        )
    return _chat_model


def set_chat_model(model: ChatModel | None) -> None:
    """Set (or reset with ``None``) the global chat model instance."""
    global _chat_model
    _chat_model = model
