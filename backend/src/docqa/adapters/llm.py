import json
import logging
from typing import Any, Iterator, Optional

import openai
from openai import OpenAI

from docqa.exceptions import GenerationError, ProviderError
from docqa.models.chat import GenerationDelta

from .base import DEFAULT_TIMEOUT, BaseLLM
from .utils import create_session_with_pooling, post_json, translate_openai_error

logger = logging.getLogger(__name__)

DEFAULT_TEMPERATURE = 0.3
DEFAULT_MAX_TOKENS = 4096


class OpenAILLM(BaseLLM):
    """OpenAI LLM provider."""

    def __init__(
        self,
        model: str = "gpt-4o-mini",
        temperature: float = DEFAULT_TEMPERATURE,
        max_tokens: Optional[int] = DEFAULT_MAX_TOKENS,
        timeout: float = DEFAULT_TIMEOUT,
        **kwargs: Any,
    ):
        api_key = kwargs.pop("api_key", None) or None
        base_url = kwargs.pop("base_url", None) or None
        super().__init__(model, **kwargs)

        self.client = OpenAI(
            api_key=api_key, base_url=base_url, timeout=timeout, max_retries=0
        )
        self.temperature = temperature
        self.max_tokens = max_tokens

    @property
    def supports_streaming(self) -> bool:
        return True

    def _get_completion_params(
        self, messages: list[dict[str, str]], **kwargs: Any
    ) -> dict[str, Any]:
        """Build parameters for chat completion."""
        return {
            "model": self.model,
            "messages": messages,
            "temperature": kwargs.get("temperature", self.temperature),
            "max_tokens": kwargs.get("max_tokens", self.max_tokens),
        }

    def _create(self, params: dict[str, Any]) -> Any:
        try:
            return self.client.chat.completions.create(**params)
        except openai.OpenAIError as e:
            raise translate_openai_error(e) from e

    def chat(self, messages: list[dict[str, str]], **kwargs: Any) -> str:
        params = self._get_completion_params(messages, **kwargs)
        response = self._with_retry(self._create, params)
        return response.choices[0].message.content or ""

    def stream_chat(
        self, messages: list[dict[str, str]], **kwargs: Any
    ) -> Iterator[GenerationDelta]:
        params = self._get_completion_params(messages, **kwargs)
        params["stream"] = True
        # Only opening the stream is retried; a stream that already produced
        # deltas cannot be replayed.
        stream = self._with_retry(self._create, params)

        try:
            for event in stream:
                if not event.choices:
                    continue
                choice = event.choices[0]
                content = choice.delta.content if choice.delta is not None else None
                if content:
                    yield GenerationDelta(text=content)
                if choice.finish_reason is not None:
                    logger.debug(f"Stream finished: {choice.finish_reason}")
                    yield GenerationDelta(done=True)
                    return
        except openai.OpenAIError as e:
            raise translate_openai_error(e) from e
        finally:
            stream.close()


class OllamaLLM(BaseLLM):
    """Ollama local LLM provider with connection pooling and NDJSON streaming."""

    def __init__(
        self,
        model: str = "llama3",
        temperature: float = DEFAULT_TEMPERATURE,
        max_tokens: Optional[int] = DEFAULT_MAX_TOKENS,
        base_url: str = "http://localhost:11434",
        timeout: float = DEFAULT_TIMEOUT,
        **kwargs: Any,
    ):
        kwargs.pop("api_key", None)
        super().__init__(model, **kwargs)
        self.base_url = (base_url or "http://localhost:11434").rstrip("/")
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.timeout = timeout
        self.session = create_session_with_pooling()

    @property
    def supports_streaming(self) -> bool:
        return True

    def _build_payload(self, messages: list[dict[str, str]], stream: bool, **kwargs: Any) -> dict[str, Any]:
        """Build request payload for Ollama API."""
        payload = {
            "model": self.model,
            "messages": messages,
            "stream": stream,
            "options": {"temperature": kwargs.get("temperature", self.temperature)},
        }
        max_tokens = kwargs.get("max_tokens", self.max_tokens)
        if max_tokens:
            payload["options"]["num_predict"] = max_tokens
        return payload

    def _post(self, payload: dict[str, Any], stream: bool = False) -> Any:
        return post_json(
            self.session,
            f"{self.base_url}/api/chat",
            payload,
            self.timeout,
            "ollama",
            stream=stream,
        )

    def chat(self, messages: list[dict[str, str]], **kwargs: Any) -> str:
        payload = self._build_payload(messages, stream=False, **kwargs)
        response = self._with_retry(self._post, payload)
        return response.json()["message"]["content"]

    def stream_chat(
        self, messages: list[dict[str, str]], **kwargs: Any
    ) -> Iterator[GenerationDelta]:
        payload = self._build_payload(messages, stream=True, **kwargs)
        response = self._with_retry(self._post, payload, stream=True)

        try:
            for line in response.iter_lines():
                if not line:
                    continue
                try:
                    data = json.loads(line)
                except json.JSONDecodeError as e:
                    raise GenerationError(f"Malformed stream line from Ollama: {line!r}") from e

                if "error" in data:
                    raise ProviderError(str(data["error"]), provider="ollama")

                content = data.get("message", {}).get("content")
                if content:
                    yield GenerationDelta(text=content)
                if data.get("done"):
                    yield GenerationDelta(done=True)
                    return
        finally:
            response.close()
