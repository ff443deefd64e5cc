from unittest.mock import MagicMock, patch

import openai
import pytest

from docqa.adapters import ProviderRegistry, create_llm, list_llm_providers
from docqa.adapters.llm import OllamaLLM, OpenAILLM
from docqa.exceptions import (
    GenerationError,
    ProviderAuthError,
    ProviderError,
    ProviderTransientError,
)
from docqa.models.chat import GenerationDelta


def _stream_event(content, finish_reason=None) -> MagicMock:
    choice = MagicMock()
    choice.delta.content = content
    choice.finish_reason = finish_reason
    event = MagicMock()
    event.choices = [choice]
    return event


def _openai_stream(events) -> MagicMock:
    stream = MagicMock()
    stream.__iter__.return_value = iter(events)
    return stream


def _ollama_stream(lines) -> MagicMock:
    response = MagicMock()
    response.iter_lines.return_value = lines
    response.raise_for_status = MagicMock()
    return response


class TestOpenAILLM:
    def _llm(self, **kwargs) -> OpenAILLM:
        kwargs.setdefault("initial_delay", 0)
        llm = OpenAILLM(model="gpt-4o-mini", api_key="test-key", **kwargs)
        llm.client = MagicMock()
        return llm

    def test_chat_returns_response(self) -> None:
        llm = self._llm()
        mock_response = MagicMock()
        mock_response.choices = [MagicMock(message=MagicMock(content="Hello!"))]
        llm.client.chat.completions.create.return_value = mock_response

        messages = [{"role": "user", "content": "Hi"}]
        result = llm.chat(messages)

        assert result == "Hello!"
        llm.client.chat.completions.create.assert_called_once_with(
            model="gpt-4o-mini", messages=messages, temperature=0.3, max_tokens=4096
        )

    def test_generate_with_system_prompt(self) -> None:
        llm = self._llm()
        mock_response = MagicMock()
        mock_response.choices = [MagicMock(message=MagicMock(content="Answer"))]
        llm.client.chat.completions.create.return_value = mock_response

        llm.generate("Question", system_prompt="Be brief")

        messages = llm.client.chat.completions.create.call_args.kwargs["messages"]
        assert messages == [
            {"role": "system", "content": "Be brief"},
            {"role": "user", "content": "Question"},
        ]

    def test_stream_chat_yields_deltas_and_done(self) -> None:
        llm = self._llm()
        stream = _openai_stream(
            [_stream_event("Hel"), _stream_event("lo"), _stream_event(None, "stop")]
        )
        llm.client.chat.completions.create.return_value = stream

        deltas = list(llm.stream_chat([{"role": "user", "content": "Hi"}]))

        assert deltas == [
            GenerationDelta(text="Hel"),
            GenerationDelta(text="lo"),
            GenerationDelta(done=True),
        ]
        assert llm.client.chat.completions.create.call_args.kwargs["stream"] is True
        stream.close.assert_called_once()

    def test_stream_without_finish_reason_has_no_done_marker(self) -> None:
        llm = self._llm()
        llm.client.chat.completions.create.return_value = _openai_stream(
            [_stream_event("partial")]
        )

        deltas = list(llm.stream_chat([{"role": "user", "content": "Hi"}]))

        assert deltas == [GenerationDelta(text="partial")]

    def test_stream_error_is_translated_and_stream_closed(self) -> None:
        llm = self._llm()
        stream = MagicMock()
        stream.__iter__.side_effect = openai.APIConnectionError(request=MagicMock())
        llm.client.chat.completions.create.return_value = stream

        with pytest.raises(ProviderTransientError):
            list(llm.stream_chat([{"role": "user", "content": "Hi"}]))
        stream.close.assert_called_once()
        # Mid-stream failures are not retried.
        llm.client.chat.completions.create.assert_called_once()

    def test_abandoned_stream_is_closed(self) -> None:
        llm = self._llm()
        stream = _openai_stream([_stream_event("a"), _stream_event("b")])
        llm.client.chat.completions.create.return_value = stream

        deltas = llm.stream_chat([{"role": "user", "content": "Hi"}])
        assert next(deltas) == GenerationDelta(text="a")
        deltas.close()

        stream.close.assert_called_once()

    def test_opening_stream_is_retried(self) -> None:
        llm = self._llm()
        llm.client.chat.completions.create.side_effect = [
            openai.RateLimitError(
                "rate limited", response=MagicMock(status_code=429), body=None
            ),
            _openai_stream([_stream_event("ok", "stop")]),
        ]

        deltas = list(llm.generate_stream("Hi"))

        assert deltas[-1].done
        assert llm.client.chat.completions.create.call_count == 2

    def test_auth_error_fails_fast(self) -> None:
        llm = self._llm()
        llm.client.chat.completions.create.side_effect = openai.AuthenticationError(
            "bad key", response=MagicMock(status_code=401), body=None
        )

        with pytest.raises(ProviderAuthError):
            llm.generate("Hi")
        llm.client.chat.completions.create.assert_called_once()

    def test_supports_streaming(self) -> None:
        assert OpenAILLM(api_key="test-key").supports_streaming is True


class TestOllamaLLM:
    def test_chat_returns_response(self) -> None:
        with patch("requests.Session.post") as mock_post:
            mock_response = MagicMock()
            mock_response.json.return_value = {"message": {"content": "Hello!"}}
            mock_response.raise_for_status = MagicMock()
            mock_post.return_value = mock_response

            llm = OllamaLLM(model="llama3")
            result = llm.chat([{"role": "user", "content": "Hi"}])

            assert result == "Hello!"
            payload = mock_post.call_args[1]["json"]
            assert payload["stream"] is False
            assert payload["options"] == {"temperature": 0.3, "num_predict": 4096}
            assert mock_post.call_args[0][0].endswith("/api/chat")

    def test_stream_chat_reads_ndjson(self) -> None:
        lines = [
            b'{"message": {"content": "Hel"}, "done": false}',
            b"",
            b'{"message": {"content": "lo"}, "done": false}',
            b'{"message": {"content": ""}, "done": true}',
            b'{"message": {"content": "ignored"}, "done": false}',
        ]
        with patch("requests.Session.post") as mock_post:
            response = _ollama_stream(lines)
            mock_post.return_value = response

            llm = OllamaLLM(model="llama3")
            deltas = list(llm.stream_chat([{"role": "user", "content": "Hi"}]))

        assert deltas == [
            GenerationDelta(text="Hel"),
            GenerationDelta(text="lo"),
            GenerationDelta(done=True),
        ]
        assert mock_post.call_args[1]["stream"] is True
        response.close.assert_called_once()

    def test_stream_error_line_raises(self) -> None:
        with patch("requests.Session.post") as mock_post:
            response = _ollama_stream([b'{"error": "model not found"}'])
            mock_post.return_value = response

            llm = OllamaLLM(model="missing")
            with pytest.raises(ProviderError, match="model not found"):
                list(llm.stream_chat([{"role": "user", "content": "Hi"}]))

        response.close.assert_called_once()

    def test_malformed_stream_line_raises(self) -> None:
        with patch("requests.Session.post") as mock_post:
            mock_post.return_value = _ollama_stream([b"not json"])

            llm = OllamaLLM(model="llama3")
            with pytest.raises(GenerationError):
                list(llm.stream_chat([{"role": "user", "content": "Hi"}]))

    def test_supports_streaming(self) -> None:
        assert OllamaLLM(model="llama3").supports_streaming is True


class TestLLMRegistry:
    def test_providers_registered(self) -> None:
        assert {"openai", "ollama"} <= set(list_llm_providers())

    def test_create_llm(self) -> None:
        llm = create_llm("ollama", model="llama3", temperature=0.0)
        assert isinstance(llm, OllamaLLM)
        assert llm.temperature == 0.0

    def test_unknown_provider(self) -> None:
        with pytest.raises(ValueError, match="Unknown LLM provider"):
            create_llm("nope")

    def test_registry_is_independent(self) -> None:
        registry: ProviderRegistry[OllamaLLM] = ProviderRegistry("test")
        registry.register("local", OllamaLLM)

        assert registry.providers() == ["local"]
        assert isinstance(registry.create("local", model="llama3"), OllamaLLM)
        assert "local" not in list_llm_providers()
        with pytest.raises(ValueError, match="Unknown test provider: remote"):
            registry.create("remote")
