import logging
import time
from typing import Any, Callable, Iterator, Optional, Sequence

import pydantic
import tiktoken

from docqa.adapters import BaseLLM
from docqa.citations import DEFAULT_FALLBACK_COUNT, extract_citations
from docqa.config import get_config_value
from docqa.exceptions import DocQAError, GenerationError, NotFoundError, ValidationError
from docqa.models import AnswerResult, ChatEvent, ChatRequest, Chunk, RetrievalResult

from .base import (
    CHUNK_BLOCK_TEMPLATE,
    DEFAULT_ANSWER_TIMEOUT,
    DEFAULT_CONTEXT_TEMPLATE,
    DEFAULT_MAX_CONTEXT_TOKENS,
    NOT_FOUND_MESSAGE,
    SYSTEM_PROMPT,
    create_llm_from_config,
)
from .retrieval import RetrievalPipeline

logger = logging.getLogger(__name__)

GENERIC_ERROR_MESSAGE = "An unexpected error occurred while answering the question"
ENCODING_CACHE: dict[str, tiktoken.Encoding] = {}


def get_tokenizer(model: str) -> tiktoken.Encoding:
    if model not in ENCODING_CACHE:
        try:
            ENCODING_CACHE[model] = tiktoken.encoding_for_model(model)
        except KeyError:
            ENCODING_CACHE[model] = tiktoken.get_encoding("cl100k_base")
    return ENCODING_CACHE[model]


def count_tokens(text: str, model: str = "gpt-4") -> int:
    encoder = get_tokenizer(model)
    return len(encoder.encode(text))


def _as_request(request: ChatRequest | dict[str, Any]) -> ChatRequest:
    if isinstance(request, ChatRequest):
        return request
    try:
        return ChatRequest(**request)
    except pydantic.ValidationError as e:
        error = e.errors()[0]
        field = ".".join(str(part) for part in error["loc"])
        raise ValidationError(f"Invalid request: {field}: {error['msg']}", field=field) from e


class ChatPipeline:
    """Answers questions about a stored document as an event stream.

    Every stream ends with exactly one terminal event, ``done`` or
    ``error``. Citations are extracted once the generator has sent its end
    marker; anything it produces after the marker is ignored.
    """

    def __init__(
        self,
        retrieval: RetrievalPipeline,
        llm: BaseLLM,
        system_prompt: str = SYSTEM_PROMPT,
        context_template: str = DEFAULT_CONTEXT_TEMPLATE,
        max_context_tokens: int = DEFAULT_MAX_CONTEXT_TOKENS,
        answer_timeout: float = DEFAULT_ANSWER_TIMEOUT,
        fallback_count: int = DEFAULT_FALLBACK_COUNT,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.retrieval = retrieval
        self.llm = llm
        self.system_prompt = system_prompt
        self.context_template = context_template
        self.max_context_tokens = max_context_tokens
        self.answer_timeout = answer_timeout
        self.fallback_count = fallback_count
        self._clock = clock

    @classmethod
    def from_config(
        cls,
        config: dict[str, Any],
        retrieval: Optional[RetrievalPipeline] = None,
        llm: Optional[BaseLLM] = None,
    ) -> "ChatPipeline":
        """Create pipeline from configuration dictionary."""
        return cls(
            retrieval=retrieval or RetrievalPipeline.from_config(config),
            llm=llm or create_llm_from_config(config),
            max_context_tokens=get_config_value(
                config, "chat.max_context_tokens", DEFAULT_MAX_CONTEXT_TOKENS
            ),
            answer_timeout=get_config_value(
                config, "chat.answer_timeout", DEFAULT_ANSWER_TIMEOUT
            ),
            fallback_count=get_config_value(
                config, "citations.fallback_count", DEFAULT_FALLBACK_COUNT
            ),
        )

    def build_prompt(self, question: str, chunks: Sequence[Chunk]) -> tuple[str, list[Chunk]]:
        """Build the user prompt for ``question``.

        Context blocks are added in retrieval order until the token budget
        runs out.

        Returns:
            The prompt and the chunks that made it into the context.
        """
        model = getattr(self.llm, "model", "gpt-4")
        template_overhead = count_tokens(
            self.system_prompt
            + self.context_template.format(question=question, top_k=len(chunks), context=""),
            model,
        )
        available_tokens = self.max_context_tokens - template_overhead

        blocks: list[str] = []
        used: list[Chunk] = []
        current_tokens = 0

        for chunk in chunks:
            block = CHUNK_BLOCK_TEMPLATE.format(
                index=len(used) + 1,
                chunk_id=chunk.id,
                page_number=chunk.page_number,
                text=chunk.text,
            )
            block_tokens = count_tokens(block, model)
            if current_tokens + block_tokens > available_tokens:
                logger.warning(
                    f"Context truncated to {len(used)}/{len(chunks)} chunks, "
                    f"{current_tokens} tokens (limit: {self.max_context_tokens})"
                )
                break
            blocks.append(block)
            used.append(chunk)
            current_tokens += block_tokens

        prompt = self.context_template.format(
            question=question,
            top_k=len(chunks),
            context="".join(blocks),
        )
        return prompt, used

    def _retrieve(self, request: ChatRequest) -> RetrievalResult:
        if not self.retrieval.vector_store.has_doc(request.doc_id):
            raise NotFoundError(request.doc_id)
        return self.retrieval.search(request.doc_id, request.question, top_k=request.top_k)

    def stream_answer(self, request: ChatRequest | dict[str, Any]) -> Iterator[ChatEvent]:
        """Answer a question as an ordered stream of chat events."""
        try:
            request = _as_request(request)
            result = self._retrieve(request)
        except DocQAError as e:
            logger.error(f"Chat request failed before generation: {e}")
            yield ChatEvent.error_event(e.message)
            return
        except Exception:
            logger.exception("Retrieval failed")
            yield ChatEvent.error_event(GENERIC_ERROR_MESSAGE)
            return

        if not result.chunks:
            logger.info(f"No relevant chunks in {request.doc_id}")
            yield ChatEvent.text_delta(NOT_FOUND_MESSAGE)
            yield ChatEvent.done_event()
            return

        parts: list[str] = []
        context: list[Chunk] = []
        deltas = None
        try:
            prompt, context = self.build_prompt(request.question, result.chunks)
            deadline = self._clock() + self.answer_timeout
            deltas = self.llm.generate_stream(prompt, system_prompt=self.system_prompt)

            for delta in deltas:
                if self._clock() > deadline:
                    raise GenerationError(
                        f"Answer generation timed out after {self.answer_timeout} seconds"
                    )
                if delta.text:
                    parts.append(delta.text)
                    yield ChatEvent.text_delta(delta.text)
                if delta.done:
                    break
            else:
                raise GenerationError("Generation stream ended without a completion marker")
        except DocQAError as e:
            logger.error(f"Answer generation failed: {e}")
            yield ChatEvent.error_event(e.message)
            return
        except Exception:
            logger.exception("Answer generation failed")
            yield ChatEvent.error_event(GENERIC_ERROR_MESSAGE)
            return
        finally:
            if deltas is not None:
                deltas.close()

        citations = extract_citations("".join(parts), context, self.fallback_count)
        logger.info(f"Answered with {len(citations)} citations")
        yield ChatEvent.done_event(citations)

    def answer(self, request: ChatRequest | dict[str, Any]) -> AnswerResult:
        """Non-streaming answer. Errors are raised rather than reported as events."""
        request = _as_request(request)
        result = self._retrieve(request)
        if not result.chunks:
            return AnswerResult(text=NOT_FOUND_MESSAGE)

        prompt, context = self.build_prompt(request.question, result.chunks)
        text = self.llm.generate(prompt, system_prompt=self.system_prompt)
        return AnswerResult(
            text=text,
            citations=extract_citations(text, context, self.fallback_count),
            chunks=result.chunks,
            scores=result.scores,
        )
