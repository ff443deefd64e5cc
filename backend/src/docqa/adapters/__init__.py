"""Embedding and generation providers, looked up by name from config."""

from typing import Any, Generic, Type, TypeVar

from .base import BaseEmbedder, BaseLLM

A = TypeVar("A")


class ProviderRegistry(Generic[A]):
    """Maps a provider name (``"openai"``, ``"ollama"``) to an adapter class."""

    def __init__(self, kind: str):
        self.kind = kind
        self._classes: dict[str, Type[A]] = {}

    def register(self, provider: str, cls: Type[A]) -> None:
        self._classes[provider] = cls

    def create(self, provider: str, **kwargs: Any) -> A:
        """Instantiate ``provider`` with ``kwargs``.

        Raises:
            ValueError: If nothing is registered under ``provider``.
        """
        try:
            cls = self._classes[provider]
        except KeyError:
            raise ValueError(
                f"Unknown {self.kind} provider: {provider}. Available: {self.providers()}"
            ) from None
        return cls(**kwargs)

    def providers(self) -> list[str]:
        return sorted(self._classes)


embedders: ProviderRegistry[BaseEmbedder] = ProviderRegistry("embedder")
llms: ProviderRegistry[BaseLLM] = ProviderRegistry("LLM")


def register_embedder(provider: str, cls: Type[BaseEmbedder]) -> None:
    embedders.register(provider, cls)


def register_llm(provider: str, cls: Type[BaseLLM]) -> None:
    llms.register(provider, cls)


def create_embedder(provider: str, **kwargs: Any) -> BaseEmbedder:
    return embedders.create(provider, **kwargs)


def create_llm(provider: str, **kwargs: Any) -> BaseLLM:
    return llms.create(provider, **kwargs)


def list_embedder_providers() -> list[str]:
    return embedders.providers()


def list_llm_providers() -> list[str]:
    return llms.providers()


from .embedding import OllamaEmbedder, OpenAIEmbedder  # noqa: E402
from .llm import OllamaLLM, OpenAILLM  # noqa: E402

register_embedder("openai", OpenAIEmbedder)
register_embedder("ollama", OllamaEmbedder)
register_llm("openai", OpenAILLM)
register_llm("ollama", OllamaLLM)

__all__ = [
    "BaseEmbedder",
    "BaseLLM",
    "OllamaEmbedder",
    "OllamaLLM",
    "OpenAIEmbedder",
    "OpenAILLM",
    "ProviderRegistry",
    "create_embedder",
    "create_llm",
    "list_embedder_providers",
    "list_llm_providers",
    "register_embedder",
    "register_llm",
]
