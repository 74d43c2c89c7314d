"""
Embedding providers for the gateway.

Supports on-device fastembed and hosted OpenAI / Azure OpenAI behind a
shared ``embed(texts) -> vectors`` interface.
"""

from __future__ import annotations

import logging
from typing import List, Optional

from .config import EmbeddingConfig
from .errors import EmbeddingTransportError

logger = logging.getLogger("groundwork.common.embedding_providers")


class FastEmbedProvider:
    """On-device embeddings via fastembed. No data leaves the machine."""

    def __init__(self, model: str = "BAAI/bge-small-en-v1.5", batch_size: int = 64) -> None:
        self.model = model
        self.batch_size = batch_size
        try:
            from fastembed import TextEmbedding

            self._client = TextEmbedding(model_name=model)
        except ImportError as e:
            raise EmbeddingTransportError(
                "fastembed package not installed; install groundwork[local]"
            ) from e
        logger.info("FastEmbed provider initialized with model=%s", model)

    def embed(self, texts: List[str]) -> List[List[float]]:
        return [vec.tolist() for vec in self._client.embed(texts, batch_size=self.batch_size)]


class OpenAIEmbeddingProvider:
    """Hosted embeddings via the OpenAI SDK (plain or Azure deployment)."""

    def __init__(
        self,
        model: str = "text-embedding-3-small",
        api_key: Optional[str] = None,
        azure_endpoint: Optional[str] = None,
        api_version: str = "2024-10-21",
        dimensions: Optional[int] = None,
        timeout: float = 30.0,
    ) -> None:
        self.model = model
        self.dimensions = dimensions

        if not api_key:
            raise EmbeddingTransportError("Embedding API key not provided")

        from openai import AzureOpenAI, OpenAI

        if azure_endpoint:
            self._client = AzureOpenAI(
                api_key=api_key,
                azure_endpoint=azure_endpoint,
                api_version=api_version,
                timeout=timeout,
            )
            logger.info("Azure OpenAI embedding provider initialized with deployment=%s", model)
        else:
            self._client = OpenAI(api_key=api_key, timeout=timeout)
            logger.info("OpenAI embedding provider initialized with model=%s", model)

    def embed(self, texts: List[str]) -> List[List[float]]:
        kwargs = {"model": self.model, "input": texts}
        if self.dimensions:
            kwargs["dimensions"] = self.dimensions
        response = self._client.embeddings.create(**kwargs)
        # The API may return items out of order; index is authoritative
        items = sorted(response.data, key=lambda item: item.index)
        return [item.embedding for item in items]


def create_embedding_provider(config: EmbeddingConfig):
    """
    Build the provider selected by ``config.mode``.

    Modes: ``femb`` (fastembed), ``openai``, ``azure``.
    """
    mode = (config.mode or "femb").lower()

    if mode == "femb":
        return FastEmbedProvider(model=config.model, batch_size=config.batch_size)

    if mode == "openai":
        return OpenAIEmbeddingProvider(
            model=config.openai_model,
            api_key=config.openai_api_key,
            dimensions=config.dimensions,
        )

    if mode == "azure":
        if not config.azure_endpoint:
            raise EmbeddingTransportError("Missing Azure OpenAI embedding endpoint")
        return OpenAIEmbeddingProvider(
            model=config.azure_deployment or config.openai_model,
            api_key=config.azure_api_key,
            azure_endpoint=config.azure_endpoint,
            api_version=config.azure_api_version,
            dimensions=config.dimensions,
        )

    raise ValueError(f"Unsupported embedding mode: {config.mode}")
