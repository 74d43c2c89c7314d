"""
Shared fixtures: a deterministic bag-of-words embedder and chunk builders.
"""

import re
from typing import List

import pytest

VOCABULARY = [
    "workflow", "spreadsheet", "manual", "challenge", "slow", "budget",
    "price", "cost", "team", "role", "manager", "tool", "automation",
    "weather", "holiday",
]


class FakeEmbedder:
    """
    Deterministic embedding capability for tests.

    Each text becomes a count vector over VOCABULARY, so texts sharing
    vocabulary words are similar and texts sharing none score 0.
    """

    def __init__(self, vocabulary: List[str] = None):
        self.vocabulary = list(vocabulary or VOCABULARY)
        self.calls: List[List[str]] = []

    def vector(self, text: str) -> List[float]:
        words = re.findall(r"[a-z]+", text.lower())
        return [float(words.count(term)) for term in self.vocabulary]

    def embed(self, texts: List[str]) -> List[List[float]]:
        self.calls.append(list(texts))
        return [self.vector(t) for t in texts]


@pytest.fixture
def fake_embedder():
    return FakeEmbedder()


@pytest.fixture
def gateway(fake_embedder):
    from groundwork.common.embedding_service import EmbeddingGateway
    return EmbeddingGateway(fake_embedder.embed, model="fake-bow")


def make_chunk(chunk_id, content="", embedding=None, file_id="p01", label="P01"):
    from groundwork.common.schemas import TranscriptChunk
    return TranscriptChunk(
        id=chunk_id,
        content=content or f"content of {chunk_id}",
        start_char=0,
        end_char=len(content),
        token_count=len(content) // 4,
        embedding=embedding,
        source_file_id=file_id,
        source_label=label,
    )


def make_file(file_id, label, contents):
    from groundwork.common.schemas import TranscriptFile
    chunks = [
        make_chunk(f"{file_id}_c{i:02d}", text, file_id=file_id, label=label)
        for i, text in enumerate(contents)
    ]
    return TranscriptFile(file_id=file_id, label=label, chunks=chunks)


@pytest.fixture
def chunk_factory():
    return make_chunk


@pytest.fixture
def file_factory():
    return make_file
