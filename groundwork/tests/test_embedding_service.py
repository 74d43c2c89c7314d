"""Tests for the embedding gateway: batching correctness and similarity math."""

import numpy as np
import pytest


class TestSimilarity:
    def test_identical_vectors(self):
        from groundwork.common.embedding_service import EmbeddingGateway

        assert EmbeddingGateway.similarity([1.0, 2.0, 3.0], [1.0, 2.0, 3.0]) == pytest.approx(1.0)

    def test_opposite_vectors(self):
        from groundwork.common.embedding_service import EmbeddingGateway

        assert EmbeddingGateway.similarity([1.0, 2.0], [-1.0, -2.0]) == pytest.approx(-1.0)

    def test_orthogonal_vectors(self):
        from groundwork.common.embedding_service import EmbeddingGateway

        assert EmbeddingGateway.similarity([1.0, 0.0], [0.0, 1.0]) == pytest.approx(0.0)

    def test_zero_magnitude_is_exactly_zero(self):
        from groundwork.common.embedding_service import EmbeddingGateway

        assert EmbeddingGateway.similarity([0.0, 0.0, 0.0], [1.0, 2.0, 3.0]) == 0.0
        assert EmbeddingGateway.similarity([1.0, 2.0, 3.0], [0.0, 0.0, 0.0]) == 0.0

    def test_symmetric_and_bounded(self):
        from groundwork.common.embedding_service import EmbeddingGateway

        a, b = [0.3, -1.2, 4.0], [2.5, 0.1, -0.7]
        ab = EmbeddingGateway.similarity(a, b)

        assert ab == pytest.approx(EmbeddingGateway.similarity(b, a))
        assert -1.0 <= ab <= 1.0

    def test_dimension_mismatch_raises(self):
        from groundwork.common.embedding_service import EmbeddingGateway
        from groundwork.common.errors import EmbeddingDimensionError

        with pytest.raises(EmbeddingDimensionError) as exc_info:
            EmbeddingGateway.similarity([1.0, 2.0], [1.0, 2.0, 3.0])

        assert exc_info.value.stage == "search"

    def test_batch_similarity_matches_pairwise(self):
        from groundwork.common.embedding_service import EmbeddingGateway

        query = [1.0, 0.0, 1.0]
        vectors = [[1.0, 0.0, 1.0], [0.0, 1.0, 0.0], [0.0, 0.0, 0.0], [2.0, 1.0, 0.0]]

        scores = EmbeddingGateway.batch_similarity(query, vectors)

        assert scores == pytest.approx([EmbeddingGateway.similarity(query, v) for v in vectors])
        assert scores[2] == 0.0

    def test_batch_similarity_empty(self):
        from groundwork.common.embedding_service import EmbeddingGateway

        assert EmbeddingGateway.batch_similarity([1.0], []) == []

    def test_batch_similarity_mismatch_raises(self):
        from groundwork.common.embedding_service import EmbeddingGateway
        from groundwork.common.errors import EmbeddingDimensionError

        with pytest.raises(EmbeddingDimensionError):
            EmbeddingGateway.batch_similarity([1.0, 0.0], [[1.0, 0.0], [1.0, 0.0, 0.0]])


class TestEmbedBatch:
    def test_one_call_per_batch(self, gateway, fake_embedder):
        vectors = gateway.embed_batch(["workflow slow", "budget cost", "team role"], batch_id="p01")

        assert len(vectors) == 3
        assert len(fake_embedder.calls) == 1
        assert gateway.call_count == 1
        assert fake_embedder.calls[0] == ["workflow slow", "budget cost", "team role"]

    def test_output_order_matches_input(self, gateway, fake_embedder):
        texts = ["budget", "workflow", "team"]

        vectors = gateway.embed_batch(texts)

        assert vectors == [fake_embedder.vector(t) for t in texts]

    def test_empty_input_makes_no_call(self, gateway, fake_embedder):
        assert gateway.embed_batch([]) == []
        assert fake_embedder.calls == []
        assert gateway.call_count == 0

    def test_numpy_output_accepted(self):
        from groundwork.common.embedding_service import EmbeddingGateway

        gateway = EmbeddingGateway(lambda texts: np.ones((len(texts), 4)))

        vectors = gateway.embed_batch(["a", "b"])

        assert vectors == [[1.0] * 4, [1.0] * 4]

    def test_count_mismatch_raises(self):
        from groundwork.common.embedding_service import EmbeddingGateway
        from groundwork.common.errors import EmbeddingCountMismatchError, EmbeddingTransportError

        gateway = EmbeddingGateway(lambda texts: [[1.0, 0.0]])

        with pytest.raises(EmbeddingCountMismatchError) as exc_info:
            gateway.embed_batch(["one", "two"], batch_id="p07")

        assert isinstance(exc_info.value, EmbeddingTransportError)
        assert exc_info.value.batch_id == "p07"
        assert exc_info.value.item_count == 2
        assert "batch=p07" in str(exc_info.value)

    def test_inconsistent_dimensions_raise(self):
        from groundwork.common.embedding_service import EmbeddingGateway
        from groundwork.common.errors import EmbeddingDimensionError

        gateway = EmbeddingGateway(lambda texts: [[1.0, 0.0], [1.0, 0.0, 0.0]])

        with pytest.raises(EmbeddingDimensionError):
            gateway.embed_batch(["one", "two"])

    def test_provider_error_wrapped_with_context(self):
        from groundwork.common.embedding_service import EmbeddingGateway
        from groundwork.common.errors import EmbeddingTransportError

        def failing(texts):
            raise ConnectionError("quota exceeded")

        gateway = EmbeddingGateway(failing)

        with pytest.raises(EmbeddingTransportError) as exc_info:
            gateway.embed_batch(["one", "two", "three"], batch_id="p03")

        err = exc_info.value
        assert err.stage == "embedding"
        assert "quota exceeded" in err.message
        assert "batch=p03" in err.message
        assert "items=3" in err.message
        assert isinstance(err.__cause__, ConnectionError)


class TestEmbedQuery:
    def test_returns_text_and_vector(self, gateway, fake_embedder):
        from groundwork.common.schemas import QueryEmbedding

        result = gateway.embed_query("budget and cost")

        assert isinstance(result, QueryEmbedding)
        assert result.text == "budget and cost"
        assert result.embedding == fake_embedder.vector("budget and cost")

    @pytest.mark.parametrize("text", ["", "   "])
    def test_blank_text_rejected(self, gateway, text):
        with pytest.raises(ValueError, match="empty"):
            gateway.embed_query(text)

    def test_failure_names_the_query(self):
        from groundwork.common.embedding_service import EmbeddingGateway
        from groundwork.common.errors import EmbeddingTransportError

        def failing(texts):
            raise TimeoutError("read timed out")

        gateway = EmbeddingGateway(failing)

        with pytest.raises(EmbeddingTransportError) as exc_info:
            gateway.embed_query("How do you budget for tools?")

        assert "query=How do you budget for tools?" in str(exc_info.value)
        assert "query embedding" in exc_info.value.message


class TestAsyncWrappers:
    @pytest.mark.asyncio
    async def test_aembed_batch(self, gateway, fake_embedder):
        vectors = await gateway.aembed_batch(["workflow", "budget"], batch_id="p01")

        assert vectors == [fake_embedder.vector("workflow"), fake_embedder.vector("budget")]
        assert gateway.call_count == 1

    @pytest.mark.asyncio
    async def test_aembed_query(self, gateway):
        result = await gateway.aembed_query("team manager")

        assert result.text == "team manager"
        assert sum(result.embedding) == 2.0


class TestQueryErrorTypes:
    def test_count_mismatch_keeps_its_type(self):
        from groundwork.common.embedding_service import EmbeddingGateway
        from groundwork.common.errors import EmbeddingCountMismatchError

        gateway = EmbeddingGateway(lambda texts: [[1.0, 0.0], [0.0, 1.0]])

        with pytest.raises(EmbeddingCountMismatchError) as exc_info:
            gateway.embed_query("Describe your workflow", query_id="q1")

        message = str(exc_info.value)
        assert "query=q1" in message
        assert "items=" not in message
        assert "batch=" not in message


class TestCallCount:
    @pytest.mark.asyncio
    async def test_concurrent_batches_all_counted(self, gateway):
        import asyncio

        await asyncio.gather(*[gateway.aembed_batch([f"workflow {i}"]) for i in range(40)])

        assert gateway.call_count == 40

    def test_empty_batch_not_counted(self, gateway):
        gateway.embed_batch([])
        gateway.embed_query("budget")

        assert gateway.call_count == 1
