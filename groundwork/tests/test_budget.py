"""Tests for the retrieval budget and the keyword fallback."""

import pytest

from groundwork.tests.conftest import make_chunk


def result(chunk_id, similarity, label):
    from groundwork.retriever.vector_search import SearchResult
    return SearchResult(
        chunk=make_chunk(chunk_id, file_id=label.lower(), label=label),
        similarity=similarity,
        rank=0,
    )


class TestDeriveBudget:
    @pytest.mark.parametrize("file_count,max_chunks,cost_opt", [
        (1, 10, False),
        (5, 10, False),
        (10, 10, False),
        (11, 10, True),
        (20, 10, True),
        (21, 5, True),
        (25, 5, True),
    ])
    def test_thresholds(self, file_count, max_chunks, cost_opt):
        from groundwork.retriever.budget import derive_budget

        budget = derive_budget(file_count)

        assert budget.max_chunks_per_question == max_chunks
        assert budget.cost_optimization_enabled is cost_opt

    def test_budget_is_immutable(self):
        from dataclasses import FrozenInstanceError
        from groundwork.retriever.budget import derive_budget

        budget = derive_budget(5)

        with pytest.raises(FrozenInstanceError):
            budget.max_chunks_per_question = 99


class TestCapPerSource:
    def test_noop_without_cost_optimization(self):
        from groundwork.retriever.budget import RetrievalBudget, cap_per_source

        results = [result("a", 0.9, "P01"), result("b", 0.8, "P01")]

        capped = cap_per_source(results, RetrievalBudget(10, False), file_count=5)

        assert [r.chunk_id for r in capped] == ["a", "b"]

    def test_one_per_source_for_large_batches(self):
        from groundwork.retriever.budget import RetrievalBudget, cap_per_source

        results = [
            result("a", 0.9, "P01"),
            result("b", 0.85, "P01"),
            result("c", 0.8, "P02"),
            result("d", 0.75, "P03"),
            result("e", 0.7, "P02"),
        ]

        capped = cap_per_source(results, RetrievalBudget(5, True), file_count=25)

        assert [r.chunk_id for r in capped] == ["a", "c", "d"]
        assert [r.rank for r in capped] == [1, 2, 3]

    def test_share_scales_with_budget(self):
        from groundwork.retriever.budget import RetrievalBudget, cap_per_source

        results = [result(f"c{i}", 0.9 - i / 100, "P01") for i in range(4)]

        # 24 // 12 = 2 per source
        capped = cap_per_source(results, RetrievalBudget(24, True), file_count=12)

        assert [r.chunk_id for r in capped] == ["c0", "c1"]


class TestKeywordFallback:
    def test_extract_keywords(self):
        from groundwork.retriever.keyword_fallback import extract_keywords

        keywords = extract_keywords("Tell me about your budget and your budget process")

        assert keywords == ["budget", "process"]

    def test_matches_whole_words_in_chunk_order(self):
        from groundwork.retriever.keyword_fallback import FALLBACK_SIMILARITY, keyword_search

        chunks = [
            make_chunk("c1", "We have no budgeting at all"),
            make_chunk("c2", "The Budget is set yearly"),
            make_chunk("c3", "Weather was nice"),
            make_chunk("c4", "budget reviews happen monthly"),
        ]

        results = keyword_search("How do you plan the budget?", chunks)

        assert [r.chunk_id for r in results] == ["c2", "c4"]
        assert all(r.similarity == FALLBACK_SIMILARITY for r in results)
        assert [r.rank for r in results] == [1, 2]

    def test_max_results(self):
        from groundwork.retriever.keyword_fallback import keyword_search

        chunks = [make_chunk(f"c{i}", "budget talk") for i in range(8)]

        assert len(keyword_search("budget", chunks)) == 5
        assert len(keyword_search("budget", chunks, max_results=2)) == 2

    def test_no_keywords_matches_nothing(self):
        from groundwork.retriever.keyword_fallback import keyword_search

        assert keyword_search("How are you?", [make_chunk("c1", "How are you today")]) == []
