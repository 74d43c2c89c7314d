"""
Retrieval Orchestrator

Composes guide parsing, chunk embedding and vector search into the
per-question evidence handed to the report builder.

Pipeline:
1. Validate the request (before any embedding work)
2. Parse the guide into ordered questions
3. Derive the request budget from the file count
4. Embed every file's chunks, one batched call per file, files concurrently
5. Per question, search every file concurrently and fuse with combine()
6. Trim each question's evidence to the budget
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Any, List, Optional, Sequence

from ..common.config import RetrieverConfig, ValidationConfig
from ..common.embedding_service import EmbeddingGateway
from ..common.errors import AggregateRetrievalError, GroundworkError
from ..common.schemas import (
    GuideQuestion,
    QuestionEvidence,
    RetrievalFailure,
    RetrievalMetrics,
    TranscriptFile,
)
from ..common.validation import validate_request
from ..common.worker_pool import WorkerPool, join_all, with_deadline
from ..guide.guide_parser import parse_guide
from .budget import RetrievalBudget, cap_per_source, derive_budget
from .keyword_fallback import FALLBACK_MAX_RESULTS, keyword_search
from .vector_search import SearchOptions, SearchResult, VectorSearchEngine

logger = logging.getLogger("groundwork.retriever.orchestrator")


def _stamp_sources(file: TranscriptFile) -> TranscriptFile:
    """Fill chunk source fields the chunker left blank from the owning file"""
    if all(c.source_file_id and c.source_label for c in file.chunks):
        return file
    chunks = [
        c.model_copy(update={
            "source_file_id": c.source_file_id or file.file_id,
            "source_label": c.source_label or file.label,
        })
        for c in file.chunks
    ]
    return file.model_copy(update={"chunks": chunks})


@dataclass
class RetrievalReport:
    """Evidence for every guide question, in guide order"""
    questions: List[QuestionEvidence]
    budget: RetrievalBudget
    metrics: RetrievalMetrics
    failures: List[RetrievalFailure] = field(default_factory=list)

    @property
    def is_complete(self) -> bool:
        """True when no file or question failed in isolation"""
        return not self.failures

    def to_dict(self) -> dict:
        """camelCase payload for the report builder"""
        return {
            "questions": [q.model_dump(by_alias=True) for q in self.questions],
            "budget": {
                "maxChunksPerQuestion": self.budget.max_chunks_per_question,
                "costOptimizationEnabled": self.budget.cost_optimization_enabled,
            },
            "metrics": self.metrics.model_dump(by_alias=True),
            "failures": [f.model_dump(by_alias=True) for f in self.failures],
        }


class RetrievalOrchestrator:
    """
    Runs retrieval for a batch of transcripts against a discussion guide.

    Usage:
        gateway = EmbeddingGateway(provider.embed, model=provider.model)
        orchestrator = RetrievalOrchestrator(gateway, config.retriever, config.validation)
        report = await orchestrator.retrieve(guide_text, files)
    """

    def __init__(
        self,
        gateway: EmbeddingGateway,
        config: Optional[RetrieverConfig] = None,
        limits: Optional[ValidationConfig] = None,
    ):
        """
        Initialize orchestrator.

        Args:
            gateway: Embedding gateway shared by chunk and query embedding
            config: Thresholds, concurrency, deadline and failure policy
            limits: Request size limits checked before any work starts
        """
        self._gateway = gateway
        self._engine = VectorSearchEngine(gateway)
        self._config = config or RetrieverConfig()
        self._limits = limits or ValidationConfig()

    @property
    def engine(self) -> VectorSearchEngine:
        return self._engine

    @property
    def isolating(self) -> bool:
        return self._config.failure_policy == "isolate"

    async def retrieve(self, guide: Any, files: Sequence[TranscriptFile]) -> RetrievalReport:
        """
        Select evidence for every guide question.

        Args:
            guide: Question list or raw guide text
            files: Chunked transcripts, one TranscriptFile per interview

        Returns:
            RetrievalReport with one QuestionEvidence per guide question

        Raises:
            InputValidationError: request shape is invalid
            RetrievalTimeoutError: the request deadline expired
            GroundworkError: any stage failed under the "abort" policy
        """
        validate_request(guide, files, self._limits)
        questions = parse_guide(guide)
        budget = derive_budget(len(files))

        logger.info(
            "Retrieving evidence for %d questions across %d files (max %d chunks/question, cost optimization %s)",
            len(questions), len(files), budget.max_chunks_per_question,
            "on" if budget.cost_optimization_enabled else "off",
        )

        return await with_deadline(
            self._run(questions, list(files), budget),
            self._config.request_timeout,
            what="retrieval request",
        )

    async def embed_files(
        self,
        files: Sequence[TranscriptFile],
        pool: Optional[WorkerPool] = None,
        failures: Optional[List[RetrievalFailure]] = None,
    ) -> List[Optional[TranscriptFile]]:
        """
        Attach embeddings to every file's chunks, files concurrently.

        Chunks that already carry an embedding are kept as-is. With a
        ``failures`` list, a failing file becomes ``None`` and is recorded;
        otherwise the first failure propagates.
        """
        pool = pool or WorkerPool(self._config.max_concurrency)
        outcomes = await join_all(
            [self._embed_file(f, pool) for f in files],
            return_exceptions=failures is not None,
        )

        embedded: List[Optional[TranscriptFile]] = []
        for file, outcome in zip(files, outcomes):
            if isinstance(outcome, BaseException):
                if not isinstance(outcome, GroundworkError):
                    raise outcome
                self._record(failures, outcome, file_id=file.file_id)
                embedded.append(None)
            else:
                embedded.append(outcome)
        return embedded

    async def _embed_file(self, file: TranscriptFile, pool: WorkerPool) -> TranscriptFile:
        file = _stamp_sources(file)
        pending = [c for c in file.chunks if not c.has_embedding]
        if not pending:
            return file

        vectors = await pool.run(
            lambda: self._gateway.aembed_batch([c.content for c in pending], batch_id=file.file_id)
        )
        # Vectors follow the order of ``pending``; chunk ids are not trusted to be unique here
        remaining = iter(vectors)
        chunks = [
            chunk if chunk.has_embedding else chunk.with_embedding(next(remaining))
            for chunk in file.chunks
        ]
        logger.debug("Embedded %d chunks for file %s", len(pending), file.file_id)
        return file.model_copy(update={"chunks": chunks})

    async def _run(
        self,
        questions: List[GuideQuestion],
        files: List[TranscriptFile],
        budget: RetrievalBudget,
    ) -> RetrievalReport:
        started = time.perf_counter()
        calls_before = self._gateway.call_count
        pool = WorkerPool(self._config.max_concurrency)
        failures: Optional[List[RetrievalFailure]] = [] if self.isolating else None

        embedded = await self.embed_files(files, pool, failures)
        usable = [f for f in embedded if f is not None]
        if not usable:
            raise AggregateRetrievalError("No transcript file could be embedded", failures or [], stage="embedding")

        evidence = await join_all(
            [self._retrieve_question(q, usable, budget, pool, failures) for q in questions]
        )

        questions_out = list(evidence)
        embedded_ids = {f.file_id for f in usable}
        metrics = RetrievalMetrics(
            files_count=len(files),
            questions_count=len(questions),
            chunks_embedded=sum(
                sum(1 for c in f.chunks if not c.has_embedding)
                for f in files if f.file_id in embedded_ids
            ),
            embedding_calls=self._gateway.call_count - calls_before,
            evidence_count=sum(len(q.evidence) for q in questions_out),
            coverage_rate=(
                sum(1 for q in questions_out if q.evidence) / len(questions_out) if questions_out else 0.0
            ),
            failures_count=len(failures or []),
            latency_ms=round((time.perf_counter() - started) * 1000, 1),
        )
        logger.info("Retrieval metrics: %s", metrics.model_dump())

        return RetrievalReport(
            questions=questions_out,
            budget=budget,
            metrics=metrics,
            failures=list(failures or []),
        )

    async def _retrieve_question(
        self,
        question: GuideQuestion,
        files: List[TranscriptFile],
        budget: RetrievalBudget,
        pool: WorkerPool,
        failures: Optional[List[RetrievalFailure]],
    ) -> QuestionEvidence:
        per_file_options = SearchOptions(
            top_k=budget.max_chunks_per_question,
            similarity_threshold=self._config.question_threshold,
        )
        searchable = [f for f in files if f.chunks]

        outcomes = await join_all(
            [
                pool.run(lambda f=f: self._engine.find_relevant_for_question(
                    question.question, f.chunks, per_file_options))
                for f in searchable
            ],
            return_exceptions=failures is not None,
        )

        gathered: List[SearchResult] = []
        failed = 0
        for file, outcome in zip(searchable, outcomes):
            if isinstance(outcome, BaseException):
                if not isinstance(outcome, GroundworkError):
                    raise outcome
                self._record(failures, outcome, file_id=file.file_id, question=question.question)
                failed += 1
            else:
                gathered.extend(outcome)

        if searchable and failed == len(searchable):
            raise AggregateRetrievalError(
                f"Every file failed for question {question.question[:60]!r}",
                [f for f in failures if f.question == question.question],
                stage="search",
            )

        combined = self._engine.combine(
            gathered,
            SearchOptions(
                top_k=budget.max_chunks_per_question,
                similarity_threshold=self._config.combine_threshold,
            ),
        )

        if self._config.per_source_cap:
            combined = cap_per_source(combined, budget, len(files))

        used_fallback = False
        if not combined and self._config.keyword_fallback:
            all_chunks = [c for f in files for c in f.chunks]
            combined = keyword_search(
                question.question,
                all_chunks,
                max_results=min(FALLBACK_MAX_RESULTS, budget.max_chunks_per_question),
            )
            used_fallback = bool(combined)
            logger.info(
                "No vector results for question %r; keyword fallback found %d chunks",
                question.question[:60], len(combined),
            )

        final = combined[: budget.max_chunks_per_question]
        return QuestionEvidence(
            theme=question.theme,
            question=question.question,
            evidence=[r.to_evidence() for r in final],
            used_keyword_fallback=used_fallback,
        )

    @staticmethod
    def _record(
        failures: Optional[List[RetrievalFailure]],
        error: GroundworkError,
        file_id: Optional[str] = None,
        question: Optional[str] = None,
    ) -> None:
        if failures is None:
            raise error
        logger.warning("Isolated %s failure (file=%s): %s", error.stage, file_id, error.message)
        failures.append(
            RetrievalFailure(stage=error.stage, message=error.message, file_id=file_id, question=question)
        )
