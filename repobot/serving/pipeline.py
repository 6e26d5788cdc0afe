"""
Answer Pipeline
----------------
The /question path:

    question
        |
        v
    HybridRetriever (FAISS dense + BM25 sparse -> RRF fusion)
        |
        v
    RAGGenerator (OpenAI chat completion with grounded system prompt)
        |
        v
    QueryResult (answer + citations + timings + token counts)
"""
from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass

from langsmith import traceable
from loguru import logger

from repobot.generation.generator import RAGGenerator, RAGResponse
from repobot.retrieval.retriever import HybridRetriever

MAX_CHAT_MESSAGE_CHARS = 2000


@dataclass
class QueryResult:
    """Output of one question. Timings are in milliseconds."""

    query: str
    answer: str
    citations: list[dict]
    retrieval_ms: float = 0.0
    generation_ms: float = 0.0
    model: str = ""
    prompt_tokens: int = 0
    completion_tokens: int = 0

    @property
    def total_ms(self) -> float:
        return self.retrieval_ms + self.generation_ms

    def to_chat_message(self, max_chars: int = MAX_CHAT_MESSAGE_CHARS) -> str:
        """Answer followed by a compact source list, cut to one chat message."""
        sources = sorted({c["source_path"] for c in self.citations})
        text = self.answer.strip()
        if sources:
            text += "\n\nSources: " + ", ".join(f"`{s}`" for s in sources)
        if len(text) > max_chars:
            text = text[: max_chars - 3].rstrip() + "..."
        return text

    def to_dict(self) -> dict:
        return {
            "query": self.query,
            "answer": self.answer,
            "citations": self.citations,
            "latency_ms": {
                "retrieval": round(self.retrieval_ms, 1),
                "generation": round(self.generation_ms, 1),
                "total": round(self.total_ms, 1),
            },
            "tokens": {
                "prompt": self.prompt_tokens,
                "completion": self.completion_tokens,
                "total": self.prompt_tokens + self.completion_tokens,
            },
            "model": self.model,
        }


class AnswerPipeline:
    def __init__(self, retriever: HybridRetriever, generator: RAGGenerator) -> None:
        self.retriever = retriever
        self.generator = generator

    @traceable(name="rag_query", run_type="chain")
    def answer(self, question: str) -> QueryResult:
        logger.info(f"[AnswerPipeline] Query: {question[:100]!r}")

        t0 = time.perf_counter()
        candidates = self.retriever.retrieve(question)
        retrieval_ms = (time.perf_counter() - t0) * 1000

        t1 = time.perf_counter()
        rag_response: RAGResponse = self.generator.generate(question, candidates)
        generation_ms = (time.perf_counter() - t1) * 1000

        logger.info(
            f"[AnswerPipeline] Complete | retrieve={retrieval_ms:.0f}ms "
            f"generate={generation_ms:.0f}ms | tokens={rag_response.total_tokens}"
        )

        return QueryResult(
            query=question,
            answer=rag_response.answer,
            citations=rag_response.citations,
            retrieval_ms=retrieval_ms,
            generation_ms=generation_ms,
            model=rag_response.model,
            prompt_tokens=rag_response.prompt_tokens,
            completion_tokens=rag_response.completion_tokens,
        )

    async def aanswer(self, question: str) -> QueryResult:
        """answer() in the default executor so the event loop keeps serving messages."""
        loop = asyncio.get_event_loop()
        return await loop.run_in_executor(None, self.answer, question)
