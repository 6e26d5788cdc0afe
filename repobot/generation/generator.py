"""
RAG Generator
--------------
Grounded answer synthesis with OpenAI chat models.

Takes (query, retrieved_chunks) and returns a RAGResponse. Only the top
`max_context_chunks` retrieved chunks go into the system prompt.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from langsmith import traceable
from loguru import logger
from openai import OpenAI

from repobot.chunking.schemas import Chunk
from repobot.generation.prompts import CITATION_TEMPLATE, NO_CONTEXT_RESPONSE, SYSTEM_PROMPT


@dataclass
class RAGResponse:
    answer: str
    citations: list[dict]
    model: str
    prompt_tokens: int = 0
    completion_tokens: int = 0

    @property
    def total_tokens(self) -> int:
        return self.prompt_tokens + self.completion_tokens


def _build_context(
    chunks: list[tuple[Chunk, float]],
    max_chunks: int,
) -> tuple[str, list[dict]]:
    """
    Number each chunk [1]..[N] for the system prompt and build the matching
    citation dicts.
    """
    context_parts: list[str] = []
    citations: list[dict] = []

    for i, (chunk, score) in enumerate(chunks[:max_chunks], start=1):
        citation_line = CITATION_TEMPLATE.format(
            index=i,
            source_path=chunk.source_path,
            chunk_index=chunk.chunk_index,
        )
        context_parts.append(f"[{i}] {chunk.text}\nSource: {citation_line}")
        citations.append(
            {
                "index": i,
                "chunk_id": chunk.chunk_id,
                "source_path": chunk.source_path,
                "url": chunk.url,
                "chunk_index": chunk.chunk_index,
                "relevance_score": round(score, 4),
            }
        )

    return "\n\n---\n\n".join(context_parts), citations


class RAGGenerator:
    def __init__(
        self,
        model: str = "gpt-4o-mini",
        max_context_chunks: int = 5,
        max_tokens: int = 1024,
        temperature: float = 0.1,
        api_key: Optional[str] = None,
    ) -> None:
        self.model = model
        self.max_context_chunks = max_context_chunks
        self.max_tokens = max_tokens
        self.temperature = temperature
        self._client = OpenAI(api_key=api_key)

    @traceable(name="generate_openai", run_type="llm")
    def generate(self, query: str, chunks: list[tuple[Chunk, float]]) -> RAGResponse:
        if not chunks:
            return RAGResponse(answer=NO_CONTEXT_RESPONSE, citations=[], model=self.model)

        context, citations = _build_context(chunks, self.max_context_chunks)
        system_message = SYSTEM_PROMPT.format(context=context)

        logger.debug(
            f"[Generator] {self.model} | {len(citations)} chunks | query={query[:60]!r}"
        )

        response = self._client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": system_message},
                {"role": "user", "content": query},
            ],
            max_tokens=self.max_tokens,
            temperature=self.temperature,
        )

        answer = response.choices[0].message.content or ""
        usage = response.usage
        logger.info(
            f"[Generator] Done | prompt={usage.prompt_tokens} completion={usage.completion_tokens}"
        )

        return RAGResponse(
            answer=answer,
            citations=citations,
            model=self.model,
            prompt_tokens=usage.prompt_tokens,
            completion_tokens=usage.completion_tokens,
        )
