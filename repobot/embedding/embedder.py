"""
OpenAI Embedding Client
------------------------
Wraps the OpenAI embeddings API with:
  - Batching
  - LangSmith run tracing (inactive unless LANGSMITH_* env vars are set)
  - Retry logic via tenacity
  - Token usage logging
"""
from __future__ import annotations

import time
from typing import Optional

import numpy as np
from langsmith import traceable
from loguru import logger
from openai import OpenAI
from tenacity import retry, stop_after_attempt, wait_exponential

MODEL = "text-embedding-3-small"
DIMENSIONS = 1536
BATCH_SIZE = 512


class Embedder:
    """
    Generates L2-normalised embeddings.

    Unit-length vectors make cosine similarity equal to inner product, so the
    index can use FAISS IndexFlatIP.
    """

    def __init__(
        self,
        model: str = MODEL,
        batch_size: int = BATCH_SIZE,
        dimensions: int = DIMENSIONS,
        api_key: Optional[str] = None,
    ) -> None:
        self.model = model
        self.batch_size = batch_size
        self.dimensions = dimensions
        self._client = OpenAI(api_key=api_key)
        self.total_tokens_used: int = 0
        self.total_api_calls: int = 0

    @traceable(name="embed_texts", run_type="embedding")
    def embed_texts(self, texts: list[str]) -> np.ndarray:
        """Embed a list of strings and return an (N, dimensions) float32 array."""
        if not texts:
            return np.empty((0, self.dimensions), dtype=np.float32)

        all_embeddings: list[list[float]] = []

        for i in range(0, len(texts), self.batch_size):
            batch = texts[i: i + self.batch_size]
            embeddings, tokens = self._embed_batch(batch)
            all_embeddings.extend(embeddings)
            self.total_tokens_used += tokens
            self.total_api_calls += 1

            logger.debug(
                f"[Embedder] Batch {i // self.batch_size + 1} | "
                f"{len(batch)} texts | {tokens} tokens | "
                f"Running total: {self.total_tokens_used} tokens"
            )

        matrix = np.array(all_embeddings, dtype=np.float32)
        norms = np.linalg.norm(matrix, axis=1, keepdims=True)
        norms = np.where(norms == 0, 1, norms)
        return (matrix / norms).astype(np.float32)

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=30),
        reraise=True,
    )
    def _embed_batch(self, texts: list[str]) -> tuple[list[list[float]], int]:
        """Call the OpenAI Embeddings API for a single batch."""
        safe_texts = [t if t.strip() else " " for t in texts]
        start = time.perf_counter()
        response = self._client.embeddings.create(model=self.model, input=safe_texts)
        elapsed = time.perf_counter() - start

        embeddings = [item.embedding for item in sorted(response.data, key=lambda x: x.index)]
        tokens_used = response.usage.total_tokens
        logger.debug(f"[Embedder] API call: {len(texts)} texts, {tokens_used} tokens, {elapsed:.2f}s")
        return embeddings, tokens_used

    def embed_query(self, text: str) -> np.ndarray:
        """Embed a single query string. Returns shape (dimensions,)."""
        return self.embed_texts([text])[0]

    def usage_summary(self) -> dict:
        return {
            "model": self.model,
            "total_api_calls": self.total_api_calls,
            "total_tokens_used": self.total_tokens_used,
        }
