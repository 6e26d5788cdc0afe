"""
Hybrid Retriever
-----------------
Embeds the user question and runs hybrid (dense + sparse) search over one
named index in the vector store.

Stateless per query; the index is looked up on every call so documents
ingested after startup are visible immediately.
"""
from __future__ import annotations

import numpy as np
from langsmith import traceable
from loguru import logger

from repobot.chunking.schemas import Chunk
from repobot.embedding.embedder import Embedder
from repobot.embedding.store import VectorStore


class HybridRetriever:
    def __init__(
        self,
        store: VectorStore,
        index_name: str,
        embedder: Embedder,
        top_k: int = 8,
        dense_weight: float = 0.7,
        sparse_weight: float = 0.3,
    ) -> None:
        self.store = store
        self.index_name = index_name
        self.embedder = embedder
        self.top_k = top_k
        self.dense_weight = dense_weight
        self.sparse_weight = sparse_weight

    @traceable(name="retrieve", run_type="retriever")
    def retrieve(self, query: str) -> list[tuple[Chunk, float]]:
        """
        Return up to top_k (Chunk, fused_rrf_score) pairs, best first.

        An index that does not exist yet, or has no vectors, yields no results
        and costs no embedding call.
        """
        logger.debug(f"[Retriever] Query: {query[:80]!r}")

        if not self.store.exists(self.index_name):
            logger.warning(f"[Retriever] Index '{self.index_name}' does not exist yet")
            return []
        if self.store.size(self.index_name) == 0:
            return []

        query_vec: np.ndarray = self.embedder.embed_query(query)
        results = self.store.search_hybrid(
            self.index_name,
            query_vec=query_vec,
            query_text=query,
            top_k=self.top_k,
            dense_weight=self.dense_weight,
            sparse_weight=self.sparse_weight,
        )

        if results:
            logger.info(f"[Retriever] Retrieved {len(results)} candidates (top score: {results[0][1]:.4f})")
        else:
            logger.info("[Retriever] No results")
        return results
