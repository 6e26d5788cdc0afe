"""
FAISS Vector Index
-------------------
One named index: a faiss.IndexFlatIP (inner product == cosine similarity
after L2 normalisation), a parallel list of Chunk records in FAISS row
order, and a BM25 keyword index over the same chunks for hybrid search.

Chunks are appended with add(); rows are never rewritten, so adding the
same file twice stores it twice. The BM25 index is rebuilt lazily, on the
first sparse search after an add, since BM25Okapi has no incremental add.
Not thread-safe: VectorStore serialises access.

Persistence (per index directory):
  - faiss.index
  - chunks.json
  - bm25_corpus.json
  - index_manifest.json
"""
from __future__ import annotations

import re
from pathlib import Path

import faiss
import numpy as np
from loguru import logger
from rank_bm25 import BM25Okapi

from repobot.chunking.schemas import Chunk
from repobot.utils.helpers import load_json, save_json


def _bm25_tokens(text: str) -> list[str]:
    """Lowercase, replace punctuation with spaces, drop 1-char tokens."""
    normalised = re.sub(r"[^a-z0-9\s]", " ", text.lower())
    return [t for t in normalised.split() if len(t) > 1]


class FAISSIndex:
    """Dense (FAISS) + sparse (BM25) index over one set of chunks."""

    def __init__(self, dimensions: int = 1536) -> None:
        self.dimensions = dimensions
        self.faiss_index: faiss.IndexFlatIP = faiss.IndexFlatIP(dimensions)
        self.chunks: list[Chunk] = []
        self.bm25: BM25Okapi | None = None
        self._bm25_corpus_tokens: list[list[str]] = []
        self._bm25_stale = False

    # --- Build ----------------------------------------------------------------

    def add(self, chunks: list[Chunk], embeddings: np.ndarray) -> None:
        """
        Append chunks and their pre-computed embeddings.

        Args:
            chunks: Chunk records, same order as embeddings.
            embeddings: Float32 array of shape (len(chunks), dimensions).
        """
        if len(chunks) != len(embeddings):
            raise ValueError(
                f"Mismatch: {len(chunks)} chunks vs {len(embeddings)} embeddings"
            )
        if not chunks:
            return
        if embeddings.shape[1] != self.dimensions:
            raise ValueError(
                f"Embedding width {embeddings.shape[1]} does not match index width {self.dimensions}"
            )

        self.faiss_index.add(np.ascontiguousarray(embeddings, dtype=np.float32))
        self.chunks.extend(chunks)

        self._bm25_corpus_tokens.extend(_bm25_tokens(f"{c.source_path} {c.text}") for c in chunks)
        self._bm25_stale = True

        logger.debug(
            f"[FAISSIndex] +{len(chunks)} chunks | total {self.faiss_index.ntotal} vectors"
        )

    # --- Search ---------------------------------------------------------------

    def _sparse_index(self) -> BM25Okapi | None:
        if self._bm25_stale:
            self.bm25 = BM25Okapi(self._bm25_corpus_tokens) if self._bm25_corpus_tokens else None
            self._bm25_stale = False
        return self.bm25

    def search_dense(self, query_vec: np.ndarray, top_k: int = 10) -> list[tuple[Chunk, float]]:
        """Semantic search. Returns (Chunk, cosine_score) sorted descending."""
        if not self.is_built:
            return []
        qv = np.ascontiguousarray(query_vec.reshape(1, -1), dtype=np.float32)
        scores, indices = self.faiss_index.search(qv, top_k)
        return [
            (self.chunks[idx], float(score))
            for score, idx in zip(scores[0], indices[0])
            if idx >= 0
        ]

    def search_sparse(self, query_text: str, top_k: int = 10) -> list[tuple[Chunk, float]]:
        """BM25 keyword search. Returns (Chunk, bm25_score) sorted descending."""
        bm25 = self._sparse_index()
        if bm25 is None:
            return []
        bm25_scores = bm25.get_scores(_bm25_tokens(query_text))
        top_indices = np.argsort(bm25_scores)[::-1][:top_k]
        return [
            (self.chunks[i], float(bm25_scores[i]))
            for i in top_indices
            if bm25_scores[i] > 0
        ]

    def search_hybrid(
        self,
        query_vec: np.ndarray,
        query_text: str,
        top_k: int = 10,
        dense_weight: float = 0.7,
        sparse_weight: float = 0.3,
    ) -> list[tuple[Chunk, float]]:
        """
        Fuse dense and sparse rankings with weighted Reciprocal Rank Fusion.

        RRF score = sum(weight / (rank + 60)).
        """
        k = max(top_k * 5, 60)

        rrf_scores: dict[str, float] = {}
        chunk_map: dict[str, Chunk] = {}

        for weight, results in (
            (dense_weight, self.search_dense(query_vec, top_k=k)),
            (sparse_weight, self.search_sparse(query_text, top_k=k)),
        ):
            for rank, (chunk, _) in enumerate(results):
                rrf_scores[chunk.chunk_id] = rrf_scores.get(chunk.chunk_id, 0.0) + weight / (rank + 60)
                chunk_map[chunk.chunk_id] = chunk

        fused = sorted(rrf_scores.items(), key=lambda x: x[1], reverse=True)[:top_k]
        return [(chunk_map[cid], score) for cid, score in fused]

    # --- Persistence ----------------------------------------------------------

    def save(self, index_dir: Path) -> None:
        index_dir.mkdir(parents=True, exist_ok=True)
        faiss.write_index(self.faiss_index, str(index_dir / "faiss.index"))
        save_json([c.model_dump(mode="json") for c in self.chunks], index_dir / "chunks.json")
        save_json(self._bm25_corpus_tokens, index_dir / "bm25_corpus.json")
        save_json(
            {
                "total_vectors": self.faiss_index.ntotal,
                "dimensions": self.dimensions,
                "total_chunks": len(self.chunks),
                "source_paths": len({c.source_path for c in self.chunks}),
            },
            index_dir / "index_manifest.json",
        )
        logger.debug(f"[FAISSIndex] Saved {self.faiss_index.ntotal} vectors -> {index_dir}/")

    @classmethod
    def load(cls, index_dir: Path) -> "FAISSIndex":
        """Load a persisted index from disk."""
        manifest = load_json(index_dir / "index_manifest.json")
        instance = cls(dimensions=manifest["dimensions"])
        instance.faiss_index = faiss.read_index(str(index_dir / "faiss.index"))
        instance.chunks = [Chunk(**c) for c in load_json(index_dir / "chunks.json")]
        instance._bm25_corpus_tokens = load_json(index_dir / "bm25_corpus.json")
        instance._bm25_stale = bool(instance._bm25_corpus_tokens)

        logger.info(
            f"[FAISSIndex] Loaded: {instance.faiss_index.ntotal} vectors, "
            f"{len(instance.chunks)} chunks"
        )
        return instance

    @property
    def is_built(self) -> bool:
        return self.faiss_index.ntotal > 0
