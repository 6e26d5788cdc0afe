"""
Vector Store
-------------
Named FAISS indexes under one root directory (data/index/<name>/).

The store is the only reader and writer of index files. Every access to an
in-memory index (upsert, search, stats) holds one lock, so a question answered
from one executor thread never sees an upload half-applied by another.

upsert() only changes memory and marks the index dirty; flush() writes it to
disk. An ingestion run flushes once when it ends.
"""
from __future__ import annotations

import re
import threading
from pathlib import Path

import numpy as np
from loguru import logger

from repobot.chunking.schemas import Chunk
from repobot.embedding.faiss_index import FAISSIndex

_INDEX_NAME_RE = re.compile(r"^[a-z0-9][a-z0-9_-]{0,62}$")


class VectorStore:
    def __init__(self, root_dir: str | Path = "data/index", dimensions: int = 1536) -> None:
        self.root_dir = Path(root_dir)
        self.dimensions = dimensions
        self._indexes: dict[str, FAISSIndex] = {}
        self._dirty: set[str] = set()
        self._lock = threading.Lock()

    def _dir(self, index_name: str) -> Path:
        if not _INDEX_NAME_RE.match(index_name):
            raise ValueError(
                f"Invalid index name {index_name!r}: use lowercase letters, digits, '-' or '_'"
            )
        return self.root_dir / index_name

    def exists(self, index_name: str) -> bool:
        return (self._dir(index_name) / "index_manifest.json").exists()

    def ensure_index(self, index_name: str) -> bool:
        """Create the index if it does not exist. Returns True if it was created."""
        with self._lock:
            if index_name in self._indexes or self.exists(index_name):
                return False
            index = FAISSIndex(dimensions=self.dimensions)
            index.save(self._dir(index_name))
            self._indexes[index_name] = index
            logger.info(f"[VectorStore] Created index '{index_name}' ({self.dimensions} dims)")
            return True

    def get(self, index_name: str) -> FAISSIndex:
        """
        Return the in-memory index, loading it from disk on first use.

        The returned object is shared; callers that may run alongside an
        upload should use search_hybrid() instead of searching it directly.

        Raises:
            FileNotFoundError: if the index was never created.
        """
        with self._lock:
            return self._get_locked(index_name)

    def _get_locked(self, index_name: str) -> FAISSIndex:
        index = self._indexes.get(index_name)
        if index is None:
            path = self._dir(index_name)
            if not self.exists(index_name):
                raise FileNotFoundError(f"Index '{index_name}' not found at {path}")
            index = FAISSIndex.load(path)
            self._indexes[index_name] = index
        return index

    def upsert(self, index_name: str, chunks: list[Chunk], embeddings: np.ndarray) -> int:
        """Append vectors for chunks in memory. Returns vectors written."""
        with self._lock:
            index = self._get_locked(index_name)
            index.add(chunks, embeddings)
            if chunks:
                self._dirty.add(index_name)
        return len(chunks)

    def flush(self, index_name: str) -> bool:
        """Persist the index if it changed since the last flush. Returns True if written."""
        with self._lock:
            if index_name not in self._dirty:
                return False
            index = self._indexes[index_name]
            index.save(self._dir(index_name))
            self._dirty.discard(index_name)
        logger.info(f"[VectorStore] Flushed '{index_name}' ({index.faiss_index.ntotal} vectors)")
        return True

    def size(self, index_name: str) -> int:
        with self._lock:
            return self._get_locked(index_name).faiss_index.ntotal

    def search_hybrid(
        self,
        index_name: str,
        query_vec: np.ndarray,
        query_text: str,
        top_k: int = 10,
        dense_weight: float = 0.7,
        sparse_weight: float = 0.3,
    ) -> list[tuple[Chunk, float]]:
        with self._lock:
            return self._get_locked(index_name).search_hybrid(
                query_vec=query_vec,
                query_text=query_text,
                top_k=top_k,
                dense_weight=dense_weight,
                sparse_weight=sparse_weight,
            )

    def stats(self, index_name: str) -> dict:
        with self._lock:
            index = self._get_locked(index_name)
            return {
                "index": index_name,
                "vectors": index.faiss_index.ntotal,
                "dimensions": index.dimensions,
                "source_paths": len({c.source_path for c in index.chunks}),
            }
