"""
Ingestion Sink
---------------
RawDocument -> Chunks -> embeddings -> upsert into a named vector index.
Upserts stay in memory until flush().

Embedding and index writes are blocking (OpenAI SDK, FAISS, file I/O), so
they run in the default thread pool executor to keep the event loop free.
"""
from __future__ import annotations

import asyncio

from loguru import logger

from repobot.chunking.chunker import DocumentChunker
from repobot.embedding.embedder import Embedder
from repobot.embedding.store import VectorStore
from repobot.errors import IngestionError
from repobot.schemas import RawDocument


class IngestionSink:
    def __init__(
        self,
        store: VectorStore,
        embedder: Embedder,
        chunker: DocumentChunker | None = None,
    ) -> None:
        self.store = store
        self.embedder = embedder
        self.chunker = chunker or DocumentChunker()

    async def ensure_index(self, index_name: str) -> None:
        loop = asyncio.get_event_loop()
        await loop.run_in_executor(None, self.store.ensure_index, index_name)

    async def flush(self, index_name: str) -> None:
        """Write everything ingested into index_name so far to disk."""
        loop = asyncio.get_event_loop()
        await loop.run_in_executor(None, self.store.flush, index_name)

    async def ingest(self, document: RawDocument, index_name: str) -> int:
        """
        Embed and upsert one document. Returns the number of chunks written.

        Raises:
            IngestionError: wrapping whatever the chunker, embedder or store raised.
        """
        loop = asyncio.get_event_loop()
        try:
            return await loop.run_in_executor(None, self._ingest_sync, document, index_name)
        except Exception as exc:
            raise IngestionError(document.source_path, exc) from exc

    def _ingest_sync(self, document: RawDocument, index_name: str) -> int:
        chunks = self.chunker.chunk_document(document)
        embeddings = self.embedder.embed_texts([c.text for c in chunks])
        written = self.store.upsert(index_name, chunks, embeddings)
        logger.info(f"[Sink] {document.source_path} -> {written} vector(s) in '{index_name}'")
        return written
