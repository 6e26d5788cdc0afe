"""
Document Chunker
-----------------
Turns a RawDocument into one or more embeddable Chunks.

Strategy selection:
  - Documents up to `max_tokens` are kept whole: one file, one chunk.
  - Longer documents are cut into fixed token windows with `overlap_tokens`
    of overlap, so nothing is sent past the embedding model's context window.

The path of the file is prepended to every chunk's text; it is often the
best description of what a README or guide is about.
"""
from __future__ import annotations

from functools import lru_cache
from typing import Iterator

import tiktoken
from loguru import logger

from repobot.chunking.schemas import Chunk
from repobot.schemas import RawDocument

MAX_TOKENS = 1000
OVERLAP_TOKENS = 100


@lru_cache(maxsize=1)
def _encoder() -> tiktoken.Encoding:
    return tiktoken.get_encoding("cl100k_base")


def count_tokens(text: str) -> int:
    """Count BPE tokens using the cl100k_base encoder (text-embedding-3-*)."""
    return len(_encoder().encode(text))


class DocumentChunker:
    def __init__(self, max_tokens: int = MAX_TOKENS, overlap_tokens: int = OVERLAP_TOKENS) -> None:
        if overlap_tokens >= max_tokens:
            raise ValueError("overlap_tokens must be smaller than max_tokens")
        self.max_tokens = max_tokens
        self.overlap_tokens = overlap_tokens

    def chunk_document(self, doc: RawDocument) -> list[Chunk]:
        token_count = count_tokens(doc.content)

        if token_count <= self.max_tokens:
            chunks = list(self._keep_whole(doc, token_count))
        else:
            chunks = list(self._fixed_overlap(doc))

        logger.debug(
            f"[Chunker] {doc.source_path} | {token_count} tokens -> {len(chunks)} chunk(s)"
        )
        return chunks

    def _keep_whole(self, doc: RawDocument, token_count: int) -> Iterator[Chunk]:
        yield self._make_chunk(doc, 0, "keep_whole", doc.content, token_count)

    def _fixed_overlap(self, doc: RawDocument) -> Iterator[Chunk]:
        tokens = _encoder().encode(doc.content)
        stride = self.max_tokens - self.overlap_tokens
        i = 0
        chunk_index = 0

        while i < len(tokens):
            window = tokens[i: i + self.max_tokens]
            text = _encoder().decode(window)
            yield self._make_chunk(doc, chunk_index, "fixed_overlap", text, len(window))
            chunk_index += 1
            i += stride
            if i + self.overlap_tokens >= len(tokens):
                break

    @staticmethod
    def _make_chunk(
        doc: RawDocument, index: int, strategy: str, text: str, token_count: int
    ) -> Chunk:
        return Chunk(
            doc_id=doc.id,
            chunk_index=index,
            chunk_strategy=strategy,
            text=f"[{doc.source_path}]\n\n{text}",
            token_count=token_count,
            source_path=doc.source_path,
            url=doc.url,
            metadata={"source_path": doc.source_path, "checksum": doc.checksum},
        )
