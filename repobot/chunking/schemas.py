"""
Chunk schema - the unit that gets embedded and written to the vector index.

Every chunk carries the repository path of its parent document so answers
can cite where a passage came from.
"""
from __future__ import annotations

import uuid
from typing import Any, Optional

from pydantic import BaseModel, Field


class Chunk(BaseModel):
    # Identity. A fresh id per chunk: re-ingesting a path adds new vectors.
    chunk_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    doc_id: str                          # Parent RawDocument.id
    chunk_index: int                     # Position within the document
    chunk_strategy: str                  # "keep_whole" | "fixed_overlap"

    # Content
    text: str
    token_count: int = 0

    # Provenance
    source_path: str                     # e.g. "docs/guide/setup.md"
    url: Optional[str] = None

    metadata: dict[str, Any] = Field(default_factory=dict)
