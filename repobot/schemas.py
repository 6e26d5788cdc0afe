"""
Core Pydantic schemas for RepoBot.

Chat events, crawl entries, documents and run reports are shared across the
crawler, the ingestion sink and the dispatcher so every stored chunk can be
traced back to the repository path it came from.
"""
from __future__ import annotations

import hashlib
import uuid
from datetime import datetime
from enum import Enum
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, Field, TypeAdapter, computed_field, field_validator


# --- Chat --------------------------------------------------------------------

class ChatMessage(BaseModel):
    """An inbound chat message event, as delivered by the chat platform."""

    sender_id: str
    channel_id: str
    is_bot: bool = False
    content: str = ""


class DispatchOutcome(str, Enum):
    IGNORED = "ignored"
    QUOTA_EXCEEDED = "quota_exceeded"
    USAGE = "usage"
    ANSWERED = "answered"
    INGESTED = "ingested"
    FAILED = "failed"


# --- GitHub contents API -----------------------------------------------------

class SourceLocation(BaseModel):
    """A parsed GitHub tree URL, ready for the contents API."""

    api_url: str                        # https://api.github.com/repos/<owner>/<repo>/contents/
    starting_path: str
    owner: str
    repo: str
    branch: str


class FileEntry(BaseModel):
    type: Literal["file"]
    name: str
    path: str
    download_url: str
    size: int = 0


class DirectoryEntry(BaseModel):
    type: Literal["dir"]
    name: str
    path: str


TreeEntry = Annotated[Union[FileEntry, DirectoryEntry], Field(discriminator="type")]
TREE_ENTRY_ADAPTER: TypeAdapter[FileEntry | DirectoryEntry] = TypeAdapter(TreeEntry)


# --- Documents ---------------------------------------------------------------

class RawDocument(BaseModel):
    """
    A fetched text file, before chunking.

    `source_path` is the repository-relative path and doubles as the
    provenance key stored with every vector.
    """

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    source_path: str
    content: str
    mime_hint: str = "text/plain"
    url: Optional[str] = None
    collected_at: datetime = Field(default_factory=datetime.utcnow)
    metadata: dict[str, Any] = Field(default_factory=dict)

    @field_validator("content")
    @classmethod
    def content_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("content must be non-empty text")
        return v

    @computed_field
    @property
    def checksum(self) -> str:
        """SHA-256 of content."""
        return hashlib.sha256(self.content.encode("utf-8")).hexdigest()

    @computed_field
    @property
    def char_count(self) -> int:
        return len(self.content)


# --- Run reports -------------------------------------------------------------

class IngestionReport(BaseModel):
    """Outcome of one /upload run."""

    source_url: str
    index_name: str
    started_at: datetime = Field(default_factory=datetime.utcnow)
    completed_at: Optional[datetime] = None
    documents_ingested: int = 0
    chunks_written: int = 0
    failures: list[str] = Field(default_factory=list)
