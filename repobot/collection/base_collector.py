"""Abstract base class for document collectors."""
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import AsyncIterator, Optional

from loguru import logger

from repobot.schemas import RawDocument


class BaseCollector(ABC):
    """
    Uniform async-generator interface over a remote document tree.

    Collectors are best-effort: a failure on one branch or file is recorded
    in `failures` and the walk moves on. Counters are per instance, so build
    one collector per ingestion run.
    """

    name: str = "Collector"

    def __init__(self) -> None:
        self.collected_count: int = 0
        self.skipped_count: int = 0
        self.failures: list[str] = []

    @abstractmethod
    def crawl(
        self, api_url: str, start_path: str, ref: Optional[str] = None
    ) -> AsyncIterator[RawDocument]:
        """Yield RawDocument instances found under start_path."""
        ...

    @abstractmethod
    async def health_check(self) -> bool:
        """Return True if the source is reachable and responsive."""
        ...

    @property
    def error_count(self) -> int:
        return len(self.failures)

    def _record_failure(self, message: str) -> None:
        self.failures.append(message)
        logger.error(f"[{self.name}] {message}")
