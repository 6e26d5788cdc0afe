"""
Ingestion Pipeline
-------------------
Runs one /upload request end to end:

    GitHub tree URL
        |
        v
    parse_github_url        (InvalidSourceUrlError on a bad URL)
        |
        v
    IngestionSink.ensure_index   (once per run)
        |
        v
    GitHubTreeCrawler.crawl      (FetchError only if the root listing fails)
        |
        v
    IngestionSink.ingest         (per document, failures recorded and skipped)
        |
        v
    IngestionSink.flush          (once, also when the run fails or times out)
        |
        v
    IngestionReport

The whole run is bounded by `crawl_timeout` seconds. A timed-out run keeps
the documents already ingested, and an embedding call already running in the
executor may still land in memory after the timeout; it is written by the
next flush.
"""
from __future__ import annotations

import asyncio
from contextlib import aclosing
from datetime import datetime
from typing import Callable, Optional, Sequence

from loguru import logger

from repobot.collection.document_filter import DocumentFilter
from repobot.collection.github_crawler import DEFAULT_BRANCHES, GitHubTreeCrawler, parse_github_url
from repobot.errors import CrawlTimeoutError, IngestionError
from repobot.ingestion.sink import IngestionSink
from repobot.schemas import IngestionReport


class IngestionPipeline:
    def __init__(
        self,
        sink: IngestionSink,
        index_name: str,
        crawler_factory: Callable[[], GitHubTreeCrawler] | None = None,
        allowed_branches: Sequence[str] = DEFAULT_BRANCHES,
        crawl_timeout: Optional[float] = 900.0,
    ) -> None:
        self.sink = sink
        self.index_name = index_name
        self.crawler_factory = crawler_factory or (lambda: GitHubTreeCrawler(DocumentFilter()))
        self.allowed_branches = tuple(allowed_branches)
        self.crawl_timeout = crawl_timeout

    async def run(self, source_url: str) -> IngestionReport:
        """
        Crawl the repository directory behind source_url into the index.

        Raises:
            InvalidSourceUrlError: source_url is not a supported GitHub tree URL.
            FetchError: the starting directory could not be listed.
            CrawlTimeoutError: the run took longer than crawl_timeout.
        """
        location = parse_github_url(source_url, self.allowed_branches)
        report = IngestionReport(source_url=source_url, index_name=self.index_name)
        logger.info(
            f"[Ingestion] Start {location.owner}/{location.repo}@{location.branch} "
            f"path={location.starting_path!r} -> '{self.index_name}'"
        )

        try:
            await asyncio.wait_for(self._ingest(location, report), timeout=self.crawl_timeout)
        except asyncio.TimeoutError as exc:
            raise CrawlTimeoutError(source_url, self.crawl_timeout or 0) from exc

        report.completed_at = datetime.utcnow()
        logger.info(
            f"[Ingestion] Done {source_url} | {report.documents_ingested} document(s), "
            f"{report.chunks_written} chunk(s), {len(report.failures)} failure(s)"
        )
        logger.debug(f"[Ingestion] Embedding usage: {self.sink.embedder.usage_summary()}")
        return report

    async def _ingest(self, location, report: IngestionReport) -> None:
        await self.sink.ensure_index(self.index_name)

        crawler = self.crawler_factory()
        documents = crawler.crawl(location.api_url, location.starting_path, ref=location.branch)
        try:
            async with aclosing(documents):
                async for doc in documents:
                    try:
                        report.chunks_written += await self.sink.ingest(doc, self.index_name)
                        report.documents_ingested += 1
                    except IngestionError as exc:
                        logger.error(f"[Ingestion] {exc}")
                        report.failures.append(str(exc))
        finally:
            await self.sink.flush(self.index_name)

        report.failures.extend(crawler.failures)
