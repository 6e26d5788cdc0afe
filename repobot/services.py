"""
Process-wide wiring.

Builds the long-lived objects once per process (quota tracker, vector store,
pipelines) from Settings. Dispatchers are cheap and are built per chat
surface, all sharing the same QuotaTracker.
"""
from __future__ import annotations

from dataclasses import dataclass

from repobot.bot.channels import ChatChannel
from repobot.bot.dispatcher import CommandDispatcher
from repobot.bot.quota import QuotaTracker
from repobot.chunking.chunker import DocumentChunker
from repobot.collection.document_filter import DocumentFilter
from repobot.collection.github_crawler import GitHubTreeCrawler
from repobot.config import Settings
from repobot.embedding.embedder import Embedder
from repobot.embedding.store import VectorStore
from repobot.generation.generator import RAGGenerator
from repobot.ingestion.pipeline import IngestionPipeline
from repobot.ingestion.sink import IngestionSink
from repobot.retrieval.retriever import HybridRetriever
from repobot.serving.pipeline import AnswerPipeline


@dataclass
class Services:
    settings: Settings
    quota: QuotaTracker
    store: VectorStore
    ingestion: IngestionPipeline
    answers: AnswerPipeline

    def dispatcher(self, channel: ChatChannel) -> CommandDispatcher:
        bot = self.settings.bot
        return CommandDispatcher(
            channel=channel,
            quota=self.quota,
            target_channel_id=bot.target_channel_id,
            ingest=self.ingestion.run,
            answer=self.answers.aanswer,
            question_prefix=bot.question_prefix,
            upload_prefix=bot.upload_prefix,
        )


def build_services(settings: Settings) -> Services:
    crawler_cfg = settings.crawler
    document_filter = DocumentFilter(crawler_cfg.allowed_extensions)

    store = VectorStore(settings.index.dir, dimensions=settings.index.dimensions)
    embedder = Embedder(
        model=settings.embedding.model,
        batch_size=settings.embedding.batch_size,
        dimensions=settings.index.dimensions,
        api_key=settings.embedding.api_key,
    )
    sink = IngestionSink(
        store,
        embedder,
        DocumentChunker(settings.chunking.max_tokens, settings.chunking.overlap_tokens),
    )
    ingestion = IngestionPipeline(
        sink,
        index_name=settings.index.name,
        crawler_factory=lambda: GitHubTreeCrawler(
            document_filter,
            github_token=crawler_cfg.github_token,
            timeout=crawler_cfg.request_timeout_seconds,
        ),
        allowed_branches=crawler_cfg.allowed_branches,
        crawl_timeout=crawler_cfg.crawl_timeout_seconds,
    )

    gen_cfg = settings.generation
    answers = AnswerPipeline(
        HybridRetriever(store, settings.index.name, embedder, top_k=gen_cfg.top_k),
        RAGGenerator(
            model=gen_cfg.model,
            max_context_chunks=gen_cfg.max_context_chunks,
            max_tokens=gen_cfg.max_tokens,
            temperature=gen_cfg.temperature,
            api_key=settings.embedding.api_key,
        ),
    )

    return Services(
        settings=settings,
        quota=QuotaTracker(settings.quota.limit, settings.quota.window_seconds),
        store=store,
        ingestion=ingestion,
        answers=answers,
    )
