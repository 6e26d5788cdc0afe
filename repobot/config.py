"""
Configuration loading.

Non-secret settings live in config/config.yaml; secrets and per-deployment
values (API keys, the target channel, the index name) come from the
environment, optionally via a .env file.
"""
from __future__ import annotations

import os
from pathlib import Path
from typing import Optional

import yaml
from dotenv import find_dotenv, load_dotenv
from pydantic import BaseModel, Field

DEFAULT_CONFIG_PATH = "config/config.yaml"


class BotConfig(BaseModel):
    target_channel_id: str = ""
    question_prefix: str = "/question"
    upload_prefix: str = "/upload"


class QuotaConfig(BaseModel):
    limit: int = Field(default=5, ge=1)
    window_seconds: float = Field(default=60.0, gt=0)


class CrawlerConfig(BaseModel):
    allowed_extensions: list[str] = Field(default_factory=lambda: ["md", "txt", "mdx"])
    allowed_branches: list[str] = Field(default_factory=lambda: ["main", "master"])
    request_timeout_seconds: float = 30.0
    crawl_timeout_seconds: float = 900.0
    github_token: Optional[str] = None


class IndexConfig(BaseModel):
    name: str = "docs"
    dir: str = "data/index"
    dimensions: int = 1536


class EmbeddingConfig(BaseModel):
    model: str = "text-embedding-3-small"
    batch_size: int = 512
    api_key: Optional[str] = None


class ChunkingConfig(BaseModel):
    max_tokens: int = 1000
    overlap_tokens: int = 100


class GenerationConfig(BaseModel):
    model: str = "gpt-4o-mini"
    top_k: int = 8
    max_context_chunks: int = 5
    max_tokens: int = 1024
    temperature: float = 0.1


class LoggingConfig(BaseModel):
    level: str = "INFO"
    file: str = "logs/repobot.log"   # empty string disables the file sink
    rotation: str = "10 MB"
    retention: str = "7 days"


class Settings(BaseModel):
    """Fully resolved settings for one process."""

    bot: BotConfig = Field(default_factory=BotConfig)
    quota: QuotaConfig = Field(default_factory=QuotaConfig)
    crawler: CrawlerConfig = Field(default_factory=CrawlerConfig)
    index: IndexConfig = Field(default_factory=IndexConfig)
    embedding: EmbeddingConfig = Field(default_factory=EmbeddingConfig)
    chunking: ChunkingConfig = Field(default_factory=ChunkingConfig)
    generation: GenerationConfig = Field(default_factory=GenerationConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


def _load_yaml(path: str | Path) -> dict:
    p = Path(path)
    if not p.exists():
        return {}
    with open(p, "r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def load_settings(path: str | Path = DEFAULT_CONFIG_PATH) -> Settings:
    """
    Build Settings from the YAML file, then apply environment overrides.

    Environment variables win over the file:
      OPENAI_API_KEY, GITHUB_TOKEN, TARGET_CHANNEL_ID, INDEX_NAME, LOG_LEVEL
    """
    load_dotenv(find_dotenv(usecwd=True))
    settings = Settings.model_validate(_load_yaml(path))

    if key := os.getenv("OPENAI_API_KEY"):
        settings.embedding.api_key = key
    if token := os.getenv("GITHUB_TOKEN"):
        settings.crawler.github_token = token
    if channel := os.getenv("TARGET_CHANNEL_ID"):
        settings.bot.target_channel_id = channel
    if index_name := os.getenv("INDEX_NAME"):
        settings.index.name = index_name
    if level := os.getenv("LOG_LEVEL"):
        settings.logging.level = level.upper()

    return settings
