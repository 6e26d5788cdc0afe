"""
RepoBot - HTTP Chat Webhook
----------------------------
FastAPI server that lets a chat platform (or a bridge in front of one) post
message events and receive the notices RepoBot would send back.

Endpoints:
  GET  /api/health     -> index status and quota settings
  POST /api/messages   -> dispatch one chat message, return {outcome, notices}

Run from the project root:
    uvicorn app.server:app --port 8000
"""
from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, HTTPException
from loguru import logger
from pydantic import BaseModel

from repobot.bot.channels import BufferedChannel
from repobot.schemas import ChatMessage, DispatchOutcome
from repobot.services import Services, build_services

# ---------------------------------------------------------------------------
# Services singleton
# ---------------------------------------------------------------------------

_services: Optional[Services] = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build services once at startup; drop them on shutdown."""
    global _services
    from repobot.config import load_settings
    from repobot.utils.logger import setup_logger

    settings = load_settings()
    setup_logger(settings.logging)
    _services = build_services(settings)
    logger.info(
        f"[Server] Ready | index='{settings.index.name}' "
        f"channel={settings.bot.target_channel_id or '<unset>'}"
    )
    yield
    _services = None
    logger.info("[Server] Services released.")


app = FastAPI(
    title="RepoBot API",
    description="Chat webhook for GitHub documentation Q&A",
    version="1.0.0",
    lifespan=lifespan,
)


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------

class MessageResponse(BaseModel):
    outcome: DispatchOutcome
    notices: list[str]


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------

@app.get("/api/health")
async def health():
    if _services is None:
        raise HTTPException(status_code=503, detail="Services not ready")

    settings = _services.settings
    name = settings.index.name
    return {
        "status": "ok",
        "index": _services.store.stats(name) if _services.store.exists(name) else None,
        "quota": {
            "limit": _services.quota.limit,
            "window_seconds": _services.quota.window_seconds,
        },
    }


@app.post("/api/messages", response_model=MessageResponse)
async def post_message(message: ChatMessage):
    """
    Dispatch one message and return the notices it produced, in order.

    Each request gets its own BufferedChannel; the QuotaTracker is shared
    across requests so limits hold for the whole process.
    """
    if _services is None:
        raise HTTPException(status_code=503, detail="Services not ready")

    channel = BufferedChannel()
    outcome = await _services.dispatcher(channel).on_message(message)
    logger.info(f"[API] message from {message.sender_id} -> {outcome.value}")
    return MessageResponse(outcome=outcome, notices=channel.notices)
