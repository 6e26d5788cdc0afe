"""
Shared test fixtures.

Provides: a controllable clock, a fake GitHub contents API on top of
httpx.MockTransport, and small helpers to build listing entries.
No test touches the network or the OpenAI API.
"""
from __future__ import annotations

from typing import Any, Callable, Optional

import httpx
import numpy as np
import pytest

API_URL = "https://api.github.com/repos/acme/repo/contents/"
RAW_URL = "https://raw.githubusercontent.com/acme/repo/main/"


class FakeClock:
    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeGitHub:
    """
    Routes keyed by "scheme://host/path" (query string ignored).

    A route value is either a JSON-able list/dict (200), a str body (200),
    an int status code, or a callable returning an httpx.Response.
    Every request is recorded in `requests`, in order.
    """

    def __init__(self, routes: Optional[dict[str, Any]] = None) -> None:
        self.routes: dict[str, Any] = dict(routes or {})
        self.requests: list[httpx.Request] = []

    @property
    def urls(self) -> list[str]:
        return [_key(r) for r in self.requests]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        route = self.routes.get(_key(request))
        if route is None:
            return httpx.Response(404, json={"message": "Not Found"})
        if callable(route):
            return route(request)
        if isinstance(route, int):
            return httpx.Response(route, json={"message": "error"})
        if isinstance(route, (list, dict)):
            return httpx.Response(200, json=route)
        return httpx.Response(200, text=route)

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler))


def _key(request: httpx.Request) -> str:
    return f"{request.url.scheme}://{request.url.host}{request.url.path}"


def file_entry(path: str, **overrides) -> dict:
    entry = {
        "type": "file",
        "name": path.rsplit("/", 1)[-1],
        "path": path,
        "download_url": f"{RAW_URL}{path}",
        "size": 10,
    }
    entry.update(overrides)
    return entry


def dir_entry(path: str) -> dict:
    return {"type": "dir", "name": path.rsplit("/", 1)[-1], "path": path, "download_url": None}


def listing_url(path: str) -> str:
    return f"{API_URL}{path}"


def raw_url(path: str) -> str:
    return f"{RAW_URL}{path}"


def unit_vectors(n: int, dims: int = 4, seed: int = 0) -> np.ndarray:
    rng = np.random.default_rng(seed)
    matrix = rng.normal(size=(n, dims)).astype(np.float32)
    return matrix / np.linalg.norm(matrix, axis=1, keepdims=True)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def fake_github() -> FakeGitHub:
    return FakeGitHub()


@pytest.fixture
def make_embedder() -> Callable[..., Any]:
    """Deterministic stand-in for Embedder: one unit vector per text."""
    from unittest.mock import MagicMock

    def _make(dims: int = 4) -> MagicMock:
        embedder = MagicMock()
        embedder.dimensions = dims
        embedder.embed_texts.side_effect = lambda texts: unit_vectors(len(texts), dims, seed=len(texts))
        embedder.embed_query.side_effect = lambda text: unit_vectors(1, dims, seed=1)[0]
        return embedder

    return _make
