"""
GitHub Tree Crawler
--------------------
Walks a directory of a GitHub repository through the REST contents API and
yields the eligible text files it finds as RawDocuments.

Walk order is depth-first and follows the order the listing API returns,
driven by an explicit stack of entry iterators rather than call recursion.
Only the root listing is fatal; a failed subdirectory listing or file
download is recorded and the walk carries on with the next sibling.

Requests are sequential (one in flight at a time) to stay clear of GitHub's
secondary rate limits. Transport errors are retried with tenacity; non-2xx
responses are not.
"""
from __future__ import annotations

import re
from contextlib import asynccontextmanager
from typing import AsyncIterator, Iterator, Optional, Sequence

import httpx
from loguru import logger
from pydantic import ValidationError
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from repobot.collection.base_collector import BaseCollector
from repobot.collection.document_filter import DocumentFilter
from repobot.errors import FetchError, InvalidSourceUrlError
from repobot.schemas import TREE_ENTRY_ADAPTER, DirectoryEntry, FileEntry, RawDocument, SourceLocation
from repobot.utils.helpers import clean_text

GITHUB_API = "https://api.github.com"
DEFAULT_BRANCHES = ("main", "master")

_GITHUB_TREE_RE = re.compile(r"^https?://github\.com/([^/]+)/([^/]+)/tree/([^/]+)/(.+)$")

_MIME_HINTS = {
    "md": "text/markdown",
    "mdx": "text/markdown",
    "txt": "text/plain",
}


def parse_github_url(
    url: str, allowed_branches: Sequence[str] = DEFAULT_BRANCHES
) -> SourceLocation:
    """
    Turn https://github.com/<owner>/<repo>/tree/<branch>/<path> into the
    contents-API base URL plus the path to start from.

    Raises:
        InvalidSourceUrlError: wrong host, no /tree/<branch>/ marker, a branch
            outside allowed_branches, or an empty path.
    """
    match = _GITHUB_TREE_RE.match(url.strip())
    if not match:
        raise InvalidSourceUrlError(url)

    owner, repo, branch, path = match.groups()
    path = path.split("?", 1)[0].split("#", 1)[0].strip("/")
    if branch not in allowed_branches or not path:
        raise InvalidSourceUrlError(url)

    return SourceLocation(
        api_url=f"{GITHUB_API}/repos/{owner}/{repo}/contents/",
        starting_path=path,
        owner=owner,
        repo=repo,
        branch=branch,
    )


class GitHubTreeCrawler(BaseCollector):
    """Collects eligible text files from one GitHub repository directory."""

    name = "Crawler"

    def __init__(
        self,
        document_filter: Optional[DocumentFilter] = None,
        github_token: Optional[str] = None,
        timeout: float = 30.0,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        super().__init__()
        self.document_filter = document_filter or DocumentFilter()
        self.timeout = timeout
        self._client = client
        self._headers = {
            "Accept": "application/vnd.github+json",
            "User-Agent": "RepoBot/1.0",
        }
        if github_token:
            self._headers["Authorization"] = f"token {github_token}"

    async def health_check(self) -> bool:
        try:
            async with self._session() as client:
                resp = await client.get(f"{GITHUB_API}/rate_limit", headers=self._headers)
                return resp.status_code == 200
        except httpx.HTTPError as exc:
            logger.warning(f"[Crawler] Health check failed: {exc}")
            return False

    async def crawl(
        self, api_url: str, start_path: str, ref: Optional[str] = None
    ) -> AsyncIterator[RawDocument]:
        """
        Yield one RawDocument per eligible file under start_path.

        Raises:
            FetchError: only if the listing of start_path itself fails.
        """
        async with self._session() as client:
            root = await self._list(client, api_url, start_path, ref)
            stack: list[Iterator[FileEntry | DirectoryEntry]] = [iter(root)]

            while stack:
                entry = next(stack[-1], None)
                if entry is None:
                    stack.pop()
                    continue

                if isinstance(entry, DirectoryEntry):
                    try:
                        listing = await self._list(client, api_url, entry.path, ref)
                    except FetchError as exc:
                        self._record_failure(f"Skipping directory {entry.path}: {exc}")
                        continue
                    stack.append(iter(listing))
                    continue

                if not self.document_filter.is_eligible(entry.name):
                    self.skipped_count += 1
                    logger.debug(f"[Crawler] Skipping ineligible file {entry.path}")
                    continue

                try:
                    doc = await self._fetch_document(client, entry)
                except FetchError as exc:
                    self._record_failure(f"Skipping file {entry.path}: {exc}")
                    continue

                if doc is not None:
                    self.collected_count += 1
                    yield doc

        logger.info(
            f"[Crawler] Done {start_path} | {self.collected_count} collected, "
            f"{self.skipped_count} skipped, {self.error_count} failed"
        )

    # --- HTTP -----------------------------------------------------------------

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[httpx.AsyncClient]:
        if self._client is not None:
            yield self._client
            return
        async with httpx.AsyncClient(timeout=self.timeout, follow_redirects=True) as client:
            yield client

    @retry(
        retry=retry_if_exception_type(httpx.TransportError),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=8),
        reraise=True,
    )
    async def _send(
        self, client: httpx.AsyncClient, url: str, params: Optional[dict] = None
    ) -> httpx.Response:
        return await client.get(url, params=params, headers=self._headers)

    async def _get(
        self, client: httpx.AsyncClient, url: str, params: Optional[dict] = None
    ) -> httpx.Response:
        try:
            resp = await self._send(client, url, params)
        except httpx.HTTPError as exc:
            raise FetchError(url, str(exc) or exc.__class__.__name__) from exc

        if not resp.is_success:
            raise FetchError(url, f"HTTP {resp.status_code}", status_code=resp.status_code)
        return resp

    async def _list(
        self,
        client: httpx.AsyncClient,
        api_url: str,
        path: str,
        ref: Optional[str],
    ) -> list[FileEntry | DirectoryEntry]:
        """Fetch and validate one directory listing."""
        url = f"{api_url}{path}"
        logger.info(f"[Crawler] Listing {url}")
        resp = await self._get(client, url, params={"ref": ref} if ref else None)

        try:
            payload = resp.json()
        except ValueError as exc:
            raise FetchError(url, f"invalid JSON: {exc}") from exc
        if not isinstance(payload, list):
            raise FetchError(url, "expected a directory listing")

        entries: list[FileEntry | DirectoryEntry] = []
        for item in payload:
            try:
                entries.append(TREE_ENTRY_ADAPTER.validate_python(item))
            except ValidationError as exc:
                label = item.get("path", item) if isinstance(item, dict) else item
                logger.warning(
                    f"[Crawler] Ignoring unsupported entry {label!r} "
                    f"({exc.error_count()} validation error(s))"
                )
        return entries

    async def _fetch_document(
        self, client: httpx.AsyncClient, entry: FileEntry
    ) -> Optional[RawDocument]:
        logger.info(f"[Crawler] Downloading {entry.download_url}")
        resp = await self._get(client, entry.download_url)

        try:
            text = clean_text(resp.content.decode("utf-8"))
        except UnicodeDecodeError:
            self.skipped_count += 1
            logger.warning(f"[Crawler] {entry.path} is not UTF-8 text, skipping")
            return None

        if not text:
            self.skipped_count += 1
            logger.warning(f"[Crawler] {entry.path} is empty, skipping")
            return None

        extension = entry.name.rsplit(".", 1)[-1].lower()
        return RawDocument(
            source_path=entry.path,
            content=text,
            mime_hint=_MIME_HINTS.get(extension, "text/plain"),
            url=entry.download_url,
            metadata={"name": entry.name, "size": entry.size},
        )
