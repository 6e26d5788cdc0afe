"""
Command Dispatcher
-------------------
Entry point for every inbound chat message.

    message
        |
        v
    bot author? other channel? no command prefix?  -> ignored, nothing sent
        |
        v
    QuotaTracker.admit(sender)                     -> quota notice
        |
        v
    /upload <url>    -> ack, IngestionPipeline, success / failure notice
    /question <text> -> thinking notice, AnswerPipeline, answer notice

Every handled command ends with exactly one final notice. Errors from the
routed work stop here: they are logged and turned into a failure notice,
never re-raised to the chat client.
"""
from __future__ import annotations

from typing import Awaitable, Callable, Optional

from loguru import logger

from repobot.bot.channels import ChatChannel
from repobot.bot.quota import QuotaTracker
from repobot.errors import CrawlTimeoutError, FetchError, InvalidSourceUrlError
from repobot.schemas import ChatMessage, DispatchOutcome, IngestionReport
from repobot.serving.pipeline import QueryResult

IngestHandler = Callable[[str], Awaitable[IngestionReport]]
AnswerHandler = Callable[[str], Awaitable[QueryResult]]

THINKING_NOTICE = (
    "RepoBot is thinking...\n"
    "\n*Reminder: I am still learning so my answers may be inaccurate.*"
)
QUOTA_EXCEEDED_NOTICE = (
    "You have reached the maximum number of {limit} requests per {window:.0f} seconds. "
    "Please wait a moment before asking again."
)
UPLOAD_ACK_NOTICE = "Indexing {url} ... this can take a few minutes."
UPLOAD_SUCCESS_NOTICE = (
    "Upload successful: {documents} document(s), {chunks} chunk(s) indexed into `{index}`."
)
UPLOAD_PARTIAL_SUFFIX = " {failures} item(s) could not be processed and were skipped."
INVALID_URL_NOTICE = (
    "That does not look like a GitHub folder URL. "
    "Expected https://github.com/<owner>/<repo>/tree/<branch>/<path>."
)
UPLOAD_FETCH_FAILED_NOTICE = "Could not read {url} from GitHub. Check that the folder exists and is public."
TIMEOUT_NOTICE = "Indexing {url} took too long and was stopped."
USAGE_NOTICE = "Usage: `{prefix} {argument}`"
FAILURE_NOTICE = "An error occurred while processing your request."


class CommandDispatcher:
    def __init__(
        self,
        channel: ChatChannel,
        quota: QuotaTracker,
        target_channel_id: str,
        ingest: IngestHandler,
        answer: AnswerHandler,
        question_prefix: str = "/question",
        upload_prefix: str = "/upload",
    ) -> None:
        self.channel = channel
        self.quota = quota
        self.target_channel_id = target_channel_id
        self._ingest = ingest
        self._answer = answer
        self.question_prefix = question_prefix
        self.upload_prefix = upload_prefix

    async def on_message(self, message: ChatMessage) -> DispatchOutcome:
        if message.is_bot or message.channel_id != self.target_channel_id:
            return DispatchOutcome.IGNORED

        parsed = self._parse_command(message.content)
        if parsed is None:
            return DispatchOutcome.IGNORED
        command, args = parsed

        if not self.quota.admit(message.sender_id):
            logger.info(f"[Dispatcher] Quota exceeded for {message.sender_id}")
            await self._notify(
                message,
                QUOTA_EXCEEDED_NOTICE.format(
                    limit=self.quota.limit, window=self.quota.window_seconds
                ),
            )
            return DispatchOutcome.QUOTA_EXCEEDED

        logger.info(f"[Dispatcher] {command} from {message.sender_id}: {args[:80]!r}")
        try:
            if command == self.upload_prefix:
                return await self._handle_upload(message, args)
            return await self._handle_question(message, args)
        except Exception as exc:
            logger.exception(
                f"[Dispatcher] {command} failed | sender={message.sender_id} "
                f"channel={message.channel_id}: {exc}"
            )
            try:
                await self._notify(message, FAILURE_NOTICE)
            except Exception as notify_exc:
                logger.error(f"[Dispatcher] Could not deliver failure notice: {notify_exc}")
            return DispatchOutcome.FAILED

    def _parse_command(self, content: str) -> Optional[tuple[str, str]]:
        """Split '<prefix> <args>' when the first token is a known prefix."""
        parts = content.strip().split(maxsplit=1)
        if not parts or parts[0] not in (self.question_prefix, self.upload_prefix):
            return None
        return parts[0], parts[1].strip() if len(parts) > 1 else ""

    async def _handle_question(self, message: ChatMessage, question: str) -> DispatchOutcome:
        if not question:
            await self._notify(message, USAGE_NOTICE.format(prefix=self.question_prefix, argument="<question>"))
            return DispatchOutcome.USAGE

        await self._notify(message, THINKING_NOTICE)
        result = await self._answer(question)
        await self._notify(message, result.to_chat_message())
        return DispatchOutcome.ANSWERED

    async def _handle_upload(self, message: ChatMessage, url: str) -> DispatchOutcome:
        if not url:
            await self._notify(message, USAGE_NOTICE.format(prefix=self.upload_prefix, argument="<github tree url>"))
            return DispatchOutcome.USAGE

        await self._notify(message, UPLOAD_ACK_NOTICE.format(url=url))
        try:
            report = await self._ingest(url)
        except InvalidSourceUrlError:
            await self._notify(message, INVALID_URL_NOTICE)
            return DispatchOutcome.FAILED
        except FetchError as exc:
            logger.error(f"[Dispatcher] Upload of {url} failed at the root listing: {exc}")
            await self._notify(message, UPLOAD_FETCH_FAILED_NOTICE.format(url=url))
            return DispatchOutcome.FAILED
        except CrawlTimeoutError as exc:
            logger.error(f"[Dispatcher] {exc}")
            await self._notify(message, TIMEOUT_NOTICE.format(url=url))
            return DispatchOutcome.FAILED

        text = UPLOAD_SUCCESS_NOTICE.format(
            documents=report.documents_ingested,
            chunks=report.chunks_written,
            index=report.index_name,
        )
        if report.failures:
            text += UPLOAD_PARTIAL_SUFFIX.format(failures=len(report.failures))
        await self._notify(message, text)
        return DispatchOutcome.INGESTED

    async def _notify(self, message: ChatMessage, text: str) -> None:
        await self.channel.send(message.channel_id, text)
