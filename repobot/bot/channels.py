"""Outbound chat channels the dispatcher writes notices to."""
from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class ChatChannel(Protocol):
    async def send(self, channel_id: str, text: str) -> None:
        """Post a plain-text notice to a channel."""
        ...


class BufferedChannel:
    """Keeps notices in memory, in send order. Used by the HTTP surface."""

    def __init__(self) -> None:
        self.sent: list[tuple[str, str]] = []

    async def send(self, channel_id: str, text: str) -> None:
        self.sent.append((channel_id, text))

    @property
    def notices(self) -> list[str]:
        return [text for _, text in self.sent]
