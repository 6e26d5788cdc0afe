"""Decides which repository files are worth fetching and embedding."""
from __future__ import annotations

from typing import Iterable

DEFAULT_EXTENSIONS = frozenset({"md", "txt", "mdx"})


class DocumentFilter:
    """Extension allow-list. Pure, no I/O."""

    def __init__(self, allowed_extensions: Iterable[str] = DEFAULT_EXTENSIONS) -> None:
        self.allowed_extensions = frozenset(e.lower().lstrip(".") for e in allowed_extensions)

    def is_eligible(self, file_name: str) -> bool:
        if "." not in file_name:
            return False
        extension = file_name.rsplit(".", 1)[1].lower()
        return extension in self.allowed_extensions


def is_eligible(file_name: str) -> bool:
    """Check a file name against the default allow-list (md, txt, mdx)."""
    return _DEFAULT_FILTER.is_eligible(file_name)


_DEFAULT_FILTER = DocumentFilter()
