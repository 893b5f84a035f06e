"""Project a flat S3 listing onto one level of a virtual directory tree."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from .s3 import ListingPage

DELIMITER = "/"
PAGE_SIZE = 100


@dataclass(frozen=True)
class Entry:
    key: str
    display_key: str
    is_dir: bool
    size: int = 0
    last_modified: Optional[datetime] = None
    content_type: str = ""


@dataclass(frozen=True)
class PageCursor:
    """Position of the displayed page inside one prefix listing.

    ``token`` produced the page on screen (``None`` for the first page),
    ``next_token`` continues after it, and ``history`` holds the tokens of
    the pages before it so paging backwards never needs the store.
    """

    token: Optional[str] = None
    next_token: Optional[str] = None
    has_more: bool = False
    history: tuple[Optional[str], ...] = ()

    @property
    def page_number(self) -> int:
        return len(self.history) + 1

    @property
    def has_previous(self) -> bool:
        return bool(self.history)


def display_segment(full_key: str, parent_prefix: str, delimiter: str = DELIMITER) -> str:
    name = full_key[len(parent_prefix) :] if parent_prefix else full_key
    if name.endswith(delimiter):
        name = name[: -len(delimiter)]
    return name


def project_listing(
    page: ListingPage, prefix: str, delimiter: str = DELIMITER
) -> list[Entry]:
    dirs: list[Entry] = []
    for common in page.prefixes:
        if not common or common == prefix:
            continue
        if not common.startswith(prefix):
            continue
        dirs.append(
            Entry(
                key=common,
                display_key=display_segment(common, prefix, delimiter),
                is_dir=True,
            )
        )
    files: list[Entry] = []
    for obj in page.objects:
        if not obj.key or obj.key == prefix:
            continue
        if not obj.key.startswith(prefix):
            continue
        relative = obj.key[len(prefix) :]
        # Deeper keys belong to a subdirectory, not this level.
        if delimiter in relative:
            continue
        files.append(
            Entry(
                key=obj.key,
                display_key=relative,
                is_dir=False,
                size=obj.size,
                last_modified=obj.last_modified,
                content_type=obj.content_type or "",
            )
        )
    return dirs + files


def cursor_after(
    page: ListingPage,
    token: Optional[str],
    history: tuple[Optional[str], ...] = (),
) -> PageCursor:
    return PageCursor(
        token=token,
        next_token=page.next_token if page.is_truncated else None,
        has_more=page.is_truncated,
        history=history,
    )


def parent_prefix(prefix: str, delimiter: str = DELIMITER) -> str:
    if not prefix:
        return ""
    trimmed = prefix[: -len(delimiter)] if prefix.endswith(delimiter) else prefix
    if delimiter not in trimmed:
        return ""
    return trimmed.rsplit(delimiter, 1)[0] + delimiter


def listing_status(count: int, has_more: bool) -> str:
    if count == 0:
        return "Directory is empty"
    if has_more:
        return f"Showing {count} items (More available - press 'n' for next page)"
    return f"Showing {count} items (End of list)"
