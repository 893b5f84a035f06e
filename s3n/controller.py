"""Navigation state machine for browsing one bucket.

The navigator owns every piece of browsing state.  Transitions triggered by
key presses (``enter``, ``back``, ``reload``, paging, ``begin_session``)
return the work the caller must start, or ``None`` when the transition is
rejected.  Completions of that work come back through :meth:`Navigator.dispatch`
as one of the :data:`Event` types.  All calls happen on the UI event loop, so
state is mutated in place without locking.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Union

from .listing import (
    DELIMITER,
    Entry,
    PageCursor,
    cursor_after,
    listing_status,
    parent_prefix,
    project_listing,
)
from .s3 import ListingPage
from .session import MODE_EDIT, MODE_VIEW, Session, SessionResult, new_session

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FetchRequest:
    generation: int
    prefix: str
    token: Optional[str] = None
    history: tuple[Optional[str], ...] = ()


@dataclass(frozen=True)
class StatusMessage:
    text: str = ""
    visible: bool = False
    token: int = 0


@dataclass(frozen=True)
class ListingLoaded:
    request: FetchRequest
    page: ListingPage


@dataclass(frozen=True)
class ListingFailed:
    request: FetchRequest
    error: BaseException


@dataclass(frozen=True)
class SessionFinished:
    result: SessionResult


@dataclass(frozen=True)
class StatusExpired:
    token: int


Event = Union[ListingLoaded, ListingFailed, SessionFinished, StatusExpired]


@dataclass
class Navigator:
    bucket: str
    scratch_dir: Path
    delimiter: str = DELIMITER
    current_prefix: str = ""
    cursor: PageCursor = field(default_factory=PageCursor)
    entries: list[Entry] = field(default_factory=list)
    loading: bool = False
    session: Optional[Session] = None
    previewing: bool = False
    status: StatusMessage = field(default_factory=StatusMessage)
    _generation: int = field(default=0, init=False, repr=False)
    _status_token: int = field(default=0, init=False, repr=False)

    @property
    def busy(self) -> bool:
        return self.loading or self.previewing or self.session is not None

    @property
    def location(self) -> str:
        return f"s3://{self.bucket}/{self.current_prefix}"

    def start(self) -> FetchRequest:
        return self._request(self.current_prefix)

    def enter(self, entry: Optional[Entry]) -> Optional[FetchRequest]:
        if self.busy or entry is None or not entry.is_dir:
            return None
        self.current_prefix = entry.key
        self.cursor = PageCursor()
        return self._request(self.current_prefix)

    def back(self) -> Optional[FetchRequest]:
        if self.busy or not self.current_prefix:
            return None
        self.current_prefix = parent_prefix(self.current_prefix, self.delimiter)
        self.cursor = PageCursor()
        return self._request(self.current_prefix)

    def reload(self) -> Optional[FetchRequest]:
        if self.busy:
            return None
        return self._request(
            self.current_prefix, self.cursor.token, self.cursor.history
        )

    def next_page(self) -> Optional[FetchRequest]:
        if self.busy or not self.cursor.has_more or not self.cursor.next_token:
            return None
        history = (*self.cursor.history, self.cursor.token)
        return self._request(self.current_prefix, self.cursor.next_token, history)

    def previous_page(self) -> Optional[FetchRequest]:
        if self.busy or not self.cursor.has_previous:
            return None
        history = self.cursor.history[:-1]
        return self._request(self.current_prefix, self.cursor.history[-1], history)

    def first_page(self) -> Optional[FetchRequest]:
        if self.busy or not self.cursor.has_previous:
            return None
        return self._request(self.current_prefix)

    def begin_session(self, entry: Optional[Entry], mode: str) -> Optional[Session]:
        if self.busy or entry is None or entry.is_dir:
            return None
        if mode not in (MODE_VIEW, MODE_EDIT):
            raise ValueError(f"unknown session mode: {mode!r}")
        self.session = new_session(self.scratch_dir, self.bucket, entry.key, mode)
        logger.debug("session started: %s %s", mode, entry.key)
        return self.session

    def begin_preview(self, entry: Optional[Entry]) -> bool:
        if self.busy or entry is None or entry.is_dir:
            return False
        self.previewing = True
        return True

    def end_preview(self) -> None:
        self.previewing = False

    def set_status(self, text: str) -> int:
        self._status_token += 1
        self.status = StatusMessage(text=text, visible=True, token=self._status_token)
        return self._status_token

    def dispatch(self, event: Event) -> Optional[int]:
        """Apply one completion event.

        Returns a status token when the resulting status message should be
        cleared later, otherwise ``None``.
        """
        if isinstance(event, ListingLoaded):
            self._listing_loaded(event.request, event.page)
            return None
        if isinstance(event, ListingFailed):
            self._listing_failed(event.request, event.error)
            return None
        if isinstance(event, SessionFinished):
            return self._session_finished(event.result)
        if isinstance(event, StatusExpired):
            self._status_expired(event.token)
            return None
        raise TypeError(f"unhandled event: {event!r}")

    def _request(
        self,
        prefix: str,
        token: Optional[str] = None,
        history: tuple[Optional[str], ...] = (),
    ) -> FetchRequest:
        self._generation += 1
        self.loading = True
        request = FetchRequest(
            generation=self._generation,
            prefix=prefix,
            token=token,
            history=history,
        )
        logger.debug(
            "listing requested: prefix=%r token=%r generation=%d",
            prefix,
            token,
            request.generation,
        )
        return request

    def _is_stale(self, request: FetchRequest) -> bool:
        if request.generation != self._generation:
            logger.debug("dropping stale listing (generation %d)", request.generation)
            return True
        return False

    def _listing_loaded(self, request: FetchRequest, page: ListingPage) -> None:
        if self._is_stale(request):
            return
        self.current_prefix = request.prefix
        self.entries = project_listing(page, request.prefix, self.delimiter)
        self.cursor = cursor_after(page, request.token, request.history)
        self.loading = False
        logger.debug(
            "listing loaded: prefix=%r entries=%d more=%s",
            request.prefix,
            len(self.entries),
            self.cursor.has_more,
        )
        self.set_status(listing_status(len(self.entries), self.cursor.has_more))

    def _listing_failed(self, request: FetchRequest, error: BaseException) -> None:
        if self._is_stale(request):
            return
        self.loading = False
        logger.debug("listing failed: prefix=%r error=%s", request.prefix, error)
        self.set_status(f"Error: {error}")

    def _session_finished(self, result: SessionResult) -> Optional[int]:
        if self.session is None or result.session != self.session:
            logger.debug("ignoring result for inactive session %s", result.session.key)
            return None
        self.session = None
        if not result.message:
            return None
        token = self.set_status(result.message)
        if result.uploaded and not result.failed:
            return token
        return None

    def _status_expired(self, token: int) -> None:
        if token != self.status.token:
            return
        self.status = StatusMessage(token=token)
