"""View and edit round trips through a scratch file and an external program.

A session downloads one object, writes it to a scratch file, hands the
terminal to a pager or editor, optionally uploads the result, and always
removes the scratch file before returning.  Failures never escape as
exceptions: they come back as a failed :class:`SessionResult` whose message
is meant for the status line.
"""

from __future__ import annotations

import logging
import shlex
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Mapping, Optional

from .formatting import format_size, format_time, kind_from_name
from .s3 import ObjectBody

logger = logging.getLogger(__name__)

MODE_VIEW = "view"
MODE_EDIT = "edit"

DEFAULT_PAGER = "less"
HEADER_MARGIN = 10

# Runs argv with the terminal handed over and returns the exit status.
Launcher = Callable[[list[str]], int]


class SessionError(RuntimeError):
    pass


@dataclass(frozen=True)
class Session:
    key: str
    local_path: Path
    mode: str
    kind: str


@dataclass(frozen=True)
class SessionResult:
    session: Session
    message: Optional[str] = None
    failed: bool = False
    uploaded: bool = False


def scratch_path(scratch_dir: Path, bucket: str, key: str) -> Path:
    return Path(scratch_dir) / f"{bucket}-{key.replace('/', '-')}"


def new_session(scratch_dir: Path, bucket: str, key: str, mode: str) -> Session:
    if mode not in (MODE_VIEW, MODE_EDIT):
        raise ValueError(f"unknown session mode: {mode!r}")
    return Session(
        key=key,
        local_path=scratch_path(scratch_dir, bucket, key),
        mode=mode,
        kind=kind_from_name(key.rsplit("/", 1)[-1]),
    )


def format_metadata(metadata: Mapping[str, str]) -> str:
    if not metadata:
        return "-"
    return ", ".join(f"{name}={value}" for name, value in sorted(metadata.items()))


def compose_header(bucket: str, obj: ObjectBody, width: int) -> str:
    separator = "-" * max(0, width - HEADER_MARGIN)
    lines = [
        f"s3://{bucket}/{obj.key}",
        f"Metadata: {format_metadata(obj.metadata)}",
        f"Size: {format_size(obj.size)}",
        f"Last-Modified: {format_time(obj.last_modified)}",
        separator,
    ]
    if obj.content_type:
        lines.insert(2, f"Content-Type: {obj.content_type}")
    return "\n".join(lines) + "\n\n"


def resolve_command(value: Optional[str], variable: str, verb: str) -> list[str]:
    text = (value or "").strip()
    if not text:
        raise SessionError(f"Cannot {verb}: ${variable} is not set.")
    try:
        command = shlex.split(text)
    except ValueError as exc:
        raise SessionError(f"Cannot {verb}: invalid ${variable}: {exc}") from exc
    if not command:
        raise SessionError(f"Cannot {verb}: ${variable} is empty.")
    return command


def remove_scratch(path: Path) -> Optional[str]:
    try:
        path.unlink()
    except (FileNotFoundError, NotADirectoryError):
        return None
    except OSError as exc:
        logger.warning("failed to remove scratch file %s: %s", path, exc)
        return f"failed to remove {path}: {exc}"
    logger.debug("removed scratch file %s", path)
    return None


class SessionRunner:
    def __init__(
        self,
        service,
        bucket: str,
        launcher: Launcher,
        editor: Optional[str] = None,
        pager: Optional[str] = DEFAULT_PAGER,
    ) -> None:
        self.service = service
        self.bucket = bucket
        self._launcher = launcher
        self._editor = editor
        self._pager = pager

    async def view(self, session: Session, width: int) -> SessionResult:
        try:
            result = await self._view(session, width)
        except SessionError as exc:
            result = SessionResult(session=session, message=f"Error: {exc}", failed=True)
        finally:
            cleanup_error = remove_scratch(session.local_path)
        return self._with_cleanup(result, cleanup_error)

    async def edit(self, session: Session) -> SessionResult:
        try:
            result = await self._edit(session)
        except SessionError as exc:
            result = SessionResult(session=session, message=f"Error: {exc}", failed=True)
        finally:
            cleanup_error = remove_scratch(session.local_path)
        return self._with_cleanup(result, cleanup_error)

    async def _view(self, session: Session, width: int) -> SessionResult:
        command = resolve_command(self._pager or DEFAULT_PAGER, "PAGER", "view")
        obj = await self._fetch(session)
        header = compose_header(self.bucket, obj, width)
        self._write(session, obj.body, header)
        status = self._run(command, session, "pager")
        if status != 0:
            return SessionResult(
                session=session,
                message=f"Pager exited with status {status}",
            )
        return SessionResult(session=session)

    async def _edit(self, session: Session) -> SessionResult:
        command = resolve_command(self._editor, "EDITOR", "edit")
        obj = await self._fetch(session)
        self._write(session, obj.body)
        status = self._run(command, session, "editor")
        # Whatever the editor saved is uploaded, even on a non-zero exit.
        data = self._read(session)
        try:
            await self.service.put_object(
                self.bucket, session.key, data, content_type=obj.content_type
            )
        except Exception as exc:
            raise SessionError(
                f"failed to upload s3://{self.bucket}/{session.key}: {exc}"
            ) from exc
        logger.debug("uploaded %d bytes to %s", len(data), session.key)
        message = (
            f"→ Uploaded {session.local_path.name} "
            f"to s3://{self.bucket}/{session.key}"
        )
        if status != 0:
            message = f"editor exited with status {status}; {message}"
        return SessionResult(session=session, message=message, uploaded=True)

    async def _fetch(self, session: Session) -> ObjectBody:
        logger.debug("fetching %s for %s", session.key, session.mode)
        try:
            return await self.service.get_object(self.bucket, session.key)
        except Exception as exc:
            raise SessionError(
                f"failed to fetch s3://{self.bucket}/{session.key}: {exc}"
            ) from exc

    def _write(self, session: Session, body: bytes, header: str = "") -> None:
        path = session.local_path
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with path.open("wb") as handle:
                if header:
                    handle.write(header.encode("utf-8"))
                handle.write(body)
        except OSError as exc:
            raise SessionError(f"failed to write temp file {path}: {exc}") from exc
        logger.debug("wrote %s", path)

    def _read(self, session: Session) -> bytes:
        try:
            return session.local_path.read_bytes()
        except OSError as exc:
            raise SessionError(
                f"failed to read temp file {session.local_path}: {exc}"
            ) from exc

    def _run(self, command: list[str], session: Session, name: str) -> int:
        argv = [*command, str(session.local_path)]
        logger.debug("launching %s", argv)
        try:
            status = self._launcher(argv)
        except OSError as exc:
            raise SessionError(f"failed to launch {name} {command[0]}: {exc}") from exc
        logger.debug("%s exited with status %s", name, status)
        return status

    def _with_cleanup(
        self, result: SessionResult, cleanup_error: Optional[str]
    ) -> SessionResult:
        if cleanup_error is None:
            return result
        message = f"Error: {cleanup_error}"
        if result.message:
            message = f"{result.message} ({cleanup_error})"
        return SessionResult(
            session=result.session,
            message=message,
            failed=True,
            uploaded=result.uploaded,
        )
