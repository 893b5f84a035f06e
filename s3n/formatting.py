from __future__ import annotations

from datetime import datetime
from pathlib import PurePosixPath
from typing import Optional

from rich import filesize

TIME_FORMAT = "%Y-%m-%d %H:%M:%S"

KIND_BY_EXTENSION = {
    "md": "markdown",
    "jsonl": "ndjson",
    "yml": "yaml",
    "htm": "html",
    "sh": "shell",
    "py": "python",
}


def format_size(size: int) -> str:
    return filesize.decimal(max(0, int(size)))


def format_time(value: Optional[datetime]) -> str:
    if value is None:
        return ""
    return value.strftime(TIME_FORMAT)


def kind_from_name(name: str) -> str:
    """Coarse file kind from the extension, looking through a trailing .gz."""
    path = PurePosixPath(name)
    if path.suffix.lower() == ".gz":
        path = path.with_suffix("")
    ext = path.suffix.lstrip(".").lower()
    if not ext:
        return "file"
    return KIND_BY_EXTENSION.get(ext, ext)
