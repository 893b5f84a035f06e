from __future__ import annotations

import json
import logging
import os
import tempfile
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Mapping, Optional

from .listing import DELIMITER, PAGE_SIZE
from .session import DEFAULT_PAGER

logger = logging.getLogger(__name__)

STATUS_CLEAR_SECONDS = 2.0
LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"
TRUE_VALUES = {"1", "true", "yes", "on"}


def config_base_dir(environ: Optional[Mapping[str, str]] = None) -> Path:
    env = os.environ if environ is None else environ
    config_home = env.get("XDG_CONFIG_HOME")
    if config_home:
        base = Path(config_home).expanduser()
    else:
        base = Path.home() / ".config"
    return base / "s3n"


def _env_flag(value: Optional[str]) -> bool:
    if value is None:
        return False
    return value.strip().lower() in TRUE_VALUES


@dataclass(frozen=True)
class Preferences:
    show_content_type: bool = False


@dataclass(frozen=True)
class Settings:
    bucket: str
    region: Optional[str] = None
    profile: Optional[str] = None
    endpoint_url: Optional[str] = None
    page_size: int = PAGE_SIZE
    delimiter: str = DELIMITER
    debug: bool = False
    log_path: Path = field(default_factory=lambda: config_base_dir() / "debug.log")
    editor: str = ""
    pager: str = DEFAULT_PAGER
    scratch_dir: Path = field(default_factory=lambda: Path(tempfile.gettempdir()))
    status_clear_seconds: float = STATUS_CLEAR_SECONDS
    preferences_path: Path = field(
        default_factory=lambda: config_base_dir() / "config.json"
    )

    @classmethod
    def from_env(
        cls,
        bucket: str,
        environ: Optional[Mapping[str, str]] = None,
        **overrides,
    ) -> "Settings":
        env = os.environ if environ is None else environ
        base = config_base_dir(env)
        values: dict[str, object] = {
            "bucket": bucket,
            "endpoint_url": env.get("S3N_ENDPOINT_URL") or None,
            "debug": _env_flag(env.get("DEBUG")),
            "log_path": Path(env.get("S3N_LOG_FILE") or base / "debug.log").expanduser(),
            "editor": env.get("EDITOR", ""),
            "pager": env.get("PAGER") or DEFAULT_PAGER,
            "scratch_dir": Path(
                env.get("S3N_SCRATCH_DIR") or tempfile.gettempdir()
            ).expanduser(),
            "preferences_path": base / "config.json",
        }
        settings = cls(**values)
        cleaned = {key: value for key, value in overrides.items() if value is not None}
        if cleaned:
            settings = replace(settings, **cleaned)
        if settings.page_size < 1 or settings.page_size > 1000:
            raise ValueError("page size must be between 1 and 1000")
        return settings


def load_preferences(path: Path) -> Preferences:
    try:
        payload = json.loads(Path(path).read_text())
    except Exception:
        return Preferences()
    if not isinstance(payload, dict):
        return Preferences()
    return Preferences(show_content_type=bool(payload.get("show_content_type", False)))


def save_preferences(path: Path, preferences: Preferences) -> bool:
    path = Path(path)
    try:
        payload = json.loads(path.read_text())
    except Exception:
        payload = {}
    if not isinstance(payload, dict):
        payload = {}
    payload["show_content_type"] = bool(preferences.show_content_type)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        temp_path = path.with_suffix(".tmp")
        temp_path.write_text(json.dumps(payload, indent=2))
        temp_path.replace(path)
    except OSError as exc:
        logger.warning("failed to save preferences to %s: %s", path, exc)
        return False
    return True


def configure_logging(settings: Settings) -> Optional[Path]:
    if not settings.debug:
        return None
    path = Path(settings.log_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(path, encoding="utf-8")
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    package_logger = logging.getLogger("s3n")
    package_logger.addHandler(handler)
    package_logger.setLevel(logging.DEBUG)
    package_logger.debug("debug logging enabled for bucket %s", settings.bucket)
    return path
