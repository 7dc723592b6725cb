"""Runtime configuration for the Finance Tracker client."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping

from dotenv import load_dotenv

DEFAULT_API_URL = "http://localhost:3001/api"
DEFAULT_STORAGE_PATH = Path.home() / ".finance_tracker" / "local_storage.json"
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


@dataclass(frozen=True)
class Settings:
    api_url: str = DEFAULT_API_URL
    storage_path: Path = DEFAULT_STORAGE_PATH
    notification_seconds: float = 3.0
    request_timeout: float | None = None
    log_level: str = "INFO"
    page_size: int = 10


def _number(env: Mapping[str, str], name: str, cast: type, default):
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return cast(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be a number, got {raw!r}") from exc


def load_settings(env: Mapping[str, str] | None = None) -> Settings:
    """Read settings once at start-up.

    When ``env`` is omitted a ``.env`` file is loaded first (already-exported
    variables take precedence) and ``os.environ`` is used.
    """

    if env is None:
        load_dotenv(override=False)
        env = os.environ

    storage = env.get("FINANCE_STORAGE_PATH")
    return Settings(
        api_url=(env.get("FINANCE_API_URL") or DEFAULT_API_URL).rstrip("/"),
        storage_path=Path(storage).expanduser() if storage else DEFAULT_STORAGE_PATH,
        notification_seconds=_number(env, "FINANCE_NOTIFICATION_SECONDS", float, 3.0),
        request_timeout=_number(env, "FINANCE_REQUEST_TIMEOUT", float, None),
        log_level=(env.get("FINANCE_LOG_LEVEL") or "INFO").upper(),
        page_size=_number(env, "FINANCE_PAGE_SIZE", int, 10),
    )


def configure_logging(level: str = "INFO") -> None:
    """Attach a single stream handler to the ``finance_tracker`` logger tree."""

    logger = logging.getLogger("finance_tracker")
    logger.setLevel(level)
    if not any(getattr(handler, "_finance_tracker", False) for handler in logger.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler._finance_tracker = True  # type: ignore[attr-defined]
        logger.addHandler(handler)
