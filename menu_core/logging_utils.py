from __future__ import annotations

import logging
import os
import tempfile
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Iterator, Optional

LOG_DIR_ENV = "WINDOW_MENU_LOG_DIR"
DEBUG_ENV = "WINDOW_MENU_DEBUG"
PROPAGATE_ENV = "WINDOW_MENU_PROPAGATE_LOGS"

CORE_LOGGER_NAME = "WindowMenu.Core"
CLIENT_LOGGER_NAME = "WindowMenu.Client"
LOG_FILENAME = "window-menu.log"
MAX_LOG_BYTES = 512 * 1024

_TRUTHY = {"1", "true", "yes", "on"}
_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def env_flag(name: str) -> bool:
    return os.environ.get(name, "").strip().lower() in _TRUTHY


def log_dir_candidates() -> Iterator[Path]:
    """Directories to try for the menu log, most specific first.

    An explicit WINDOW_MENU_LOG_DIR is used as is; otherwise the XDG state
    home, then the XDG cache home, then the system temp dir.
    """
    override = os.environ.get(LOG_DIR_ENV, "").strip()
    if override:
        yield Path(override).expanduser()
    home = Path.home()
    yield Path(os.environ.get("XDG_STATE_HOME") or home / ".local" / "state") / "window-menu"
    yield Path(os.environ.get("XDG_CACHE_HOME") or home / ".cache") / "window-menu"
    yield Path(tempfile.gettempdir()) / "window-menu"


def _first_writable_dir() -> Path:
    last_error: Optional[OSError] = None
    for candidate in log_dir_candidates():
        try:
            candidate.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            last_error = exc
            continue
        return candidate
    raise OSError(f"no usable log directory: {last_error}")


def configure_logging(
    *,
    debug: Optional[bool] = None,
    retention: int = 5,
    log_dir: Optional[Path] = None,
    filename: str = LOG_FILENAME,
) -> Path:
    """Point the core and client loggers at one rotating log file.

    ``retention`` counts the live file plus its backups. The level is DEBUG
    when ``debug`` is set (or WINDOW_MENU_DEBUG when it is None), INFO
    otherwise. A second call swaps the file handler instead of stacking a new
    one. Returns the log file path.
    """
    if debug is None:
        debug = env_flag(DEBUG_ENV)
    if log_dir is None:
        log_dir = _first_writable_dir()
    else:
        log_dir.mkdir(parents=True, exist_ok=True)
    log_path = log_dir / filename

    handler = RotatingFileHandler(
        log_path,
        maxBytes=MAX_LOG_BYTES,
        backupCount=max(1, retention) - 1,
        encoding="utf-8",
    )
    handler.setFormatter(logging.Formatter(_FORMAT))
    level = logging.DEBUG if debug else logging.INFO
    propagate = env_flag(PROPAGATE_ENV)
    for name in (CORE_LOGGER_NAME, CLIENT_LOGGER_NAME):
        logger = logging.getLogger(name)
        for existing in list(logger.handlers):
            if isinstance(existing, RotatingFileHandler):
                logger.removeHandler(existing)
                existing.close()
        logger.addHandler(handler)
        logger.setLevel(level)
        logger.propagate = propagate
    return log_path
