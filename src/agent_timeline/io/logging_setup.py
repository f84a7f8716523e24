"""Logging for an agent-timeline run: one log file per viewed thread.

// [LAW:single-enforcer] Only this module attaches handlers; every other module
// just calls logging.getLogger(__name__).

Where and how loudly to log is resolved once from the environment:

    AGENT_TIMELINE_LOG_LEVEL  level name or number (default INFO)
    AGENT_TIMELINE_LOG_FILE   exact file to write
    AGENT_TIMELINE_LOG_DIR    directory for generated file names
                              (default $XDG_STATE_HOME/agent-timeline/logs)

File lines are tagged with the session (the thread being viewed) so logs from
several viewers can be merged and still told apart.
"""

from __future__ import annotations

import logging
import os
import re
import time
from collections.abc import Mapping
from dataclasses import dataclass
from logging.handlers import RotatingFileHandler
from pathlib import Path

LOGGER_NAME = "agent_timeline"
WARNINGS_LOGGER_NAME = "py.warnings"

FILE_FORMAT = "%(asctime)s %(levelname)-7s %(session)s %(name)s: %(message)s"
FILE_DATE_FORMAT = "%Y-%m-%dT%H:%M:%S"
STDERR_FORMAT = "agent-timeline %(levelname)s: %(message)s"

MAX_FILE_BYTES = 20 * 1024 * 1024
BACKUP_COUNT = 5

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9_-]+")


@dataclass(frozen=True)
class LoggingRuntime:
    """What configure() settled on."""

    level_name: str
    level: int
    file_path: str
    stderr: bool
    session: str = "timeline"


_RUNTIME: LoggingRuntime | None = None
_INSTALLED: list[tuple[logging.Logger, logging.Handler]] = []


class _SessionTag(logging.Filter):
    """Stamps `record.session` so the file format can print it."""

    def __init__(self, session: str):
        super().__init__()
        self.session = session

    def filter(self, record: logging.LogRecord) -> bool:
        record.session = self.session
        return True


# ─── Resolution ──────────────────────────────────────────────────────────────


def _level(raw: str | None) -> tuple[str, int]:
    text = (raw or "").strip()
    if text.isdigit():
        level = int(text)
    else:
        level = logging.getLevelName(text.upper() or "INFO")
        if not isinstance(level, int):
            level = logging.INFO
    return logging.getLevelName(level), level


def _session_slug(session_name: str) -> str:
    return _UNSAFE_CHARS.sub("-", session_name).strip("-_") or "timeline"


def _log_dir(env: Mapping[str, str]) -> Path:
    if env.get("AGENT_TIMELINE_LOG_DIR"):
        return Path(env["AGENT_TIMELINE_LOG_DIR"])
    state_home = env.get("XDG_STATE_HOME") or os.path.expanduser("~/.local/state")
    return Path(state_home) / "agent-timeline" / "logs"


def _resolve(session_name: str, stderr: bool, env: Mapping[str, str]) -> LoggingRuntime:
    level_name, level = _level(env.get("AGENT_TIMELINE_LOG_LEVEL"))
    slug = _session_slug(session_name)
    file_path = env.get("AGENT_TIMELINE_LOG_FILE")
    if not file_path:
        stamp = time.strftime("%Y%m%d-%H%M%S", time.gmtime())
        file_path = str(_log_dir(env) / f"{slug}-{stamp}-{os.getpid()}.log")
    return LoggingRuntime(level_name=level_name, level=level, file_path=file_path, stderr=stderr, session=slug)


# ─── Installation ────────────────────────────────────────────────────────────


def _handlers(runtime: LoggingRuntime) -> list[logging.Handler]:
    file_handler = RotatingFileHandler(
        runtime.file_path, maxBytes=MAX_FILE_BYTES, backupCount=BACKUP_COUNT, encoding="utf-8"
    )
    file_handler.setFormatter(logging.Formatter(FILE_FORMAT, datefmt=FILE_DATE_FORMAT))
    file_handler.addFilter(_SessionTag(runtime.session))
    handlers: list[logging.Handler] = [file_handler]
    if runtime.stderr:
        stream_handler = logging.StreamHandler()
        stream_handler.setFormatter(logging.Formatter(STDERR_FORMAT))
        handlers.append(stream_handler)
    for handler in handlers:
        handler.setLevel(runtime.level)
    return handlers


def _attach(logger: logging.Logger, handlers: list[logging.Handler]) -> None:
    for handler in handlers:
        logger.addHandler(handler)
        _INSTALLED.append((logger, handler))


def configure(
    session_name: str = "timeline",
    stderr: bool = True,
    environ: Mapping[str, str] | None = None,
) -> LoggingRuntime:
    """Send agent_timeline records (and Python warnings) to a rotating file, plus stderr if asked.

    The TUI passes stderr=False so nothing draws over the screen. Only the
    first call configures anything; later calls return the same runtime.
    """
    global _RUNTIME
    if _RUNTIME is not None:
        return _RUNTIME

    runtime = _resolve(session_name, stderr, os.environ if environ is None else environ)
    Path(runtime.file_path).parent.mkdir(parents=True, exist_ok=True)
    handlers = _handlers(runtime)

    app_logger = logging.getLogger(LOGGER_NAME)
    app_logger.setLevel(runtime.level)
    app_logger.propagate = False
    _attach(app_logger, handlers)

    # Deprecation noise from textual/rich belongs in the file, never on the TUI.
    logging.captureWarnings(True)
    warnings_logger = logging.getLogger(WARNINGS_LOGGER_NAME)
    warnings_logger.propagate = False
    _attach(warnings_logger, handlers[:1])

    _RUNTIME = runtime
    return runtime


def get_runtime() -> LoggingRuntime | None:
    return _RUNTIME


def reset() -> None:
    """Undo configure(): detach and close what it installed."""
    global _RUNTIME
    closed: set[int] = set()
    for logger, handler in _INSTALLED:
        logger.removeHandler(handler)
        if id(handler) not in closed:
            handler.close()
            closed.add(id(handler))
    _INSTALLED.clear()
    logging.captureWarnings(False)
    for name in (LOGGER_NAME, WARNINGS_LOGGER_NAME):
        logger = logging.getLogger(name)
        logger.propagate = True
        logger.setLevel(logging.NOTSET)
    _RUNTIME = None
