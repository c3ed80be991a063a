from __future__ import annotations

import logging
import os
import sys
import traceback
from datetime import datetime
from pathlib import Path

_LOGGER = logging.getLogger("moodsynth.logging")
_ROOT_LOGGER = "moodsynth"
_LOG_DIR_ENV = "MOODSYNTH_LOG_DIR"
_DEBUG_ENV = "MOODSYNTH_DEBUG"
_LOG_FILE = "moodsynth.log"
_configured = False

# Console lines are short: a level glyph, the subsystem, the message.
_LEVEL_GLYPHS = {
    logging.DEBUG: "·",
    logging.INFO: "♪",
    logging.WARNING: "⚠️",
    logging.ERROR: "❌",
    logging.CRITICAL: "💥",
}


class _SubsystemFormatter(logging.Formatter):
    """Prefixes records with a level glyph and drops the ``moodsynth.`` prefix."""

    def __init__(self) -> None:
        super().__init__("%(glyph)s %(subsystem)s: %(message)s")

    def format(self, record: logging.LogRecord) -> str:
        record.glyph = _LEVEL_GLYPHS.get(record.levelno, "")
        name = record.name
        record.subsystem = name.split(".", 1)[1] if name.startswith(f"{_ROOT_LOGGER}.") else name
        return super().format(record)


def get_log_dir() -> Path:
    configured = os.environ.get(_LOG_DIR_ENV)
    if configured:
        return Path(configured).expanduser()
    return Path.home() / ".cache" / "moodsynth" / "logs"


def get_log_path() -> Path:
    return get_log_dir() / _LOG_FILE


def debug_enabled() -> bool:
    return bool(os.environ.get(_DEBUG_ENV))


def _console_handler() -> logging.Handler:
    handler = logging.StreamHandler(stream=sys.__stderr__)
    # warnings only unless MOODSYNTH_DEBUG is set
    handler.setLevel(logging.DEBUG if debug_enabled() else logging.WARNING)
    handler.setFormatter(_SubsystemFormatter())
    return handler


def _file_handler() -> logging.Handler:
    log_dir = get_log_dir()
    log_dir.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(get_log_path(), encoding="utf-8")
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(
        logging.Formatter("%(asctime)s %(levelname)-7s %(name)s: %(message)s", datefmt="%Y-%m-%d %H:%M:%S")
    )
    return handler


def configure_logging(*, force: bool = False) -> None:
    """Attach console and file handlers to the ``moodsynth`` logger once.

    The console handler is skipped when the host application already set up
    root logging, so a game's own handlers decide how engine messages look.
    """
    global _configured
    if _configured and not force:
        return

    logger = logging.getLogger(_ROOT_LOGGER)
    logger.setLevel(logging.DEBUG)
    if force:
        for handler in list(logger.handlers):
            logger.removeHandler(handler)
            handler.close()

    if force or not logging.getLogger().handlers:
        logger.addHandler(_console_handler())

    try:
        logger.addHandler(_file_handler())
    except OSError as exc:
        _LOGGER.warning("File logging disabled: %s", exc, exc_info=True)

    logger.propagate = True
    _configured = True


def log_exception(context: str, exc: BaseException) -> Path | None:
    """Append ``exc`` with its traceback to the log file; never raises."""
    try:
        path = get_log_path()
        path.parent.mkdir(parents=True, exist_ok=True)
        stamp = datetime.now().isoformat(timespec="seconds")
        with path.open("a", encoding="utf-8") as handle:
            handle.write(f"[{stamp}] {context} failed: {type(exc).__name__}: {exc}\n")
            traceback.print_exception(type(exc), exc, exc.__traceback__, file=handle)
            handle.write("\n")
        return path
    except Exception as log_exc:
        _LOGGER.warning("Could not write crash log: %s", log_exc, exc_info=True)
        return None
