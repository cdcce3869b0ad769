#!/usr/bin/env python3
"""
🔍 Logging setup for homehub

Module loggers (``spotify``, ``registry``, ``transfer``, ``scheduler``,
``service.<name>``...) only create records and pass context through
``extra={...}``; the handlers hang off the root logger that
``setup_logging`` configures once per process.

On a Raspberry Pi the gateway runs quieter (WARNING, console only) to spare
the SD card. ``HOMEHUB_DEV=1`` or ``--dev`` restores the verbose profile.
"""

import json
import logging
import logging.handlers
import os
import platform
import sys
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List

import psutil

CONSOLE_FORMAT = '%(asctime)s | %(levelname)s | %(name)s | %(message)s'
FILE_FORMAT = '%(asctime)s | %(name)s | %(levelname)s | %(filename)s:%(lineno)d | %(message)s'


def _running_on_pi() -> bool:
    if os.getenv('HOMEHUB_RASPBERRY_PI') == '1':
        return True
    if platform.system() == 'Linux' and platform.machine().startswith(('arm', 'aarch64')):
        return True
    return 'raspberrypi' in platform.node().lower()


@dataclass(frozen=True)
class LogSettings:
    level: int
    log_dir: Path
    to_file: bool
    json_lines: bool
    colored: bool
    max_bytes: int
    backups: int
    system_info: bool
    on_pi: bool


def settings_from_env() -> LogSettings:
    """Read the ``HOMEHUB_*`` logging switches."""
    on_pi = _running_on_pi()
    dev = '--dev' in sys.argv or os.getenv('HOMEHUB_DEV') == '1'
    quiet = on_pi and not dev

    level = logging.WARNING if quiet else logging.INFO
    if os.getenv('HOMEHUB_LOG_LEVEL'):
        level = getattr(logging, os.environ['HOMEHUB_LOG_LEVEL'].upper(), level)

    log_dir = os.getenv('HOMEHUB_LOG_DIR')
    return LogSettings(
        level=level,
        log_dir=Path(log_dir).expanduser() if log_dir else Path.home() / ".homehub" / "logs",
        to_file=not quiet or os.getenv('HOMEHUB_FORCE_FILE_LOG') == '1',
        json_lines=os.getenv('HOMEHUB_JSON_LOGS', '0') == '1',
        colored=not quiet,
        max_bytes=(1 if quiet else 10) * 1024 * 1024,
        backups=1 if quiet else 5,
        system_info=not quiet,
        on_pi=on_pi,
    )


# LogRecord attributes; anything else arrived through ``extra``
_RECORD_FIELDS = frozenset(vars(logging.LogRecord('', 0, '', 0, '', (), None))) | {'message', 'asctime', 'taskName'}


def _extra_fields(record: logging.LogRecord) -> Dict[str, Any]:
    return {key: value for key, value in vars(record).items() if key not in _RECORD_FIELDS}


class ContextFormatter(logging.Formatter):
    """Appends ``extra`` fields as sorted ``key=value`` pairs."""

    def format(self, record: logging.LogRecord) -> str:
        text = super().format(record)
        context = _extra_fields(record)
        if not context:
            return text
        return text + " | " + " ".join(f"{key}={context[key]}" for key in sorted(context))


class ColoredFormatter(ContextFormatter):
    """Console formatter with the level name in ANSI colour."""

    COLORS = {
        'DEBUG': '\033[36m',
        'INFO': '\033[32m',
        'WARNING': '\033[33m',
        'ERROR': '\033[31m',
        'CRITICAL': '\033[35m',
    }
    RESET = '\033[0m'

    def format(self, record: logging.LogRecord) -> str:
        plain = record.levelname
        record.levelname = f"{self.COLORS.get(plain, '')}{plain}{self.RESET}"
        try:
            return super().format(record)
        finally:
            record.levelname = plain


class JSONFormatter(logging.Formatter):
    """One JSON object per line, e.g.::

        {"level": "ERROR", "logger": "transfer", "message": "transfer.destination.failed",
         "status": 404, "timestamp": "2026-01-04T10:30:00.123000Z", "to_env": "home"}
    """

    def format(self, record: logging.LogRecord) -> str:
        created = datetime.fromtimestamp(record.created, tz=timezone.utc)
        entry: Dict[str, Any] = {
            'timestamp': created.isoformat().replace('+00:00', 'Z'),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
        }
        if record.levelno >= logging.WARNING:
            entry['source'] = f"{record.filename}:{record.lineno}"
        if record.exc_info:
            entry['exception'] = self.formatException(record.exc_info)

        for key, value in _extra_fields(record).items():
            try:
                json.dumps(value)
            except (TypeError, ValueError):
                value = str(value)
            entry[key] = value
        return json.dumps(entry, ensure_ascii=True, sort_keys=True)


def _build_handlers(settings: LogSettings) -> List[logging.Handler]:
    console = logging.StreamHandler()
    console.setLevel(settings.level)
    if settings.json_lines:
        console.setFormatter(JSONFormatter())
    elif settings.colored:
        console.setFormatter(ColoredFormatter(CONSOLE_FORMAT))
    else:
        console.setFormatter(ContextFormatter(CONSOLE_FORMAT))
    handlers: List[logging.Handler] = [console]

    try:
        settings.log_dir.mkdir(parents=True, exist_ok=True)
    except OSError:
        return handlers

    targets = [("homehub_errors.log", logging.ERROR)]
    if settings.to_file:
        targets.insert(0, ("homehub.log", settings.level))
    for filename, level in targets:
        handler = logging.handlers.RotatingFileHandler(
            settings.log_dir / filename,
            maxBytes=settings.max_bytes,
            backupCount=settings.backups,
            encoding='utf-8',
        )
        handler.setLevel(level)
        handler.setFormatter(JSONFormatter() if settings.json_lines else ContextFormatter(FILE_FORMAT))
        handlers.append(handler)
    return handlers


def setup_logger(name: str) -> logging.Logger:
    """Attach console and rotating-file handlers to ``name`` (``""`` is root).

    Calling it again for an already configured logger is a no-op.
    """
    logger = logging.getLogger(name)
    if logger.handlers:
        return logger

    settings = settings_from_env()
    logger.setLevel(settings.level)
    for handler in _build_handlers(settings):
        logger.addHandler(handler)
    return logger


def setup_logging() -> logging.Logger:
    """Configure the root logger for the whole process."""
    return setup_logger("")


def log_startup(module_name: str) -> None:
    """Announce startup; the verbose profile adds a host summary."""
    logger = logging.getLogger(module_name)
    settings = settings_from_env()
    logger.info(f"🏠 Starting {module_name}")

    if not settings.system_info:
        logger.info(f"🚀 Running on {'Raspberry Pi' if settings.on_pi else 'development system'}")
        return

    try:
        memory_gb = psutil.virtual_memory().available / (1024**3)
        disk_gb = psutil.disk_usage('/').free / (1024**3)
    except OSError as e:
        logger.warning(f"Could not gather system info: {e}")
        return

    logger.info(
        f"🖥️ {platform.platform()} | 🐍 Python {platform.python_version()} | "
        f"💾 {memory_gb:.1f}GB free RAM | 💽 {disk_gb:.1f}GB free disk | 📂 logs in {settings.log_dir}"
    )


def log_shutdown(logger: logging.Logger, component_name: str) -> None:
    """Log component shutdown and flush handlers."""
    logger.info(f"🛑 Shutting down {component_name}")
    for handler in logging.getLogger().handlers + logger.handlers:
        handler.flush()
