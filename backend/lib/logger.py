"""
Logging Utility for the Lesson Backend

Console logging for the API process:
- Level styles (ANSI color + icon) and per-component icons
- Optional lesson context (user and mission) appended to each line
- Key/value payloads rendered under the log line
- Banners for server lifecycle events
"""

import json
import logging
import sys
from datetime import datetime
from typing import Any, Dict, Optional

RESET = '\033[0m'
BOLD = '\033[1m'
DIM = '\033[90m'
BANNER = '\033[94m'

# level -> (ANSI color, icon)
LEVEL_STYLES = {
    'DEBUG': ('\033[36m', '🔍'),
    'INFO': ('\033[32m', 'ℹ️'),
    'WARNING': ('\033[33m', '⚠️'),
    'ERROR': ('\033[31m', '❌'),
    'CRITICAL': ('\033[35m', '🚨'),
}

# Keyed by the last dotted part of the logger name
COMPONENT_ICONS = {
    'main': '🌐',
    'lesson_session_engine': '🎓',
    'lesson_planner': '📋',
    'step_content_generator': '🧱',
    'generation_service': '🤖',
    'session_store': '💾',
    'context_snapshots': '🧠',
    'response_assessor': '📝',
    'tutoring_strategy': '🧭',
}

NOISY_LOGGERS = ('asyncio', 'httpx', 'httpcore', 'openai', 'uvicorn.access')


def render_payload(data: Dict[str, Any]) -> str:
    """One indented `key: json` line per payload entry."""
    return "\n".join(f"    {key}: {json.dumps(value, default=str)}" for key, value in data.items())


class LessonLogFormatter(logging.Formatter):
    """Formats records as `[time] icon LEVEL logger | message (user/mission)`."""

    def __init__(self, use_colors: bool = True):
        super().__init__()
        self.use_colors = use_colors and sys.stdout.isatty()

    def _paint(self, text: str, color: str) -> str:
        return f"{color}{text}{RESET}" if self.use_colors else text

    def format(self, record: logging.LogRecord) -> str:
        color, level_icon = LEVEL_STYLES.get(record.levelname, (RESET, '•'))
        icon = COMPONENT_ICONS.get(record.name.rsplit('.', 1)[-1], level_icon)
        clock = datetime.fromtimestamp(record.created).strftime('%H:%M:%S.%f')[:-3]

        line = (
            f"{self._paint(f'[{clock}]', DIM)} {icon} "
            f"{self._paint(f'{record.levelname:<8}', color)} "
            f"{self._paint(record.name, BOLD)} | {record.getMessage()}"
        )

        lesson = getattr(record, "lesson", None)
        if lesson:
            line += self._paint(f" ({lesson})", DIM)

        payload = getattr(record, "data", None)
        if payload:
            line += "\n" + render_payload(payload)

        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


def lesson_label(user_id: Optional[str], mission_id: Optional[str]) -> Optional[str]:
    if not user_id and not mission_id:
        return None
    return f"user={user_id or '-'} mission={mission_id or '-'}"


class StructuredLogger:
    """Wraps a stdlib logger, attaching payloads and lesson context to records."""

    def __init__(self, name: str, logger: Optional[logging.Logger] = None):
        self.name = name
        self.logger = logger or logging.getLogger(name)

    def _log(self, level: int, message: str, data: Optional[Dict[str, Any]] = None,
             lesson: Optional[str] = None, **kwargs):
        self.logger.log(level, message, extra={"data": data, "lesson": lesson}, **kwargs)

    def section(self, title: str, data: Optional[Dict[str, Any]] = None):
        """Print a banner for a server lifecycle event."""
        rule = "=" * 80
        paint = sys.stdout.isatty()
        head = f"{BANNER}{rule}\n📋 {title.upper()}{RESET}" if paint else f"{rule}\n📋 {title.upper()}"
        print(f"\n{head}")
        if data:
            print(render_payload(data))
        print(f"{BANNER}{rule}{RESET}\n" if paint else f"{rule}\n")

    def info(self, message: str, data: Optional[Dict[str, Any]] = None):
        self._log(logging.INFO, message, data)

    def warning(self, message: str, data: Optional[Dict[str, Any]] = None):
        self._log(logging.WARNING, message, data)

    def error(self, message: str, error: Optional[Exception] = None, data: Optional[Dict[str, Any]] = None):
        """Log an error, with the traceback when an exception is given."""
        suffix = f" ({type(error).__name__}: {error})" if error else ""
        self._log(logging.ERROR, f"{message}{suffix}", data, exc_info=error)

    def success(self, message: str, data: Optional[Dict[str, Any]] = None):
        self._log(logging.INFO, f"✅ {message}", data)

    def request(self, method: str, path: str, user_id: Optional[str] = None,
                mission_id: Optional[str] = None, data: Optional[Dict[str, Any]] = None):
        """Log an incoming lesson API call."""
        self._log(logging.INFO, f"📥 {method} {path}", data, lesson=lesson_label(user_id, mission_id))

    def lesson_event(self, event: str, user_id: str, mission_id: str, data: Optional[Dict[str, Any]] = None):
        """Log a lesson lifecycle event (started, branched, completed...)."""
        self._log(logging.INFO, f"🎓 {event}", data, lesson=lesson_label(user_id, mission_id))


def setup_logging(level: int = logging.INFO, use_colors: bool = True) -> logging.Logger:
    """Install the lesson formatter on the root logger and quiet chatty libraries."""
    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(LessonLogFormatter(use_colors=use_colors))
    root.setLevel(level)
    root.addHandler(handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    return root


def get_logger(name: str) -> StructuredLogger:
    return StructuredLogger(name)
