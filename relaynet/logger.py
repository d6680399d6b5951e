import logging
from collections import deque
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Deque, List, Optional, Tuple, Union

from rich.logging import RichHandler

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
LOG_MAX_BYTES = 1_000_000
LOG_BACKUP_COUNT = 3


class RecentLogHandler(logging.Handler):
    """Keeps the last few log lines around for the dashboard."""

    def __init__(self, maxlen: int = 10):
        super().__init__()
        self.records: Deque[Tuple[str, str]] = deque(maxlen=maxlen)

    def emit(self, record: logging.LogRecord):
        try:
            self.records.append((record.levelname, self.format(record)))
        except Exception:
            self.handleError(record)


def setup_logging(
    level: str = "INFO",
    log_file: Optional[Union[str, Path]] = None,
    dashboard: bool = False,
) -> List[logging.Handler]:
    """
    Configure the root logger.

    Console output goes through rich, unless the dashboard owns the screen, in
    which case records are kept for its log table instead. A rotating file log
    is added when log_file is given. Calling this again replaces the handlers
    installed by the previous call and leaves any others alone.

    Args:
        level (str): Level name (DEBUG, INFO, WARNING, ERROR)
        log_file (str | Path): Optional log file path
        dashboard (bool): Route console output to the dashboard

    Returns:
        The handlers that were installed
    """
    root = logging.getLogger()
    root.setLevel(getattr(logging, str(level).upper(), logging.INFO))

    for handler in list(root.handlers):
        if getattr(handler, "_relaynet", False):
            root.removeHandler(handler)
            handler.close()

    handlers: List[logging.Handler] = []
    if dashboard:
        recent = RecentLogHandler()
        recent.setFormatter(logging.Formatter('%(message)s'))
        handlers.append(recent)
    else:
        console = RichHandler(show_path=False, rich_tracebacks=True)
        console.setFormatter(logging.Formatter('%(message)s', datefmt='[%X]'))
        handlers.append(console)

    if log_file:
        log_file = Path(log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            log_file, maxBytes=LOG_MAX_BYTES, backupCount=LOG_BACKUP_COUNT, encoding='utf-8'
        )
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handlers.append(file_handler)

    for handler in handlers:
        handler._relaynet = True
        root.addHandler(handler)
    return handlers


def recent_log_handler() -> Optional[RecentLogHandler]:
    """The dashboard's record buffer, if setup_logging installed one."""
    for handler in logging.getLogger().handlers:
        if isinstance(handler, RecentLogHandler):
            return handler
    return None
