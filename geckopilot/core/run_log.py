from __future__ import annotations

import logging
import os
import sys
from pathlib import Path

RUN_LOG_FORMAT = "[%(asctime)s] %(levelname)s %(name)s: %(message)s"
CONSOLE_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class FlushingFileHandler(logging.FileHandler):
    """Append-only run log; every record reaches disk before the next action."""

    def emit(self, record: logging.LogRecord) -> None:
        super().emit(record)
        if self.stream:
            self.flush()
            os.fsync(self.stream.fileno())


def configure_logging(level: str | None = None) -> None:
    logging.basicConfig(
        level=getattr(logging, (level or os.getenv("LOG_LEVEL", "INFO")).upper(), logging.INFO),
        format=CONSOLE_FORMAT,
        handlers=[logging.StreamHandler(sys.stderr)],
    )


def attach_run_log(path: str | Path, session_id: str) -> logging.Handler:
    log_path = Path(path)
    log_path.parent.mkdir(parents=True, exist_ok=True)
    handler = FlushingFileHandler(log_path, mode="a", encoding="utf-8")
    handler.setFormatter(logging.Formatter(RUN_LOG_FORMAT))
    handler.setLevel(logging.INFO)
    root = logging.getLogger("geckopilot")
    root.addHandler(handler)
    if root.level == logging.NOTSET or root.level > logging.INFO:
        root.setLevel(logging.INFO)
    root.info("=== geckopilot session %s started ===", session_id)
    return handler


def detach_run_log(handler: logging.Handler) -> None:
    root = logging.getLogger("geckopilot")
    root.info("=== geckopilot session finished ===")
    root.removeHandler(handler)
    handler.close()
