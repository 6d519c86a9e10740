"""Run logging for publish jobs.

Each run appends JSON lines to ``publish.jsonl`` under the log directory and
echoes human readable lines to stderr. Worker threads push in parallel, so
every JSON record carries the thread name.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime
from pathlib import Path

CONSOLE_FORMAT = "%(asctime)s %(levelname)-7s [%(threadName)s] %(name)s: %(message)s"
RUN_LOG_NAME = "publish.jsonl"


class JsonLineFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "ts": datetime.fromtimestamp(record.created).astimezone().isoformat(timespec="milliseconds"),
            "level": record.levelname,
            "logger": record.name,
            "thread": record.threadName,
            "message": record.getMessage(),
        }
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False)


def setup_logger(name: str, log_dir: Path, *, level: int = logging.INFO) -> logging.Logger:
    logger = logging.getLogger(name)
    logger.setLevel(level)
    if logger.handlers:
        # A later run may ask for a different verbosity.
        for handler in logger.handlers:
            handler.setLevel(level)
        return logger

    log_dir.mkdir(parents=True, exist_ok=True)

    run_log = logging.FileHandler(log_dir / RUN_LOG_NAME, encoding="utf-8")
    run_log.setLevel(level)
    run_log.setFormatter(JsonLineFormatter())

    console = logging.StreamHandler()
    console.setLevel(level)
    console.setFormatter(logging.Formatter(CONSOLE_FORMAT))

    logger.addHandler(run_log)
    logger.addHandler(console)
    return logger
