from __future__ import annotations

import logging
import sys
from typing import IO, Optional

from ormscope.config import BenchConfig

SQL_LOGGER = "sqlalchemy.engine"


class MessageFormatter(logging.Formatter):
    """Renders the bare message; timings and SQL are read by eye."""

    def format(self, record: logging.LogRecord) -> str:
        message = record.getMessage()
        if record.exc_info:
            message = f"{message}\n{self.formatException(record.exc_info)}"
        return message


def setup_logging(config: BenchConfig, stream: Optional[IO[str]] = None) -> None:
    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setFormatter(MessageFormatter())

    root = logging.getLogger()
    for existing in list(root.handlers):
        root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(getattr(logging, config.log_level, logging.INFO))

    # echo=True on the engine would install its own handler; route through ours instead
    logging.getLogger(SQL_LOGGER).setLevel(
        logging.INFO if config.echo_sql else logging.WARNING
    )
