"""Logging setup shared by the API process and the admin CLI.

Service modules log state transitions (created, completed, tombstoned) with
their ids in ``extra=``; in JSON mode those land as top-level fields.
"""

import logging
import sys

from pythonjsonlogger import jsonlogger

from marketplace.config import settings

QUIET_LOGGERS = ("sqlalchemy.engine", "httpx", "httpcore", "uvicorn.access")


class LoggingConfig:
    LOG_LEVEL = settings.LOG_LEVEL
    LOG_FORMAT = settings.LOG_FORMAT

    @classmethod
    def _formatter(cls) -> logging.Formatter:
        if cls.LOG_FORMAT == "json":
            return jsonlogger.JsonFormatter(
                "%(asctime)s %(levelname)s %(name)s %(message)s",
                rename_fields={"levelname": "level", "name": "logger"},
                timestamp=True,
            )
        return logging.Formatter("%(asctime)s %(levelname)-7s [%(name)s] %(message)s")

    @classmethod
    def setup_logging(cls) -> None:
        """Route the root logger to stdout at LOG_LEVEL, formatted per LOG_FORMAT."""
        level = getattr(logging, cls.LOG_LEVEL, logging.INFO)

        handler = logging.StreamHandler(sys.stdout)
        handler.setLevel(level)
        handler.setFormatter(cls._formatter())

        root = logging.getLogger()
        root.handlers.clear()
        root.setLevel(level)
        root.addHandler(handler)

        for name in QUIET_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
