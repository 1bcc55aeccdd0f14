"""Logging configuration."""

from __future__ import annotations

import logging

from flask import Flask

QUIET_LOGGERS = ("sqlalchemy.engine", "pymongo", "werkzeug")


def configure_logging(app: Flask) -> None:
    """Configure plain stdlib logging from ``LOG_LEVEL``."""

    level_name = str(app.config.get("LOG_LEVEL", "INFO")).upper()
    level = getattr(logging, level_name, logging.INFO)

    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
    logging.getLogger("app").setLevel(level)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))
