# evalhub/core/logging.py
import logging
import sys

from evalhub.core.config import settings

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"

# Libraries that are chatty at INFO
QUIET_LOGGERS = ("uvicorn.access", "httpx", "aiosqlite", "asyncio")


def setup_logging() -> None:
    """
    Route everything to stdout with one format.

    ``evalhub.*`` logs at ``LOG_LEVEL``. In ``dev`` with ``LOG_LEVEL=DEBUG``
    the SQL emitted by listings (``sqlalchemy.engine``) is shown too; in
    ``prod`` the root logger only passes warnings from third-party code.
    """
    app_level = getattr(logging, settings.log_level.upper(), logging.INFO)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt="%Y-%m-%dT%H:%M:%S%z"))

    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(logging.WARNING if settings.env == "prod" else logging.INFO)
    root.addHandler(handler)

    logging.getLogger("evalhub").setLevel(app_level)

    sql_debug = settings.env == "dev" and app_level <= logging.DEBUG
    logging.getLogger("sqlalchemy.engine").setLevel(
        logging.INFO if sql_debug else logging.WARNING
    )

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
