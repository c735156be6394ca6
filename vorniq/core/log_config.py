import logging

from vorniq.core.config import LOG_LEVEL

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: str = LOG_LEVEL):
    logging.basicConfig(level=getattr(logging, level, logging.INFO), format=LOG_FORMAT)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
