# recess_poc/core/logging.py
import logging
from recess_poc.config import settings

LOG_FORMAT = "[%(asctime)s] %(levelname)s %(name)s: %(message)s"

# attributes every LogRecord has; anything else arrived through `extra=`
_RECORD_ATTRS = set(vars(logging.makeLogRecord({}))) | {"message", "asctime"}


class ExtraFormatter(logging.Formatter):
    """Timestamped line with the `extra=` fields appended as key=value pairs."""

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        extras = {k: v for k, v in vars(record).items() if k not in _RECORD_ATTRS}
        if extras:
            line += " " + " ".join(f"{k}={v!r}" for k, v in sorted(extras.items()))
        return line


def get_logger(name: str) -> logging.Logger:
    """Logger under the `recess.` namespace, so LOG_LEVEL applies to the service only."""
    logger = logging.getLogger(f"recess.{name}")
    if not logger.handlers:
        logger.setLevel(settings.log_level)
        handler = logging.StreamHandler()
        handler.setLevel(settings.log_level)
        handler.setFormatter(ExtraFormatter(LOG_FORMAT))
        logger.addHandler(handler)
    return logger
