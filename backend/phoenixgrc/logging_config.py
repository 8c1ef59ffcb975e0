"""
Logging configuration.
"""
import logging
import sys

from phoenixgrc.config import Settings

_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(settings: Settings) -> None:
    """Configure root logging once; repeated calls only adjust the level."""
    log_level = getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)

    root = logging.getLogger()
    root.setLevel(log_level)

    if not any(getattr(h, "_phoenixgrc", False) for h in root.handlers):
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setFormatter(logging.Formatter(_FORMAT))
        console_handler._phoenixgrc = True
        root.addHandler(console_handler)

    for handler in root.handlers:
        if getattr(handler, "_phoenixgrc", False):
            handler.setLevel(log_level)

    # SQL echo is controlled by DEBUG, not by the app log level
    logging.getLogger("sqlalchemy.engine").setLevel(
        logging.INFO if settings.DEBUG else logging.WARNING
    )
