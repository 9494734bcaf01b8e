"""Logging setup shared by the API server and the Streamlit front end."""

import logging
import sys

CONSOLE_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

_logging_initialized = False


def setup_logging(level: str = "INFO") -> None:
    """Attach a single console handler to the root logger.

    Safe to call more than once; only the first call configures handlers.
    """
    global _logging_initialized
    if _logging_initialized:
        return

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(CONSOLE_FORMAT))
    root_logger.addHandler(handler)

    # spotipy logs every retried request at WARNING
    logging.getLogger("spotipy").setLevel(logging.ERROR)
    logging.getLogger("urllib3").setLevel(logging.WARNING)

    _logging_initialized = True
