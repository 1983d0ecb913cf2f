import logging
import sys
from .config import settings

_HANDLER_NAME = "stratix-console"


def setup_logging() -> None:
    """Configure application logging."""

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, settings.log_level.upper(), logging.INFO))

    # Lifespan may run more than once per process under the test client
    console_handler = next((h for h in root_logger.handlers if h.get_name() == _HANDLER_NAME), None)
    if console_handler is None:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.set_name(_HANDLER_NAME)
        console_handler.setFormatter(logging.Formatter(settings.log_format))
        root_logger.addHandler(console_handler)

    logging.getLogger("uvicorn.access").handlers = [console_handler]
    logging.getLogger("uvicorn.error").handlers = [console_handler]


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance for the given name."""
    return logging.getLogger(name)
