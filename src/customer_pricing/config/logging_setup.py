"""
Logging configuration for scripts and the API entrypoint.

Library modules only create loggers; handlers are configured here.
"""
import logging
from typing import Optional

from .settings import get_settings


def setup_logging(level: Optional[str] = None) -> None:
    """Configure root logging with a readable console format."""
    level_name = (level or get_settings().log_level).upper()
    numeric_level = getattr(logging, level_name, logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)

    # Clear existing handlers (useful if re-running in dev/REPL)
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(
        logging.Formatter("%(asctime)s [%(levelname)s] %(name)s - %(message)s")
    )
    console_handler.setLevel(numeric_level)
    root_logger.addHandler(console_handler)

    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(max(numeric_level, logging.WARNING))

    root_logger.debug("Logging initialized at %s", level_name)
