"""
Logging Setup — console + file logging under LOG_DIR.
"""
import logging
import os

from upi_verify.config import get_settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

_configured = False


def configure_logging() -> None:
    """Attach console and ``server.log`` handlers to the package logger once."""
    global _configured
    if _configured:
        return

    settings = get_settings()
    logger = logging.getLogger("upi_verify")
    logger.setLevel(settings.LOG_LEVEL.upper())

    formatter = logging.Formatter(LOG_FORMAT)

    console = logging.StreamHandler()
    console.setFormatter(formatter)
    logger.addHandler(console)

    try:
        os.makedirs(settings.LOG_DIR, exist_ok=True)
        file_handler = logging.FileHandler(os.path.join(settings.LOG_DIR, "server.log"))
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)
    except OSError as e:
        logger.warning("File logging disabled (%s): %s", settings.LOG_DIR, e)

    _configured = True
