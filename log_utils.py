import logging
from logging.handlers import RotatingFileHandler
import os

# Logs live next to the persisted bot state so a single DATA_DIR holds
# everything the agent writes at runtime.
LOG_FILE = os.getenv(
    "LOG_FILE",
    os.path.join(os.getenv("DATA_DIR", "./data"), "logs", "scalp_agent.log"),
)


def _resolve_level() -> int:
    level_name = os.getenv("LOG_LEVEL", "info").strip().upper()
    level = logging.getLevelName(level_name)
    return level if isinstance(level, int) else logging.INFO


def setup_logger(name: str) -> logging.Logger:
    """Return the named logger, attaching console and rotating-file handlers once."""
    logger = logging.getLogger(name)
    if logger.handlers:
        return logger
    logger.setLevel(_resolve_level())
    formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)
    try:
        os.makedirs(os.path.dirname(LOG_FILE) or ".", exist_ok=True)
        file_handler = RotatingFileHandler(LOG_FILE, maxBytes=1_000_000, backupCount=5)
    except OSError as exc:
        logger.warning("File logging disabled (%s): %s", LOG_FILE, exc)
    else:
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)
    return logger
