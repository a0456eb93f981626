"""Logging configuration for the chat backend."""
import logging
import sys


def setup_logging(log_level: str = "INFO") -> None:
    """
    Configure root logging to stdout.

    Args:
        log_level: DEBUG, INFO, WARNING, ERROR or CRITICAL

    Raises:
        ValueError: If log_level is not a valid logging level name
    """
    level_name = log_level.upper()
    levels = logging.getLevelNamesMapping()
    if level_name not in levels:
        raise ValueError(f"Invalid log level: {log_level}")

    numeric_level = levels[level_name]

    logging.basicConfig(
        level=numeric_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )

    logging.getLogger("app").setLevel(numeric_level)
    logging.getLogger("uvicorn").setLevel(logging.INFO)

    # httpx logs every outbound OpenAI request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
