import logging

from rich.logging import RichHandler

from utils import config

ROOT_LOGGER_NAME = "pulse"


class CenteredFormatter(logging.Formatter):
    """Centers logger names in a column as wide as the longest name seen."""

    longest_name_length = 14

    def __init__(self, fmt=None, datefmt=None, style="%", initial_width=14):
        super().__init__(fmt, datefmt, style)
        CenteredFormatter.longest_name_length = initial_width

    def format(self, record):
        width = max(CenteredFormatter.longest_name_length, len(record.name))
        CenteredFormatter.longest_name_length = width
        record.name = record.name.center(width)
        return super().format(record)


def _resolve_level() -> int:
    level = logging.getLevelName(config.LOG_LEVEL)
    return level if isinstance(level, int) else logging.INFO


def _rich_handler(level: int) -> RichHandler:
    handler = RichHandler(
        level=level,
        show_time=True,
        show_level=True,
        show_path=False,
        rich_tracebacks=True,
        log_time_format="[%X]",
    )
    handler.setFormatter(CenteredFormatter("[%(name)s]  %(message)s"))
    return handler


def get_logger(name=None) -> logging.Logger:
    """
    Logger under the "pulse" namespace, e.g. get_logger("db.crud") gives
    "pulse.db.crud". Each name gets its own RichHandler the first time it
    is requested; PULSE_LOG_LEVEL (or DEBUG) picks the level.
    """
    full_name = f"{ROOT_LOGGER_NAME}.{name}" if name else ROOT_LOGGER_NAME
    logger = logging.getLogger(full_name)
    level = _resolve_level()
    logger.setLevel(level)

    if logger.handlers:
        return logger

    logger.addHandler(_rich_handler(level))
    logger.propagate = False
    logger.debug(f"Logging to console at {logging.getLevelName(level)}.")
    return logger
