"""
Logging Configuration
Sets up the package logger for the layout engine.

The per-tick solvers log at DEBUG. At that level Numba's own compiler logger
is very chatty, so it is held at WARNING unless asked otherwise.
"""
import logging
import sys
from typing import Optional, Union

DEFAULT_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def setup_logging(
    level: Union[int, str] = logging.INFO,
    log_file: Optional[str] = None,
    fmt: str = DEFAULT_FORMAT,
    propagate: bool = False,
    numba_level: int = logging.WARNING,
) -> logging.Logger:
    """
    Configures the logger for the 'netlayout' namespace.

    Args:
        level: Logging level, as a number or a name such as "DEBUG".
        log_file: Optional path to save logs to a file.
        fmt: Record format shared by all handlers.
        propagate: Also pass records to the root logger (off by default, so an
            application that configures the root logger sees no duplicates).
        numba_level: Level of the 'numba' logger.

    Returns:
        The configured package logger.
    """
    if isinstance(level, str):
        name = level
        level = logging.getLevelName(name.upper())
        if not isinstance(level, int):
            raise ValueError(f"Unknown logging level {name!r}.")

    logger = logging.getLogger("netlayout")
    logger.setLevel(level)
    logger.propagate = propagate

    # Calling twice replaces the handlers instead of duplicating them
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(fmt, datefmt='%H:%M:%S')

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file, mode='w', encoding='utf-8')
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    logging.getLogger("numba").setLevel(numba_level)

    logger.info(f"Logging initialized ({logging.getLevelName(level)}).")
    return logger
