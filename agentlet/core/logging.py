"""
Loguru sinks for hosts that embed the agentlet runtime.

The console sink shows every record; the optional file sink keeps only
records emitted from the ``agentlet`` package so module activity can be
inspected apart from host noise.
"""
import os
import sys
from typing import List

from loguru import logger

CONSOLE_FORMAT = (
    "<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>"
)
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {name}:{function}:{line} - {message}"


def _agentlet_records(record) -> bool:
    return (record["name"] or "").startswith("agentlet")


def setup_logging(debug_mode: bool = False, log_dir: str = "logs", log_to_file: bool = False) -> List[int]:
    """
    Replace loguru's default handler with the runtime sinks.

    Args:
        debug_mode: Lower the console level to DEBUG and enable
            loguru's extended tracebacks.
        log_dir: Directory for the rotating log file.
        log_to_file: Also write agentlet records to ``log_dir``.

    Returns:
        Handler ids of the sinks that were added, for ``logger.remove``.
    """
    logger.remove()

    level = "DEBUG" if debug_mode else "INFO"
    handlers = [
        logger.add(sys.stderr, level=level, format=CONSOLE_FORMAT, backtrace=debug_mode, diagnose=debug_mode)
    ]

    if log_to_file:
        os.makedirs(log_dir, exist_ok=True)
        handlers.append(logger.add(
            os.path.join(log_dir, "agentlet_{time}.log"),
            level="DEBUG",
            format=FILE_FORMAT,
            filter=_agentlet_records,
            rotation="10 MB",
            retention="1 week",
        ))

    logger.debug(f"Logging initialized (level={level}, file={'on' if log_to_file else 'off'})")
    return handlers
