"""loguru sinks for the DevForge server and CLI."""

import sys
from pathlib import Path

from loguru import logger

CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>"
)
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} - {message}"


def _error_log_path(log_path: Path) -> Path:
    return log_path.with_name(f"{log_path.stem}.error{log_path.suffix or '.log'}")


def setup_logger(
    level: str = "INFO",
    log_file: str | None = None,
    rotation: str = "5 MB",
    retention: int | str = 5,
) -> None:
    """Replace loguru's sinks.

    Console output goes to stderr. With ``log_file`` set, records at ``level``
    and above are also written there, and ERROR records additionally go to a
    sibling ``<stem>.error<suffix>`` file. Both files share ``rotation`` and
    ``retention``.
    """
    logger.remove()

    # stdout may carry protocol traffic
    logger.add(sys.stderr, format=CONSOLE_FORMAT, level=level, colorize=True)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        for path, sink_level in ((log_path, level), (_error_log_path(log_path), "ERROR")):
            logger.add(
                path,
                format=FILE_FORMAT,
                level=sink_level,
                rotation=rotation,
                retention=retention,
                backtrace=True,
                diagnose=False,
            )

    logger.debug(f"Logging configured: level={level} file={log_file or '-'}")
