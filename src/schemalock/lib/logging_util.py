import sys

from loguru import logger

LOG_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
    "{level.icon} {level.name:<8} | "
    "<blue>{process.id}</blue> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
    "{message}"
)


def configure_logging(level: str = "INFO", sink=sys.stderr, log_file: str | None = None,
                      max_bytes: int = 10 * 1024 * 1024, backup_count: int = 5):
    """Replace loguru's handlers with the schemalock format.

    The process id is part of the format since lock contention is always
    between processes.
    """
    logger.remove()
    logger.add(sink=sink, format=LOG_FORMAT, level=level, catch=True)
    if log_file:
        logger.add(
            sink=log_file,
            format=LOG_FORMAT,
            level=level,
            colorize=False,
            enqueue=True,
            rotation=max_bytes,
            retention=backup_count,
            catch=True,
        )
    return logger
