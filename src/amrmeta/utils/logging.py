import sys
from loguru import logger

from .configurations import get_configuration

TIME_FORMAT = "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
RECORD_FORMAT = ("<level>{level: <8}</level> | "
                 "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>")


def setup_logging(level=None, show_time=True, rank=None, sink=None):
    """Configure loguru for the package.

    Parameters
    ----------
    level : str, optional
        Logging level (DEBUG, INFO, SUCCESS, WARNING, ERROR, CRITICAL),
        defaults to the 'log_level' configuration.
    show_time : bool
        Whether to show timestamps in the output.
    rank : int, optional
        Process rank shown in front of every record of a distributed run.
    sink : optional
        Where the records go, stderr by default.
    """
    if level is None:
        level = get_configuration('log_level')

    log_format = RECORD_FORMAT
    if rank is not None:
        log_format = f"rank {rank} | " + log_format
    if show_time:
        log_format = TIME_FORMAT + log_format

    logger.remove()
    logger.add(sys.stderr if sink is None else sink, format=log_format, level=level)

    return logger
