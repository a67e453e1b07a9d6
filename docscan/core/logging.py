import sys
from loguru import logger
from .config import settings


def setup_logging(level: str | None = None, serialize: bool | None = None):
    """
    Configure the loguru sink used across the pipeline.

    Structured fields passed as keyword arguments to ``logger.info(...)`` end up
    in ``record["extra"]`` and are rendered at the end of each line (or inside
    the JSON record when ``serialize`` is enabled).
    """
    level = (level or settings.log_level).upper()
    serialize = settings.log_json if serialize is None else serialize

    logger.remove()
    if serialize:
        logger.add(sys.stderr, level=level, serialize=True)
    else:
        logger.add(
            sys.stderr,
            level=level,
            format=(
                "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
                "<level>{level: <8}</level> | "
                "<cyan>{name}</cyan> - <level>{message}</level> {extra}"
            ),
        )
    return logger
