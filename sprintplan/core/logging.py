"""Loguru configuration."""

import sys

from loguru import logger

from sprintplan.core.config import Settings, get_settings

LOG_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
    "<level>{message}</level>"
)


def configure_logging(settings: Settings | None = None, file_sink: bool = True) -> None:
    """Configure loguru based on settings.

    Replaces the default handler with a colourised stderr sink and,
    unless disabled, a daily rotated file sink under ``settings.log_dir``.
    """
    settings = settings or get_settings()
    level = "DEBUG" if settings.debug else settings.log_level

    logger.remove()  # Remove default handler

    if file_sink:
        settings.log_dir.mkdir(parents=True, exist_ok=True)
        logger.add(
            str(settings.log_dir / "sprintplan_{time:YYYY-MM-DD}.log"),
            rotation="1 day",
            retention="7 days",
            level=level,
            format=LOG_FORMAT,
        )

    logger.add(
        sys.stderr,
        level=level,
        format=LOG_FORMAT,
        colorize=True,
    )
