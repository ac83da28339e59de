"""Logging setup: console output plus a size-rotated log file."""

import logging
from logging.handlers import RotatingFileHandler

from portfel.config import AppConfig

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(config: AppConfig, log_to_file: bool = True) -> None:
    """Install console and rotating file handlers on the root logger."""
    formatter = logging.Formatter(LOG_FORMAT)

    # Console handler (for systemd/docker logs)
    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    handlers: list[logging.Handler] = [console_handler]

    if log_to_file and config.log_file:
        config.log_dir.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            config.log_dir / config.log_file,
            maxBytes=config.log_max_bytes,
            backupCount=config.log_backup_count,
            encoding="utf-8",
        )
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    level = logging.DEBUG if config.debug else getattr(logging, config.log_level.upper(), logging.INFO)
    logging.basicConfig(level=level, handlers=handlers, force=True)

    # APScheduler logs every job execution at INFO
    logging.getLogger("apscheduler").setLevel(logging.WARNING)
