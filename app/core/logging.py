import logging
import logging.config
from pathlib import Path

from app.core.config import settings

FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
MAX_BYTES = 10 * 1024 * 1024


def _rotating_file(path: Path, level: str) -> dict:
    return {
        "class": "logging.handlers.RotatingFileHandler",
        "level": level,
        "formatter": "default",
        "filename": str(path),
        "maxBytes": MAX_BYTES,
        "backupCount": 5,
    }


def build_logging_config(level: str = settings.LOG_LEVEL, log_dir: str = settings.LOG_DIR) -> dict:
    """dictConfig for the service.

    Request lines go to the console and app.log only; background ranking
    work (rebuild workers, scheduler jobs, live fan-out) also lands in
    error.log when it fails, since nothing else surfaces those failures.
    """
    log_dir = Path(log_dir)
    everywhere = ["console", "file", "error_file"]
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "default": {"format": FORMAT},
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "level": level,
                "formatter": "default",
                "stream": "ext://sys.stdout",
            },
            "file": _rotating_file(log_dir / "app.log", level),
            "error_file": _rotating_file(log_dir / "error.log", "ERROR"),
        },
        "root": {"level": level, "handlers": everywhere},
        "loggers": {
            "app": {"level": level, "handlers": everywhere, "propagate": False},
            "app.middleware.logging": {"level": level, "handlers": ["console", "file"], "propagate": False},
            "scripts": {"level": level, "handlers": everywhere, "propagate": False},
            "apscheduler": {"level": "WARNING", "handlers": ["console"], "propagate": False},
            "uvicorn.access": {"level": "WARNING", "handlers": ["console"], "propagate": False},
        },
    }


def configure_logging(level: str = settings.LOG_LEVEL, log_dir: str = settings.LOG_DIR):
    Path(log_dir).mkdir(parents=True, exist_ok=True)
    logging.config.dictConfig(build_logging_config(level, log_dir))
