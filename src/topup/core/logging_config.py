"""Logging configuration applied at application start."""

from logging.config import dictConfig

from .config import get_settings


def build_logging_config(level: str = "INFO") -> dict:
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "default": {
                "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
                "datefmt": "%Y-%m-%d %H:%M:%S",
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "default",
                "stream": "ext://sys.stdout",
            },
        },
        "loggers": {
            "uvicorn": {"handlers": ["console"], "level": level, "propagate": False},
            "apscheduler": {"handlers": ["console"], "level": "WARNING", "propagate": False},
            "topup": {"handlers": ["console"], "level": level, "propagate": False},
        },
        "root": {
            "level": level,
            "handlers": ["console"],
        },
    }


def setup_logging() -> None:
    """Apply the dictConfig logging setup using the configured level."""

    dictConfig(build_logging_config(get_settings().log_level.upper()))
