import logging
import logging.config
import os
from datetime import datetime
from app.core.config import settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DETAILED_LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(module)s - %(funcName)s:%(lineno)d - %(message)s"


def _rotating_file(log_dir: str, channel: str, level: str) -> dict:
    """One dated, size-rotated file per channel: logs/<channel>/<channel>-YYYY-MM-DD.log"""
    os.makedirs(os.path.join(log_dir, channel), exist_ok=True)
    current_date = datetime.now().strftime("%Y-%m-%d")
    return {
        "class": "logging.handlers.RotatingFileHandler",
        "level": level,
        "formatter": "detailed",
        "filename": os.path.join(log_dir, channel, f"{channel}-{current_date}.log"),
        "maxBytes": 10485760,  # 10MB
        "backupCount": 10,
    }


def setup_logging():
    """
    Configure logging for the scheduling services and the notification worker.

    Everything goes to stdout and logs/app; ERROR and above also lands in logs/error.
    Swap notification delivery (Celery and its tasks) gets its own logs/worker file.
    """
    log_dir = settings.LOG_DIR
    level = "DEBUG" if settings.DEBUG else settings.LOG_LEVEL

    logging_config = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "default": {"format": LOG_FORMAT, "datefmt": "%Y-%m-%d %H:%M:%S"},
            "detailed": {"format": DETAILED_LOG_FORMAT, "datefmt": "%Y-%m-%d %H:%M:%S"},
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "level": level,
                "formatter": "default",
                "stream": "ext://sys.stdout",
            },
            "app_file": _rotating_file(log_dir, "app", level),
            "error_file": _rotating_file(log_dir, "error", "ERROR"),
            "worker_file": _rotating_file(log_dir, "worker", "INFO"),
        },
        "loggers": {
            "": {
                "level": level,
                "handlers": ["console", "app_file", "error_file"],
                "propagate": False,
            },
            "celery": {
                "level": "INFO",
                "handlers": ["console", "worker_file", "error_file"],
                "propagate": False,
            },
            "app.workers": {
                "level": "INFO",
                "handlers": ["console", "worker_file", "error_file"],
                "propagate": False,
            },
            "app.services.notification": {
                "level": "INFO",
                "handlers": ["worker_file"],
                "propagate": True,
            },
            "sqlalchemy.engine": {
                "level": "WARNING",  # Reduce DB query noise
                "handlers": ["app_file"],
                "propagate": False,
            },
        },
    }

    logging.config.dictConfig(logging_config)

    logger = logging.getLogger(__name__)
    logger.info(f"Logging configured: level {level}, environment {settings.ENVIRONMENT}, directory {log_dir}")
