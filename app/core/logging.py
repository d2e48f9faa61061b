import logging
import logging.config
from pathlib import Path

from app.core.config import settings

LOG_DIR = Path(settings.LOG_DIR)

ROTATING_FILE = {
    "class": "logging.handlers.RotatingFileHandler",
    "formatter": "detailed",
    "maxBytes": 10485760,
    "backupCount": 5
}

LOGGING_CONFIG = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "detailed": {
            "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        }
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "level": settings.LOG_LEVEL,
            "formatter": "detailed",
            "stream": "ext://sys.stdout"
        },
        "file": {
            **ROTATING_FILE,
            "level": "INFO",
            "filename": str(LOG_DIR / "app.log")
        },
        "error_file": {
            **ROTATING_FILE,
            "level": "ERROR",
            "filename": str(LOG_DIR / "error.log")
        },
        # HIT / MISS / STORED / INVALIDATED trail, kept apart from request logs
        "cache_file": {
            **ROTATING_FILE,
            "level": "DEBUG",
            "filename": str(LOG_DIR / "ai_cache.log")
        }
    },
    "root": {
        "level": settings.LOG_LEVEL,
        "handlers": ["console", "file", "error_file"]
    },
    "loggers": {
        "app": {
            "level": settings.LOG_LEVEL,
            "handlers": ["console", "file", "error_file"],
            "propagate": False
        },
        "app.services.ai_cache": {
            "level": "DEBUG",
            "handlers": ["console", "cache_file", "error_file"],
            "propagate": False
        },
        "app.core.scheduler": {
            "level": "INFO",
            "handlers": ["console", "cache_file", "error_file"],
            "propagate": False
        },
        "uvicorn.access": {
            "level": "WARNING",
            "handlers": ["console"],
            "propagate": False
        }
    }
}

def configure_logging():
    LOG_DIR.mkdir(parents=True, exist_ok=True)
    logging.config.dictConfig(LOGGING_CONFIG)
