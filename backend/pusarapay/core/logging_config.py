import logging
import logging.config

from pusarapay.core.config import settings


def configure_logging() -> logging.Logger:
    log_level = "INFO" if settings.ENVIRONMENT == "production" else "DEBUG"

    logging_config = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "default": {
                "format": "%(asctime)s | %(levelname)s | %(name)s | %(message)s",
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "default",
            },
        },
        "loggers": {
            "uvicorn": {"handlers": ["console"], "level": log_level},
            "uvicorn.error": {"handlers": ["console"], "level": log_level},
            "uvicorn.access": {"handlers": ["console"], "level": log_level},
            "celery": {"handlers": ["console"], "level": log_level},
            "pusarapay": {"handlers": ["console"], "level": log_level, "propagate": False},
        },
    }

    logging.config.dictConfig(logging_config)
    return logging.getLogger("pusarapay")
