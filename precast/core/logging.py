import logging.config

from precast.core.config import Settings, settings as default_settings

LOG_FORMAT = "%(asctime)s %(levelname)s [%(threadName)s] %(name)s: %(message)s"


def setup_logging(settings: Settings = default_settings) -> None:
    """
    Configure console logging plus an error-only file sink for the maintenance cycle.
    """
    handlers = {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "default",
            "level": settings.LOG_LEVEL.upper(),
        },
    }
    if settings.ERROR_LOG_FILE:
        handlers["errors"] = {
            "class": "logging.FileHandler",
            "formatter": "default",
            "filename": settings.ERROR_LOG_FILE,
            "mode": "a",
            "encoding": "utf-8",
            "delay": True,
            "level": "ERROR",
        }

    logging.config.dictConfig({
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "default": {"format": LOG_FORMAT},
        },
        "handlers": handlers,
        "loggers": {
            "precast": {
                "handlers": list(handlers),
                "level": settings.LOG_LEVEL.upper(),
                "propagate": False,
            },
        },
    })
