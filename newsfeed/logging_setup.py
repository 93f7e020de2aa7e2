# newsfeed/logging_setup.py
import logging
from logging.config import dictConfig
from logging import LogRecord
from pathlib import Path
import contextvars
import os

# ---- Correlation ID (set per request by middleware) ----
request_id_var: contextvars.ContextVar[str] = contextvars.ContextVar("request_id", default="-")

# Attributes every LogRecord carries; anything else arrived through `extra=`
_RESERVED = set(vars(logging.LogRecord("", 0, "", 0, "", None, None))) | {"message", "asctime", "request_id"}


class RequestIdFilter(logging.Filter):
    def filter(self, record: LogRecord) -> bool:
        record.request_id = request_id_var.get()
        return True


class ExtraFieldsFormatter(logging.Formatter):
    """
    Standard line format followed by the structured fields passed via `extra`:

      ... | newsfeed.workflow | req=- | BATCH_FAILED [run_id=1a2b step=analyze handled=True]
    """

    def format(self, record: LogRecord) -> str:
        line = super().format(record)
        fields = {k: v for k, v in record.__dict__.items() if k not in _RESERVED and not k.startswith("_")}
        if not fields:
            return line
        extras = " ".join(f"{k}={v}" for k, v in sorted(fields.items()))
        head, sep, tail = line.partition("\n")  # keep tracebacks below the summary line
        return f"{head} [{extras}]{sep}{tail}"


# ---- Paths & levels ----
BASE_DIR = Path(__file__).resolve().parents[1]
LOG_DIR = Path(os.getenv("LOG_DIR", BASE_DIR / "logs"))
LOG_FILE = LOG_DIR / "newsfeed.log"
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
LOG_TO_FILE = os.getenv("LOG_TO_FILE", "1").lower() in ("1", "true", "yes")


def setup_logging() -> Path:
    handlers = ["console", "file"] if LOG_TO_FILE else ["console"]
    handler_defs = {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "structured",
            "filters": ["request_id"],
        },
        "uvicorn_console": {
            "class": "logging.StreamHandler",
            "formatter": "plain",
        },
    }
    if LOG_TO_FILE:
        LOG_DIR.mkdir(parents=True, exist_ok=True)
        handler_defs["file"] = {
            "class": "logging.handlers.TimedRotatingFileHandler",
            "formatter": "structured",
            "filters": ["request_id"],
            "filename": str(LOG_FILE),
            "when": "midnight",
            "backupCount": 14,
            "encoding": "utf-8",
        }

    dictConfig({
        "version": 1,
        "disable_existing_loggers": False,
        "filters": {"request_id": {"()": RequestIdFilter}},
        "formatters": {
            "structured": {
                "()": ExtraFieldsFormatter,
                "format": "%(asctime)s | %(levelname)s | %(name)s | req=%(request_id)s | %(message)s",
            },
            "plain": {"format": "%(asctime)s | %(levelname)s | %(message)s"},
        },
        "handlers": handler_defs,
        "loggers": {
            # newsfeed.* children propagate here
            "newsfeed": {"handlers": handlers, "level": LOG_LEVEL, "propagate": False},
            "apscheduler": {"handlers": handlers, "level": "INFO", "propagate": False},
            "uvicorn.error": {"handlers": ["uvicorn_console"], "level": "INFO", "propagate": False},
            "uvicorn.access": {"handlers": ["uvicorn_console"], "level": "INFO", "propagate": False},
        },
        "root": {"handlers": handlers, "level": LOG_LEVEL},
    })

    logging.getLogger("newsfeed").info("LOGGING_READY", extra={"file": str(LOG_FILE) if LOG_TO_FILE else None})
    return LOG_FILE


def get_logger(name: str = "newsfeed") -> logging.Logger:
    return logging.getLogger(name)
