from datetime import datetime
from pytz import timezone
import logging.config
import logging
import os
from logging import Logger

LOGGER_NAME = "handbook_vector"

_LEVELS: dict[str, int] = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}

_ANSI_RESET = "\033[0m"
_COLOR_MAP: dict[str, str] = {
    "cyan":    "\033[36m",
    "green":   "\033[32m",
    "yellow":  "\033[33m",
    "red":     "\033[31m",
    "magenta": "\033[35m",
}


def resolve_log_level(raw: str | None) -> int:
    """Map LOG_LEVEL (debug, info, warning, error) to a logging level, INFO if unknown."""
    return _LEVELS.get((raw or "info").strip().lower(), logging.INFO)


class CustomFormatter(logging.Formatter):
    """Timezone-aware formatter.

    Warnings and errors get a marker prefix. Records logged with
    extra={"stage": ...} (the RAG pipeline does this) get a "[stage]" tag so
    retrieval, generation and suggestion failures can be told apart in the file log.
    """

    def __init__(self, tz_name, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.tz = timezone(tz_name)

    def formatTime(self, record, datefmt=None):
        dt = datetime.fromtimestamp(record.created, self.tz)
        return dt.strftime(datefmt) if datefmt else dt.isoformat()

    def format(self, record):
        try:
            message = record.getMessage()
        except (TypeError, ValueError):
            # malformed %-args, keep the raw template instead of crashing the handler
            message = str(record.msg)

        stage = getattr(record, "stage", None)
        if stage:
            message = f"[{stage}] {message}"

        if record.levelno >= logging.ERROR:
            message = "⛔ " + message
        elif record.levelno == logging.WARNING:
            message = "⚠️ " + message

        record.msg = message
        record.args = ()
        return super().format(record)


class ColoredFormatter(CustomFormatter):
    """Console formatter that colors records logged through ColorLogger with color=<name>."""

    def format(self, record) -> str:
        line = super().format(record)
        ansi = _COLOR_MAP.get(getattr(record, "color", None) or "", "")
        return f"{ansi}{line}{_ANSI_RESET}" if ansi else line


class ColorLogger:
    """Wraps a Logger and adds an optional color= keyword to the log methods.

    Only the console handler renders the color; the file log stays plain::

        logger.info("All clients booted successfully.", color="green")
    """

    def __init__(self, logger: Logger):
        self._logger = logger

    def _with_color(self, kwargs: dict, color: str | None) -> dict:
        if color is None:
            return kwargs
        extra = dict(kwargs.get("extra") or {})
        extra["color"] = color
        return {**kwargs, "extra": extra}

    def debug(self, msg, *args, color: str | None = None, **kwargs):
        self._logger.debug(msg, *args, **self._with_color(kwargs, color))

    def info(self, msg, *args, color: str | None = None, **kwargs):
        self._logger.info(msg, *args, **self._with_color(kwargs, color))

    def warning(self, msg, *args, color: str | None = None, **kwargs):
        self._logger.warning(msg, *args, **self._with_color(kwargs, color))

    def error(self, msg, *args, color: str | None = None, **kwargs):
        self._logger.error(msg, *args, **self._with_color(kwargs, color))

    def exception(self, msg, *args, color: str | None = None, **kwargs):
        self._logger.exception(msg, *args, **self._with_color(kwargs, color))

    def __getattr__(self, name):
        return getattr(self._logger, name)


def build_logging_config(log_file: str, tz_name: str, level: int) -> dict:
    """dictConfig for a colored console handler and a plain file handler on the root logger."""
    formatter_args = {
        "format": "%(asctime)s - %(levelname)s - %(message)s",
        "datefmt": "%Y-%m-%d %H:%M:%S",
        "tz_name": tz_name,
    }
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "standard": {"()": CustomFormatter, **formatter_args},
            "colored": {"()": ColoredFormatter, **formatter_args},
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "colored",
                "level": level,
                "stream": "ext://sys.stdout",
            },
            "file": {
                "class": "logging.FileHandler",
                "formatter": "standard",
                "level": level,
                "filename": log_file,
                "encoding": "utf-8",
            },
        },
        "root": {
            "handlers": ["console", "file"],
            "level": level,
        },
    }


def setup_logging() -> ColorLogger:
    """Configure logging from LOG_LEVEL, TIMEZONE and ROOT_DIR and return the service logger."""
    log_dir = os.path.join(os.getenv("ROOT_DIR", os.getcwd()), "logs")
    os.makedirs(log_dir, exist_ok=True)
    level = resolve_log_level(os.getenv("LOG_LEVEL"))

    logging.config.dictConfig(
        build_logging_config(
            log_file=os.path.join(log_dir, "app.log"),
            tz_name=os.getenv("TIMEZONE", "Europe/Berlin"),
            level=level,
        )
    )

    # one line per vector store / CMS request is only useful when debugging
    logging.getLogger("httpx").setLevel(logging.DEBUG if level == logging.DEBUG else logging.WARNING)

    return ColorLogger(logging.getLogger(LOGGER_NAME))
