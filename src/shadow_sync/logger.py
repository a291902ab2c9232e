import json
import logging
import os
import sys

_DATEFMT = "%Y-%m-%d %H:%M:%S"


class JsonFormatter(logging.Formatter):
    """One JSON object per line: ``ts``, ``level``, ``logger``, ``msg`` and,
    for records carrying a traceback, ``exc``."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "ts": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        if record.exc_info:
            payload["exc"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


def _make_formatter(debug_format: str, with_name: bool) -> logging.Formatter:
    if debug_format == "json":
        return JsonFormatter(datefmt=_DATEFMT)
    fmt = "[%(asctime)s] [%(levelname)s] "
    if with_name:
        fmt += "%(name)s "
    return logging.Formatter(fmt + "%(message)s", datefmt=_DATEFMT)


def _resolve_level(debug: bool, level: str | None) -> int:
    if debug:
        return logging.DEBUG
    name = os.getenv("LOG_LEVEL") or level or "WARNING"
    return getattr(logging, name.upper(), logging.WARNING)


def setup_logging(
    debug: bool = False,
    log_file: str | None = None,
    debug_format: str = "text",
    level: str | None = None,
) -> None:
    """
    Route log records to stderr, and to *log_file* when one is given.

    Stdout is left to command output.  The level comes from ``--debug``,
    then ``$LOG_LEVEL``, then *level* from the settings file, then WARNING;
    an unknown name also falls back to WARNING.

    Args:
        debug: Force DEBUG.
        log_file: File to append records to.
        debug_format: "text" or "json".
        level: Level name from the ``logging`` settings section.
    """
    log_level = _resolve_level(debug, level)

    console = logging.StreamHandler(sys.stderr)
    console.setFormatter(_make_formatter(debug_format, with_name=False))
    handlers: list[logging.Handler] = [console]

    if log_file:
        to_file = logging.FileHandler(log_file, mode="a")
        to_file.setFormatter(_make_formatter(debug_format, with_name=True))
        handlers.append(to_file)

    logging.basicConfig(level=log_level, handlers=handlers)

    if log_level != logging.DEBUG:
        logging.getLogger("charset_normalizer").setLevel(logging.WARNING)
