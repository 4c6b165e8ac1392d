import json
import logging
import os
import sys
import tempfile

_DATEFMT = "%Y-%m-%d %H:%M:%S"
DEFAULT_LOG_FILE = os.path.join(tempfile.gettempdir(), "mcp-gateway-sync.log")


class JsonFormatter(logging.Formatter):
    """Single-line JSON formatter for structured output.

    One JSON object per record with fields: ts, level, logger, msg, and
    ``exc`` when exception info is attached.
    """

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "ts": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        if record.exc_info:
            entry["exc"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def _formatter(debug_format: str, with_name: bool) -> logging.Formatter:
    if debug_format == "json":
        return JsonFormatter(datefmt=_DATEFMT)
    fmt = "[%(asctime)s] [%(levelname)s] "
    fmt += "%(name)s %(message)s" if with_name else "%(message)s"
    return logging.Formatter(fmt, datefmt=_DATEFMT)


def resolve_level(mode: str, debug: bool, level: str | None = None) -> int:
    """Pick the effective level: debug flag > LOG_LEVEL > *level* > mode default."""
    if debug:
        return logging.DEBUG
    default_level = "WARNING" if mode == "mcp" else "INFO"
    name = (os.getenv("LOG_LEVEL") or level or default_level).upper()
    return getattr(logging, name, logging.INFO)


def setup_logging(
    mode: str = "cli",
    debug: bool = False,
    log_file: str | None = None,
    debug_format: str = "text",
    level: str | None = None,
) -> None:
    """
    Configure root logging for the execution mode.

    Args:
        mode: "mcp" logs to a file only (stdout carries JSON-RPC),
            "cli" logs to stderr and optionally a file.
        debug: Force DEBUG level.
        log_file: Log file path (overrides LOG_FILE env var).
        debug_format: "text" (default) or "json".
        level: Level from the config file, used when LOG_LEVEL is unset.

    Environment variables:
        LOG_LEVEL: Logging level (DEBUG, INFO, WARNING, ERROR).
                   Default: WARNING for MCP mode, INFO for CLI mode.
        LOG_FILE: Log file path for MCP mode.
                  Default: mcp-gateway-sync.log in the temp directory.
    """
    log_level = resolve_level(mode, debug, level)

    handlers: list[logging.Handler] = []
    if mode == "mcp":
        final_log_file = log_file or os.getenv("LOG_FILE", DEFAULT_LOG_FILE)
        file_handler = logging.FileHandler(final_log_file, mode="a")
        file_handler.setFormatter(_formatter(debug_format, with_name=True))
        handlers.append(file_handler)
    else:
        stderr_handler = logging.StreamHandler(sys.stderr)
        stderr_handler.setFormatter(_formatter(debug_format, with_name=False))
        handlers.append(stderr_handler)
        if log_file:
            file_handler = logging.FileHandler(log_file, mode="a")
            file_handler.setFormatter(_formatter(debug_format, with_name=True))
            handlers.append(file_handler)

    logging.basicConfig(level=log_level, handlers=handlers)

    # The MCP SDK logs every request at INFO
    if log_level != logging.DEBUG:
        logging.getLogger("mcp").setLevel(logging.WARNING)


def use_log_file(path: str, debug_format: str = "text") -> None:
    """Send root file logging to *path* instead of the current log file.

    Stream handlers are left alone.
    """
    root = logging.getLogger()
    for handler in list(root.handlers):
        if isinstance(handler, logging.FileHandler):
            root.removeHandler(handler)
            handler.close()
    file_handler = logging.FileHandler(os.path.expanduser(path), mode="a")
    file_handler.setFormatter(_formatter(debug_format, with_name=True))
    root.addHandler(file_handler)
