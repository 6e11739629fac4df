"""
Logging with colorlog formatting, optional rich output and request correlation.
"""

import logging
import re
import sys
import uuid
from pathlib import Path
from typing import Optional

import colorlog
from rich.console import Console
from rich.logging import RichHandler

from utils.config import config, LOG_FILE

# Global console for rich output
console = Console(stderr=True)

# Request ID context for correlation
_request_context = {}


def get_request_id() -> str:
    """Get or create request ID for current context."""
    if "request_id" not in _request_context:
        _request_context["request_id"] = str(uuid.uuid4())[:8]
    return _request_context["request_id"]


def set_request_id(request_id: str):
    """Set request ID for current context."""
    _request_context["request_id"] = request_id


def clear_request_id():
    """Clear request ID from context."""
    _request_context.clear()


class SensitiveDataFilter(logging.Filter):
    """Mask credentials carried in signed photo URLs."""

    SENSITIVE_PATTERNS = [
        "token=",
        "apikey=",
        "api_key=",
        "X-Amz-Signature=",
        "X-Amz-Credential=",
        "sig=",
    ]

    def filter(self, record):
        if hasattr(record, "msg") and record.msg:
            msg = str(record.msg)
            for pattern in self.SENSITIVE_PATTERNS:
                if pattern in msg:
                    regex = rf"({re.escape(pattern)})([^&\s\"']+)"
                    msg = re.sub(regex, r"\1***MASKED***", msg)
            record.msg = msg
        return True


class ContextFilter(logging.Filter):
    """Add request ID and component name to log records."""

    def __init__(self, component: str = "SYSTEM"):
        super().__init__()
        self.component = component

    def filter(self, record):
        record.request_id = get_request_id()
        record.component = self.component
        return True


def _console_handler(log_format: str) -> logging.Handler:
    if log_format == "rich":
        handler = RichHandler(console=console, show_path=False, rich_tracebacks=True)
        handler.setFormatter(logging.Formatter("[%(request_id)s] [%(component)s] %(message)s"))
        return handler

    handler = colorlog.StreamHandler(sys.stdout)
    # Spring Boot style line
    handler.setFormatter(colorlog.ColoredFormatter(
        fmt=(
            "%(log_color)s[%(asctime)s.%(msecs)03d] "
            "%(levelname)-8s "
            "%(white)s[%(request_id)s] "
            "%(cyan)s[%(component)s] "
            "%(message_log_color)s%(message)s"
        ),
        datefmt="%Y-%m-%d %H:%M:%S",
        log_colors={
            "DEBUG": "blue",
            "INFO": "green",
            "WARNING": "yellow",
            "ERROR": "red",
            "CRITICAL": "red,bg_white",
        },
        secondary_log_colors={
            "message": {
                "DEBUG": "white",
                "INFO": "white",
                "WARNING": "yellow",
                "ERROR": "red",
                "CRITICAL": "red,bg_white",
            }
        },
        reset=True,
        style="%"
    ))
    return handler


def setup_logger(
    name: str,
    level: str = "INFO",
    log_file: Optional[Path] = None,
    component: str = None,
    log_format: str = "detailed",
) -> logging.Logger:
    """
    Setup logger with colorlog (or rich) console output.

    Args:
        name: Logger name
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional file path for logging
        component: Component name for contextualized logging
        log_format: "detailed" for colorlog lines, "rich" for RichHandler

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)
    logger.setLevel(getattr(logging, level.upper()))
    logger.handlers.clear()

    # Component name (use module name if not specified)
    comp = component or name.split(".")[-1].upper()

    console_handler = _console_handler(log_format)
    console_handler.setLevel(getattr(logging, level.upper()))
    console_handler.addFilter(ContextFilter(comp))
    console_handler.addFilter(SensitiveDataFilter())
    logger.addHandler(console_handler)

    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)

        # JSON-style formatter for file (easier parsing)
        file_formatter = logging.Formatter(
            fmt=(
                '{"timestamp":"%(asctime)s.%(msecs)03d",'
                '"level":"%(levelname)s",'
                '"request_id":"%(request_id)s",'
                '"component":"%(component)s",'
                '"logger":"%(name)s",'
                '"message":"%(message)s"}'
            ),
            datefmt="%Y-%m-%d %H:%M:%S"
        )
        file_handler.setFormatter(file_formatter)
        file_handler.addFilter(ContextFilter(comp))
        file_handler.addFilter(SensitiveDataFilter())
        logger.addHandler(file_handler)

    return logger


def get_logger(name: str, component: str) -> logging.Logger:
    """Logger wired to the global configuration."""
    return setup_logger(
        name,
        level=config.log_level,
        log_file=LOG_FILE,
        component=component,
        log_format=config.log_format,
    )
