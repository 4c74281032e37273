"""
Copyright (c) Microsoft Corporation.
Licensed under the MIT license.

Logging module for odbclite.
Logging is off until setup_logging() is called; when disabled every call costs
a single level check.
"""

import logging
from logging.handlers import RotatingFileHandler
import os
import sys
import threading
import datetime
import re
import contextvars
from typing import Optional


# Output destination constants
STDOUT = "stdout"
FILE = "file"
BOTH = "both"

_OUTPUT_MODES = (FILE, STDOUT, BOTH)

_trace_id_var = contextvars.ContextVar("odbclite_trace_id", default=None)


class TraceIDFilter(logging.Filter):
    """Filter that adds trace_id to all log records."""

    def filter(self, record):
        trace_id = _trace_id_var.get()
        record.trace_id = trace_id if trace_id else "-"
        return True


class OdbcLogger:
    """
    Singleton logger for odbclite.

    Wraps the ``odbclite`` stdlib logger, which is kept at CRITICAL and
    detached from the root logger until setup_logging() is called. Messages
    are formatted eagerly and credentials in connection strings are masked
    before they reach any handler.
    """

    _instance: Optional["OdbcLogger"] = None
    _lock = threading.Lock()

    def __new__(cls) -> "OdbcLogger":
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = super(OdbcLogger, cls).__new__(cls)
        return cls._instance

    def __init__(self):
        if hasattr(self, "_initialized"):
            return
        self._initialized = True

        self._logger = logging.getLogger("odbclite")
        self._logger.setLevel(logging.CRITICAL)
        self._logger.propagate = False
        self._logger.addFilter(TraceIDFilter())

        self._trace_counter = 0
        self._trace_lock = threading.Lock()

        self._output_mode = FILE
        self._log_file = None
        self._custom_log_path = None
        self._handlers_initialized = False

    def _setup_handlers(self):
        """Replace the current handlers with ones matching the output mode."""
        for handler in self._logger.handlers[:]:
            handler.close()
            self._logger.removeHandler(handler)

        formatter = logging.Formatter(
            "%(asctime)s [%(trace_id)s] - %(levelname)s - %(filename)s:%(lineno)d - %(message)s"
        )

        if self._output_mode in (FILE, BOTH):
            if self._custom_log_path:
                self._log_file = self._custom_log_path
                log_dir = os.path.dirname(self._custom_log_path)
            else:
                log_dir = os.path.join(os.getcwd(), "odbclite_logs")
                timestamp = datetime.datetime.now().strftime("%Y%m%d_%H%M%S")
                self._log_file = os.path.join(
                    log_dir, f"odbclite_trace_{timestamp}_{os.getpid()}.log"
                )
            if log_dir:
                os.makedirs(log_dir, exist_ok=True)

            # 64MB per file, 5 backups
            file_handler = RotatingFileHandler(
                self._log_file, maxBytes=64 * 1024 * 1024, backupCount=5
            )
            file_handler.setFormatter(formatter)
            self._logger.addHandler(file_handler)
        else:
            self._log_file = None

        if self._output_mode in (STDOUT, BOTH):
            stdout_handler = logging.StreamHandler(sys.stdout)
            stdout_handler.setFormatter(formatter)
            self._logger.addHandler(stdout_handler)

        self._handlers_initialized = True

    @staticmethod
    def _sanitize_message(msg: str) -> str:
        """
        Mask credentials in a log message.

        Args:
            msg: The message to sanitize

        Returns:
            str: Message with PWD/Password/Token/ApiKey values replaced by ***
        """
        patterns = [
            (r"(PWD|Password|pwd|password)\s*=\s*(\{[^}]*\}|[^;,\s]+)", r"\1=***"),
            (r"(TOKEN|Token|token)\s*=\s*[^;,\s]+", r"\1=***"),
            (r"(ApiKey|API_KEY|api_key)\s*=\s*[^;,\s]+", r"\1=***"),
        ]
        for pattern, replacement in patterns:
            msg = re.sub(pattern, replacement, msg)
        return msg

    def generate_trace_id(self, prefix: str = "TRACE") -> str:
        """
        Generate a unique trace ID of the form PREFIX-PID-ThreadID-Counter.

        Args:
            prefix: Prefix for the trace ID, e.g. "SESS" or "DRV"

        Returns:
            str: The new trace ID
        """
        with self._trace_lock:
            self._trace_counter += 1
            counter = self._trace_counter
        return f"{prefix}-{os.getpid()}-{threading.get_ident()}-{counter}"

    def set_trace_id(self, trace_id: Optional[str]):
        """Set the trace ID for the current context."""
        _trace_id_var.set(trace_id)

    def get_trace_id(self) -> Optional[str]:
        """Get the trace ID for the current context."""
        return _trace_id_var.get()

    def clear_trace_id(self):
        """Clear the trace ID for the current context."""
        _trace_id_var.set(None)

    def _log(self, level: int, msg: str, *args, **kwargs):
        if not self._logger.isEnabledFor(level):
            return
        if args:
            msg = msg % args
        # stacklevel 3 points filename/lineno at the caller of debug()/info()/...
        kwargs.setdefault("stacklevel", 3)
        self._logger.log(level, self._sanitize_message(msg), **kwargs)

    def debug(self, msg: str, *args, **kwargs):
        self._log(logging.DEBUG, f"[odbclite] {msg}", *args, **kwargs)

    def info(self, msg: str, *args, **kwargs):
        self._log(logging.INFO, f"[odbclite] {msg}", *args, **kwargs)

    def warning(self, msg: str, *args, **kwargs):
        self._log(logging.WARNING, f"[odbclite] {msg}", *args, **kwargs)

    def error(self, msg: str, *args, **kwargs):
        self._log(logging.ERROR, f"[odbclite] {msg}", *args, **kwargs)

    def _setLevel(
        self, level: int, output: Optional[str] = None, log_file_path: Optional[str] = None
    ):
        """
        Set the logging level, (re)creating handlers when needed.

        Raises:
            ValueError: If output mode is invalid
        """
        if output is not None:
            if output not in _OUTPUT_MODES:
                raise ValueError(
                    f"Invalid output mode: {output}. Must be one of: {FILE}, {STDOUT}, {BOTH}"
                )
            self._output_mode = output
        if log_file_path is not None:
            self._custom_log_path = log_file_path

        if not self._handlers_initialized or output is not None or log_file_path is not None:
            self._setup_handlers()

        self._logger.setLevel(level)

    def disable(self):
        """Turn logging off, close every handler and forget the output settings."""
        for handler in self._logger.handlers[:]:
            handler.close()
            self._logger.removeHandler(handler)
        self._logger.setLevel(logging.CRITICAL)
        self._handlers_initialized = False
        self._output_mode = FILE
        self._custom_log_path = None
        self._log_file = None

    def isEnabledFor(self, level: int) -> bool:
        return self._logger.isEnabledFor(level)

    @property
    def handlers(self) -> list:
        """Handlers attached to the underlying logger"""
        return self._logger.handlers

    @property
    def output(self) -> str:
        return self._output_mode

    @property
    def log_file(self) -> Optional[str]:
        """Current log file path (None if file output is disabled)"""
        return self._log_file

    @property
    def level(self) -> int:
        return self._logger.level


logger = OdbcLogger()


def setup_logging(
    output: str = FILE, log_file_path: Optional[str] = None, level: int = logging.DEBUG
) -> OdbcLogger:
    """
    Enable logging for troubleshooting.

    Args:
        output: Where to send logs: 'file' (default), 'stdout' or 'both'
        log_file_path: Optional custom path for the log file. If not given a
            file is created under ./odbclite_logs/
        level: Logging level, DEBUG by default

    Returns:
        OdbcLogger: The package logger

    Examples:
        import odbclite

        odbclite.setup_logging()
        odbclite.setup_logging(output='stdout')
        odbclite.setup_logging(output='both', log_file_path="/tmp/odbc.log")
    """
    logger._setLevel(level, output, log_file_path)
    return logger
