"""
Copyright (c) Microsoft Corporation.
Licensed under the MIT license.
This module initializes the odbclite package.
"""

import atexit
import threading
import weakref

# Import settings from helpers module
from .helpers import Settings, configure, get_settings, reset_settings

# Package version
__version__ = "0.1.0"

# Exceptions
from .exceptions import (
    Error,
    InterfaceError,
    DatabaseError,
    AllocationError,
    ConnectionError,  # noqa: A004
    ExecutionError,
    CatalogError,
    DiagnosticRecord,
)

# Type tags
from .constants import ConstantsODBC, SqlDataType
from .type import ValueKind, TYPE_DISPATCH

# Result containers
from .row import ColumnDescriptor, ResultSet, StructuredRow

# Session Objects
from .connection import connect, Session

# Driver catalog
from .drivers import DriverInfo, list_drivers

# Logging Configuration
from .logging import logger, setup_logging

# Global registry for tracking open sessions (using weak references)
_active_sessions = weakref.WeakSet()
_sessions_lock = threading.Lock()


def _register_session(session):
    """Register a session for cleanup before shutdown."""
    with _sessions_lock:
        _active_sessions.add(session)


def _cleanup_sessions():
    """
    Cleanup function called by atexit to close all open sessions.

    Handles are released in teardown order before the interpreter finalizes
    the driver manager library.
    """
    with _sessions_lock:
        sessions_to_close = list(_active_sessions)

    for session in sessions_to_close:
        try:
            if not session.closed:
                session.close()
        except Exception as e:
            logger.error(
                "Error during session cleanup at shutdown: %s: %s", e.__class__.__name__, e
            )


# Register cleanup function to run before Python exits
atexit.register(_cleanup_sessions)
