"""
Copyright (c) Microsoft Corporation.
Licensed under the MIT license.
This module provides helper functions for the odbclite package: package
settings, diagnostic record collection and return-code checking.
"""

import codecs
import re
import threading
from typing import TYPE_CHECKING, List, Optional, Type

from odbclite.constants import ConstantsODBC
from odbclite.exceptions import DiagnosticRecord, Error
from odbclite.logging import logger

if TYPE_CHECKING:
    from odbclite.handles import SqlHandle


class Settings:
    """
    Settings class for odbclite package configuration.

    Buffer sizes are in code units and include the null terminator, so a
    4096-unit text buffer holds at most 4095 units of data.
    """

    def __init__(self) -> None:
        self.text_buffer_size: int = 4096
        self.column_name_buffer_size: int = 256
        self.connect_out_buffer_size: int = 1024
        self.diag_message_buffer_size: int = ConstantsODBC.SQL_MAX_MESSAGE_LENGTH.value
        self.driver_desc_buffer_size: int = 256
        self.driver_attr_buffer_size: int = 2048
        self.encoding: str = "utf-8"
        self.collect_info: bool = False


_BUFFER_SETTINGS = (
    "text_buffer_size",
    "column_name_buffer_size",
    "connect_out_buffer_size",
    "diag_message_buffer_size",
    "driver_desc_buffer_size",
    "driver_attr_buffer_size",
)

# Global settings instance
_settings: Settings = Settings()
_settings_lock: threading.Lock = threading.Lock()


def get_settings() -> Settings:
    """Return the global settings object"""
    with _settings_lock:
        return _settings


def configure(**kwargs) -> Settings:
    """
    Update global settings.

    Args:
        **kwargs: Settings attributes to change, e.g. text_buffer_size=8192.

    Returns:
        Settings: The updated settings object.

    Raises:
        ValueError: If a setting name is unknown or a value is invalid.
    """
    for name, value in kwargs.items():
        if name in _BUFFER_SETTINGS:
            if isinstance(value, bool) or not isinstance(value, int) or value < 2:
                raise ValueError(f"{name} must be an integer of at least 2, got {value!r}")
            if value > 32767 and name != "text_buffer_size":
                raise ValueError(f"{name} must fit in a SQLSMALLINT, got {value}")
        elif name == "encoding":
            try:
                codecs.lookup(value)
            except (LookupError, TypeError) as e:
                raise ValueError(f"Unknown encoding: {value!r}") from e
        elif name == "collect_info":
            if not isinstance(value, bool):
                raise ValueError("collect_info must be a boolean value")
        else:
            raise ValueError(f"Unknown setting: {name}")

    with _settings_lock:
        for name, value in kwargs.items():
            setattr(_settings, name, value)
        return _settings


def reset_settings() -> Settings:
    """Restore every setting to its default value."""
    with _settings_lock:
        _settings.__init__()
        return _settings


def sanitize_connection_string(conn_str: str) -> str:
    """
    Sanitize the connection string by removing sensitive information.
    Args:
        conn_str (str): The connection string to sanitize.
    Returns:
        str: The sanitized connection string.
    """
    return re.sub(
        r"((?:Pwd|Password)\s*=\s*)(\{[^}]*\}|[^;]*)", r"\1***", conn_str, flags=re.IGNORECASE
    )


def decode_text(raw: bytes) -> str:
    """Decode bytes received from the driver manager."""
    return raw.decode(get_settings().encoding, errors="replace")


def encode_text(text: str) -> bytes:
    """Encode text sent to the driver manager."""
    return text.encode(get_settings().encoding)


def buffer_text(raw: bytes, length: int, buffer_size: int) -> bytes:
    """
    Cut a fixed-size output buffer to the length the driver reported.

    The driver reports the full length of the value even when it did not fit;
    the buffer then holds buffer_size - 1 units followed by the terminator.

    Args:
        raw: The buffer contents.
        length: The length or indicator the driver returned.
        buffer_size: The size of the buffer, terminator included.

    Returns:
        bytes: At most buffer_size - 1 bytes of data.
    """
    capacity = buffer_size - 1
    if length == ConstantsODBC.SQL_NO_TOTAL.value or length > capacity:
        length = capacity
    elif length < 0:
        length = 0
    return raw[:length]


def collect_diagnostics(handle: "SqlHandle") -> List[DiagnosticRecord]:
    """
    Read every diagnostic record attached to a handle.

    Records are read from 1 upwards until SQLGetDiagRec stops returning
    SQL_SUCCESS or SQL_SUCCESS_WITH_INFO. Messages longer than the message
    buffer are truncated.

    Args:
        handle: The handle the failing call was made on.

    Returns:
        List[DiagnosticRecord]: The records in order, possibly empty.
    """
    settings = get_settings()
    buffer_size = settings.diag_message_buffer_size
    records = []
    rec_number = 1
    while True:
        ret, state, native_error, message, text_length = handle.driver_manager.SQLGetDiagRec(
            handle.handle_type, handle.value, rec_number, buffer_size
        )
        if ret not in (
            ConstantsODBC.SQL_SUCCESS.value,
            ConstantsODBC.SQL_SUCCESS_WITH_INFO.value,
        ):
            break
        records.append(
            DiagnosticRecord(
                sqlstate=decode_text(state.split(b"\0", 1)[0]),
                native_error=native_error,
                message=decode_text(buffer_text(message, text_length, buffer_size)),
            )
        )
        rec_number += 1
    return records


def check_error(
    handle: "SqlHandle",
    ret: int,
    error_cls: Type[Error],
    context: str = "",
    info_sink: Optional[List[DiagnosticRecord]] = None,
) -> None:
    """
    Check for errors and raise an exception if an error is found.

    SQL_SUCCESS, SQL_SUCCESS_WITH_INFO and SQL_NO_DATA never raise. The
    informational records of SQL_SUCCESS_WITH_INFO are appended to
    ``info_sink`` when one is given and discarded otherwise.

    Args:
        handle: The handle the call was made on.
        ret: The return code from the driver-manager call.
        error_cls: The exception class to raise.
        context: The step that was attempted, kept on the exception.
        info_sink: Optional list receiving informational records.

    Raises:
        Error: An instance of ``error_cls`` carrying every diagnostic record.
    """
    if ret in (ConstantsODBC.SQL_SUCCESS.value, ConstantsODBC.SQL_NO_DATA.value):
        return
    if ret == ConstantsODBC.SQL_SUCCESS_WITH_INFO.value:
        if info_sink is not None:
            info_sink.extend(collect_diagnostics(handle))
        return

    records = collect_diagnostics(handle)
    error = error_cls.from_records(records, context=context, return_code=ret)
    logger.error("%s: %s", context or error_cls.__name__, error.message)
    raise error
