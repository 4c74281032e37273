"""
Copyright (c) Microsoft Corporation.
Licensed under the MIT license.
This module binds the ANSI entry points of the platform ODBC driver manager
with ctypes.

Each wrapper takes plain Python values, allocates the fixed-size output
buffers the caller asks for and returns the return code together with the
out-parameters as a tuple. Output text is returned as the raw buffer plus the
length the driver reported, so callers decide how to handle truncation.
"""

import ctypes
import ctypes.util
import os
import sys
import threading
from typing import Optional, Tuple

from odbclite.constants import ConstantsODBC
from odbclite.exceptions import InterfaceError
from odbclite.logging import logger

# Environment variable that overrides the driver manager library location
DRIVER_MANAGER_ENV_VAR = "ODBCLITE_DRIVER_MANAGER"

# ODBC primitive types
SQLRETURN = ctypes.c_short
SQLSMALLINT = ctypes.c_short
SQLUSMALLINT = ctypes.c_ushort
SQLINTEGER = ctypes.c_int
SQLLEN = ctypes.c_ssize_t
SQLULEN = ctypes.c_size_t
SQLHANDLE = ctypes.c_void_p

_SIGNATURES = {
    "SQLAllocHandle": [SQLSMALLINT, SQLHANDLE, ctypes.POINTER(SQLHANDLE)],
    "SQLFreeHandle": [SQLSMALLINT, SQLHANDLE],
    "SQLSetEnvAttr": [SQLHANDLE, SQLINTEGER, ctypes.c_void_p, SQLINTEGER],
    "SQLDriverConnect": [
        SQLHANDLE,
        SQLHANDLE,
        ctypes.c_char_p,
        SQLSMALLINT,
        ctypes.c_char_p,
        SQLSMALLINT,
        ctypes.POINTER(SQLSMALLINT),
        SQLUSMALLINT,
    ],
    "SQLDisconnect": [SQLHANDLE],
    "SQLExecDirect": [SQLHANDLE, ctypes.c_char_p, SQLINTEGER],
    "SQLRowCount": [SQLHANDLE, ctypes.POINTER(SQLLEN)],
    "SQLNumResultCols": [SQLHANDLE, ctypes.POINTER(SQLSMALLINT)],
    "SQLDescribeCol": [
        SQLHANDLE,
        SQLUSMALLINT,
        ctypes.c_char_p,
        SQLSMALLINT,
        ctypes.POINTER(SQLSMALLINT),
        ctypes.POINTER(SQLSMALLINT),
        ctypes.POINTER(SQLULEN),
        ctypes.POINTER(SQLSMALLINT),
        ctypes.POINTER(SQLSMALLINT),
    ],
    "SQLFetch": [SQLHANDLE],
    "SQLGetData": [
        SQLHANDLE,
        SQLUSMALLINT,
        SQLSMALLINT,
        ctypes.c_void_p,
        SQLLEN,
        ctypes.POINTER(SQLLEN),
    ],
    "SQLGetDiagRec": [
        SQLSMALLINT,
        SQLHANDLE,
        SQLSMALLINT,
        ctypes.c_char_p,
        ctypes.POINTER(SQLINTEGER),
        ctypes.c_char_p,
        SQLSMALLINT,
        ctypes.POINTER(SQLSMALLINT),
    ],
    "SQLDrivers": [
        SQLHANDLE,
        SQLUSMALLINT,
        ctypes.c_char_p,
        SQLSMALLINT,
        ctypes.POINTER(SQLSMALLINT),
        ctypes.c_char_p,
        SQLSMALLINT,
        ctypes.POINTER(SQLSMALLINT),
    ],
}


def candidate_library_names(platform: Optional[str] = None) -> list:
    """
    Return the driver manager library names to try, in order.

    unixODBC's libodbc.so.2 comes first since it uses a 64-bit SQLLEN; the
    older libodbc.so.1 ABI does not match the signatures bound here.

    Args:
        platform: Platform string, defaults to sys.platform.

    Returns:
        list: Library names or paths.
    """
    platform = platform or sys.platform
    if platform.startswith("win"):
        return ["odbc32.dll"]
    if platform.startswith("darwin"):
        names = ["libodbc.2.dylib", "libodbc.dylib", "libiodbc.2.dylib"]
    else:
        names = ["libodbc.so.2", "libodbc.so"]
    found = ctypes.util.find_library("odbc")
    if found and found not in names:
        names.append(found)
    if not platform.startswith("darwin"):
        names.append("libiodbc.so.2")
    return names


def load_library(path: Optional[str] = None):
    """
    Load the ODBC driver manager shared library.

    The location is taken from ``path``, then from the ODBCLITE_DRIVER_MANAGER
    environment variable, then from the platform defaults.

    Args:
        path: Optional explicit library path.

    Returns:
        ctypes.CDLL: The loaded library (WinDLL on Windows).

    Raises:
        InterfaceError: If no driver manager library can be loaded.
    """
    path = path or os.environ.get(DRIVER_MANAGER_ENV_VAR)
    names = [path] if path else candidate_library_names()
    loader = ctypes.WinDLL if sys.platform.startswith("win") else ctypes.CDLL

    errors = []
    last_error = None
    for name in names:
        try:
            lib = loader(name)
        except OSError as e:
            errors.append(f"{name}: {e}")
            last_error = e
            continue
        logger.debug("Loaded ODBC driver manager from %s", name)
        return lib

    logger.error("No ODBC driver manager library found")
    raise InterfaceError(
        "ODBC driver manager library could not be loaded. Tried: " + "; ".join(errors)
    ) from last_error


class DriverManager:
    """
    The call-level ODBC interface of a loaded driver manager library.
    """

    def __init__(self, library) -> None:
        self._lib = library
        for name, argtypes in _SIGNATURES.items():
            func = getattr(library, name)
            func.argtypes = argtypes
            func.restype = SQLRETURN

    def SQLAllocHandle(self, handle_type: int, input_handle) -> Tuple[int, Optional[int]]:
        output = SQLHANDLE()
        ret = self._lib.SQLAllocHandle(handle_type, input_handle, ctypes.byref(output))
        return ret, output.value

    def SQLFreeHandle(self, handle_type: int, handle) -> int:
        return self._lib.SQLFreeHandle(handle_type, handle)

    def SQLSetEnvAttr(self, env, attribute: int, value: int) -> int:
        return self._lib.SQLSetEnvAttr(env, attribute, ctypes.c_void_p(value), 0)

    def SQLDriverConnect(
        self, dbc, connection_string: bytes, out_buffer_size: int, completion: int
    ) -> Tuple[int, bytes, int]:
        out_buffer = ctypes.create_string_buffer(out_buffer_size)
        out_length = SQLSMALLINT()
        ret = self._lib.SQLDriverConnect(
            dbc,
            None,
            connection_string,
            ConstantsODBC.SQL_NTS.value,
            out_buffer,
            out_buffer_size,
            ctypes.byref(out_length),
            completion,
        )
        return ret, out_buffer.raw, out_length.value

    def SQLDisconnect(self, dbc) -> int:
        return self._lib.SQLDisconnect(dbc)

    def SQLExecDirect(self, stmt, statement_text: bytes) -> int:
        return self._lib.SQLExecDirect(stmt, statement_text, ConstantsODBC.SQL_NTS.value)

    def SQLRowCount(self, stmt) -> Tuple[int, int]:
        count = SQLLEN()
        ret = self._lib.SQLRowCount(stmt, ctypes.byref(count))
        return ret, count.value

    def SQLNumResultCols(self, stmt) -> Tuple[int, int]:
        count = SQLSMALLINT()
        ret = self._lib.SQLNumResultCols(stmt, ctypes.byref(count))
        return ret, count.value

    def SQLDescribeCol(
        self, stmt, column: int, name_buffer_size: int
    ) -> Tuple[int, bytes, int, int, int, int, int]:
        name = ctypes.create_string_buffer(name_buffer_size)
        name_length = SQLSMALLINT()
        data_type = SQLSMALLINT()
        column_size = SQLULEN()
        decimal_digits = SQLSMALLINT()
        nullable = SQLSMALLINT()
        ret = self._lib.SQLDescribeCol(
            stmt,
            column,
            name,
            name_buffer_size,
            ctypes.byref(name_length),
            ctypes.byref(data_type),
            ctypes.byref(column_size),
            ctypes.byref(decimal_digits),
            ctypes.byref(nullable),
        )
        return (
            ret,
            name.raw,
            name_length.value,
            data_type.value,
            column_size.value,
            decimal_digits.value,
            nullable.value,
        )

    def SQLFetch(self, stmt) -> int:
        return self._lib.SQLFetch(stmt)

    def SQLGetData(self, stmt, column: int, c_type: int, buffer_size: int = 0):
        """
        Retrieve one column of the current row.

        Returns (ret, value, indicator) where value is the raw buffer for
        SQL_C_CHAR, an int for SQL_C_LONG and a float for SQL_C_DOUBLE.
        """
        indicator = SQLLEN()
        if c_type == ConstantsODBC.SQL_C_LONG.value:
            target = ctypes.c_int32()
        elif c_type == ConstantsODBC.SQL_C_DOUBLE.value:
            target = ctypes.c_double()
        elif c_type == ConstantsODBC.SQL_C_CHAR.value:
            target = ctypes.create_string_buffer(buffer_size)
        else:
            raise InterfaceError(f"Unsupported C data type for SQLGetData: {c_type}")

        ret = self._lib.SQLGetData(
            stmt,
            column,
            c_type,
            ctypes.addressof(target),
            ctypes.sizeof(target),
            ctypes.byref(indicator),
        )
        value = target.raw if c_type == ConstantsODBC.SQL_C_CHAR.value else target.value
        return ret, value, indicator.value

    def SQLGetDiagRec(
        self, handle_type: int, handle, rec_number: int, buffer_size: int
    ) -> Tuple[int, bytes, int, bytes, int]:
        state = ctypes.create_string_buffer(ConstantsODBC.SQL_SQLSTATE_SIZE.value + 1)
        native_error = SQLINTEGER()
        message = ctypes.create_string_buffer(buffer_size)
        text_length = SQLSMALLINT()
        ret = self._lib.SQLGetDiagRec(
            handle_type,
            handle,
            rec_number,
            state,
            ctypes.byref(native_error),
            message,
            buffer_size,
            ctypes.byref(text_length),
        )
        return ret, state.raw, native_error.value, message.raw, text_length.value

    def SQLDrivers(
        self, env, direction: int, desc_buffer_size: int, attr_buffer_size: int
    ) -> Tuple[int, bytes, int, bytes, int]:
        description = ctypes.create_string_buffer(desc_buffer_size)
        description_length = SQLSMALLINT()
        attributes = ctypes.create_string_buffer(attr_buffer_size)
        attributes_length = SQLSMALLINT()
        ret = self._lib.SQLDrivers(
            env,
            direction,
            description,
            desc_buffer_size,
            ctypes.byref(description_length),
            attributes,
            attr_buffer_size,
            ctypes.byref(attributes_length),
        )
        return (
            ret,
            description.raw,
            description_length.value,
            attributes.raw,
            attributes_length.value,
        )


_driver_manager: Optional[DriverManager] = None
_driver_manager_lock = threading.Lock()


def get_driver_manager() -> DriverManager:
    """
    Return the process-wide driver manager, loading the library on first use.

    Raises:
        InterfaceError: If the library cannot be loaded.
    """
    global _driver_manager
    if _driver_manager is None:
        with _driver_manager_lock:
            if _driver_manager is None:
                _driver_manager = DriverManager(load_library())
    return _driver_manager
