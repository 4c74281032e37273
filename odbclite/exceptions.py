"""
Copyright (c) Microsoft Corporation.
Licensed under the MIT license.
This module contains the exception hierarchy raised by the odbclite package.

Every error raised after a failed driver-manager call carries the full set of
diagnostic records read from the failing handle: the message is the records
joined by newlines, each prefixed with its bracketed SQLSTATE, while
``sqlstate`` and ``native_error`` come from the last record read.
"""

from dataclasses import dataclass
from typing import List, Optional, Sequence


@dataclass(frozen=True)
class DiagnosticRecord:
    """One diagnostic record as returned by SQLGetDiagRec."""

    sqlstate: str
    native_error: int
    message: str

    def __str__(self) -> str:
        return f"[{self.sqlstate}] {self.message}"


class Error(Exception):
    """
    Base class for errors.
    This is the base class for all error-related exceptions raised by odbclite.
    It carries the diagnostic records of the failing handle, if any.
    """

    def __init__(
        self,
        message: str = "An error occurred",
        sqlstate: str = "",
        native_error: int = 0,
        records: Optional[Sequence[DiagnosticRecord]] = None,
        context: str = "",
    ) -> None:
        self.message = message
        self.sqlstate = sqlstate
        self.native_error = native_error
        self.records: List[DiagnosticRecord] = list(records or [])
        self.context = context
        super().__init__(self.message)

    @classmethod
    def from_records(
        cls, records: Sequence[DiagnosticRecord], context: str = "", return_code: int = 0
    ) -> "Error":
        """
        Build an error from the diagnostic records of a failing handle.

        Args:
            records: Records in the order SQLGetDiagRec returned them.
            context: The step that failed, e.g. "Execution failed".
            return_code: The return code that triggered the error, used in the
                message when the handle has no records.

        Returns:
            Error: An instance of ``cls``.
        """
        if not records:
            message = f"{context or 'ODBC call failed'} (return code {return_code})"
            return cls(message, context=context)
        message = "\n".join(str(record) for record in records)
        last = records[-1]
        return cls(
            message,
            sqlstate=last.sqlstate,
            native_error=last.native_error,
            records=records,
            context=context,
        )

    @property
    def description(self) -> str:
        """Human-readable category of the last SQLSTATE."""
        return describe_sqlstate(self.sqlstate)


class InterfaceError(Error):
    """
    Error related to the database interface.
    Raised for misuse of the package itself, such as using a closed session or a
    released handle, or when the driver manager library cannot be loaded.
    """


class DatabaseError(Error):
    """
    Base class for database errors.
    This is the base class for every error reported by the driver manager.
    """


class AllocationError(DatabaseError):
    """
    An environment, connection or statement handle could not be allocated.
    Environment allocation failures carry no diagnostic records.
    """


class ConnectionError(DatabaseError):  # noqa: A001
    """
    Version negotiation or driver connect failed.
    """


class ExecutionError(DatabaseError):
    """
    Statement execution, column description or data retrieval failed.
    """


class CatalogError(DatabaseError):
    """
    Driver catalog enumeration failed.
    """


# Human-readable categories for common SQLSTATE codes
SQLSTATE_DESCRIPTIONS = {
    "01000": "General warning",
    "01002": "Disconnect error",
    "01004": "String data, right-truncated",
    "01S00": "Invalid connection string attribute",
    "01S02": "Option value changed",
    "07002": "COUNT field incorrect",
    "07009": "Invalid descriptor index",
    "08001": "Client unable to establish connection",
    "08002": "Connection name in use",
    "08003": "Connection not open",
    "08004": "Server rejected the connection",
    "08S01": "Communication link failure",
    "21S01": "Insert value list does not match column list",
    "22001": "String data, right-truncated",
    "22002": "Indicator variable required but not supplied",
    "22003": "Numeric value out of range",
    "22007": "Invalid datetime format",
    "22012": "Division by zero",
    "22018": "Invalid character value for cast specification",
    "23000": "Integrity constraint violation",
    "24000": "Invalid cursor state",
    "25000": "Invalid transaction state",
    "28000": "Invalid authorization specification",
    "3D000": "Invalid catalog name",
    "40001": "Serialization failure",
    "42000": "Syntax error or access violation",
    "42S01": "Base table or view already exists",
    "42S02": "Base table or view not found",
    "42S21": "Column already exists",
    "42S22": "Column not found",
    "HY000": "General error",
    "HY001": "Memory allocation error",
    "HY003": "Invalid application buffer type",
    "HY009": "Invalid use of null pointer",
    "HY010": "Function sequence error",
    "HY013": "Memory management error",
    "HY014": "Limit on the number of handles exceeded",
    "HY024": "Invalid attribute value",
    "HY090": "Invalid string or buffer length",
    "HY092": "Invalid attribute/option identifier",
    "HY103": "Invalid retrieval code",
    "HYC00": "Optional feature not implemented",
    "HYT00": "Timeout expired",
    "HYT01": "Connection timeout expired",
    "IM001": "Driver does not support this function",
    "IM002": "Data source name not found and no default driver specified",
    "IM003": "Specified driver could not be loaded",
    "IM004": "Driver's SQLAllocHandle on SQL_HANDLE_ENV failed",
    "IM005": "Driver's SQLAllocHandle on SQL_HANDLE_DBC failed",
    "IM007": "No data source or driver specified; dialog prohibited",
    "IM012": "DRIVER keyword syntax error",
}


def describe_sqlstate(sqlstate: str) -> str:
    """
    Return a description of the given SQLSTATE code.

    Args:
        sqlstate (str): The SQLSTATE code, possibly empty.

    Returns:
        str: The known description, or a generic label for unknown codes.
    """
    if not sqlstate:
        return "No SQLSTATE available"
    return SQLSTATE_DESCRIPTIONS.get(sqlstate, f"SQLSTATE {sqlstate}")
