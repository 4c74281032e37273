"""
Copyright (c) Microsoft Corporation.
Licensed under the MIT license.
This module contains the ODBC constants used by the odbclite package.
"""

from enum import Enum, IntEnum


class ConstantsODBC(Enum):
    """
    Constants used in the ODBC driver-manager calls.
    """

    # Return codes
    SQL_INVALID_HANDLE = -2
    SQL_ERROR = -1
    SQL_SUCCESS = 0
    SQL_SUCCESS_WITH_INFO = 1
    SQL_STILL_EXECUTING = 2
    SQL_NEED_DATA = 99
    SQL_NO_DATA = 100

    # Handle types
    SQL_HANDLE_ENV = 1
    SQL_HANDLE_DBC = 2
    SQL_HANDLE_STMT = 3

    # Environment attributes
    SQL_ATTR_ODBC_VERSION = 200
    SQL_OV_ODBC3 = 3

    # Driver completion
    SQL_DRIVER_NOPROMPT = 0
    SQL_DRIVER_COMPLETE = 1
    SQL_DRIVER_PROMPT = 2
    SQL_DRIVER_COMPLETE_REQUIRED = 3

    # Fetch directions for SQLDrivers
    SQL_FETCH_NEXT = 1
    SQL_FETCH_FIRST = 2

    # C data types used with SQLGetData
    SQL_C_CHAR = 1
    SQL_C_LONG = 4
    SQL_C_SHORT = 5
    SQL_C_FLOAT = 7
    SQL_C_DOUBLE = 8
    SQL_C_TYPE_DATE = 91
    SQL_C_TYPE_TIME = 92
    SQL_C_TYPE_TIMESTAMP = 93
    SQL_C_DEFAULT = 99

    # Length / indicator sentinels
    SQL_NULL_DATA = -1
    SQL_NO_TOTAL = -4
    SQL_NTS = -3

    # Nullability reported by SQLDescribeCol
    SQL_NO_NULLS = 0
    SQL_NULLABLE = 1
    SQL_NULLABLE_UNKNOWN = 2

    SQL_SQLSTATE_SIZE = 5
    SQL_MAX_MESSAGE_LENGTH = 512


class SqlDataType(IntEnum):
    """
    SQL data type tags as reported by SQLDescribeCol.

    Codes the driver reports that are not listed here are mapped to UNKNOWN
    by ``from_code``; the raw code stays available on the column descriptor.
    """

    UNKNOWN = 0
    CHAR = 1
    NUMERIC = 2
    DECIMAL = 3
    INTEGER = 4
    SMALLINT = 5
    FLOAT = 6
    REAL = 7
    DOUBLE = 8
    DATETIME = 9
    VARCHAR = 12
    DATE = 91
    TIME = 92
    TIMESTAMP = 93
    LONGVARCHAR = -1
    BINARY = -2
    VARBINARY = -3
    LONGVARBINARY = -4
    BIGINT = -5
    TINYINT = -6
    BIT = -7
    WCHAR = -8
    WVARCHAR = -9
    WLONGVARCHAR = -10
    GUID = -11

    @classmethod
    def from_code(cls, code: int) -> "SqlDataType":
        """Map a raw driver type code to a tag, UNKNOWN when unrecognized."""
        try:
            return cls(code)
        except ValueError:
            return cls.UNKNOWN


def is_success(ret: int) -> bool:
    """True for SQL_SUCCESS and SQL_SUCCESS_WITH_INFO."""
    return ret in (
        ConstantsODBC.SQL_SUCCESS.value,
        ConstantsODBC.SQL_SUCCESS_WITH_INFO.value,
    )
