"""
Copyright (c) Microsoft Corporation.
Licensed under the MIT license.
This module maps SQL type tags to the kind of Python value a typed query
produces for them.
"""

from enum import Enum
from typing import Dict

from odbclite.constants import ConstantsODBC, SqlDataType


class ValueKind(Enum):
    """
    The Python representation a column is converted to.
    Each kind fixes the C type requested from SQLGetData.
    """

    INTEGER = ConstantsODBC.SQL_C_LONG.value
    FLOAT = ConstantsODBC.SQL_C_DOUBLE.value
    TEXT = ConstantsODBC.SQL_C_CHAR.value

    @property
    def c_type(self) -> int:
        return self.value


# One entry per SqlDataType member
TYPE_DISPATCH: Dict[SqlDataType, ValueKind] = {
    SqlDataType.INTEGER: ValueKind.INTEGER,
    SqlDataType.SMALLINT: ValueKind.INTEGER,
    SqlDataType.FLOAT: ValueKind.FLOAT,
    SqlDataType.REAL: ValueKind.FLOAT,
    SqlDataType.DOUBLE: ValueKind.FLOAT,
    # BIGINT and the exact numerics do not fit a 32-bit int or a double
    SqlDataType.BIGINT: ValueKind.TEXT,
    SqlDataType.NUMERIC: ValueKind.TEXT,
    SqlDataType.DECIMAL: ValueKind.TEXT,
    SqlDataType.TINYINT: ValueKind.TEXT,
    SqlDataType.BIT: ValueKind.TEXT,
    SqlDataType.CHAR: ValueKind.TEXT,
    SqlDataType.VARCHAR: ValueKind.TEXT,
    SqlDataType.LONGVARCHAR: ValueKind.TEXT,
    SqlDataType.WCHAR: ValueKind.TEXT,
    SqlDataType.WVARCHAR: ValueKind.TEXT,
    SqlDataType.WLONGVARCHAR: ValueKind.TEXT,
    SqlDataType.BINARY: ValueKind.TEXT,
    SqlDataType.VARBINARY: ValueKind.TEXT,
    SqlDataType.LONGVARBINARY: ValueKind.TEXT,
    SqlDataType.GUID: ValueKind.TEXT,
    SqlDataType.DATETIME: ValueKind.TEXT,
    SqlDataType.DATE: ValueKind.TEXT,
    SqlDataType.TIME: ValueKind.TEXT,
    SqlDataType.TIMESTAMP: ValueKind.TEXT,
    SqlDataType.UNKNOWN: ValueKind.TEXT,
}

if set(TYPE_DISPATCH) != set(SqlDataType):
    raise ImportError("TYPE_DISPATCH does not cover every SqlDataType member")


def value_kind(sql_type: SqlDataType) -> ValueKind:
    """
    Return the value kind for a type tag.

    Args:
        sql_type: A SqlDataType member or a raw driver type code.

    Returns:
        ValueKind: INTEGER, FLOAT or TEXT. Unrecognized codes map to TEXT.
    """
    if not isinstance(sql_type, SqlDataType):
        sql_type = SqlDataType.from_code(int(sql_type))
    return TYPE_DISPATCH[sql_type]
