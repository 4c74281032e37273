"""
Copyright (c) Microsoft Corporation.
Licensed under the MIT license.
This module executes statements on a session and materializes their results.
Resource Management:
- Statement handles are only allocated by statement_scope().
- A statement handle never outlives the execute/query call that allocated it;
  it is freed on every exit path, including errors raised by the body.
"""

from contextlib import contextmanager
from typing import TYPE_CHECKING, Iterator, List, Optional

from odbclite.constants import ConstantsODBC, SqlDataType
from odbclite.exceptions import DiagnosticRecord, ExecutionError
from odbclite.handles import SqlHandle, alloc_handle
from odbclite.helpers import buffer_text, check_error, decode_text, encode_text, get_settings
from odbclite.logging import logger
from odbclite.row import ColumnDescriptor, ResultSet, StructuredRow, TypedValue
from odbclite.type import ValueKind, value_kind

if TYPE_CHECKING:
    from odbclite.connection import Session


@contextmanager
def statement_scope(session: "Session") -> Iterator[SqlHandle]:
    """
    Allocate a statement handle for the duration of one operation.

    Args:
        session: A live session; it is borrowed, not owned.

    Yields:
        SqlHandle: The statement handle.

    Raises:
        InterfaceError: If the session is closed.
        ExecutionError: If the statement handle cannot be allocated.
    """
    dbc = session._connection_handle()
    stmt = alloc_handle(
        session.driver_manager,
        ConstantsODBC.SQL_HANDLE_STMT.value,
        parent=dbc,
        error_cls=ExecutionError,
        context="Failed to allocate statement",
    )
    try:
        yield stmt
    finally:
        stmt.free()


def _exec_direct(
    stmt: SqlHandle, sql: str, info_sink: Optional[List[DiagnosticRecord]], context: str
) -> None:
    logger.debug("Executing statement: %s", sql)
    ret = stmt.driver_manager.SQLExecDirect(stmt.value, encode_text(sql))
    check_error(stmt, ret, ExecutionError, context, info_sink)


def describe_columns(
    stmt: SqlHandle, info_sink: Optional[List[DiagnosticRecord]] = None
) -> List[ColumnDescriptor]:
    """
    Describe the result set of an executed statement.

    Args:
        stmt: An executed statement handle.
        info_sink: Optional list receiving informational records.

    Returns:
        List[ColumnDescriptor]: One descriptor per column, left to right.

    Raises:
        ExecutionError: If the column count or a description cannot be read.
    """
    dm = stmt.driver_manager
    name_buffer_size = get_settings().column_name_buffer_size

    ret, column_count = dm.SQLNumResultCols(stmt.value)
    check_error(stmt, ret, ExecutionError, "Failed to get column count", info_sink)

    columns = []
    for index in range(1, column_count + 1):
        ret, name, name_length, data_type, size, digits, nullable = dm.SQLDescribeCol(
            stmt.value, index, name_buffer_size
        )
        check_error(stmt, ret, ExecutionError, f"Failed to describe column {index}", info_sink)
        sql_type = SqlDataType.from_code(data_type)
        if sql_type is SqlDataType.UNKNOWN and data_type != SqlDataType.UNKNOWN.value:
            logger.debug("Column %d has unrecognized SQL type %d", index, data_type)
        columns.append(
            ColumnDescriptor(
                name=decode_text(buffer_text(name, name_length, name_buffer_size)),
                sql_type=sql_type,
                size=size,
                type_code=data_type,
                decimal_digits=digits,
                nullable=nullable,
            )
        )
    return columns


def _fetch(stmt: SqlHandle, info_sink: Optional[List[DiagnosticRecord]]) -> bool:
    """Advance to the next row; False once the driver reports SQL_NO_DATA."""
    ret = stmt.driver_manager.SQLFetch(stmt.value)
    if ret == ConstantsODBC.SQL_NO_DATA.value:
        return False
    check_error(stmt, ret, ExecutionError, "Failed to fetch row", info_sink)
    return True


def get_text(
    stmt: SqlHandle, column: int, info_sink: Optional[List[DiagnosticRecord]] = None
) -> Optional[str]:
    """
    Retrieve a column of the current row as text.

    The value is read into a fixed buffer of Settings.text_buffer_size units,
    terminator included. Longer values are truncated to the buffer.

    Returns:
        The text, or None for SQL NULL.
    """
    buffer_size = get_settings().text_buffer_size
    ret, raw, indicator = stmt.driver_manager.SQLGetData(
        stmt.value, column, ConstantsODBC.SQL_C_CHAR.value, buffer_size
    )
    check_error(stmt, ret, ExecutionError, f"Failed to get data for column {column}", info_sink)
    if ret == ConstantsODBC.SQL_NO_DATA.value or indicator == ConstantsODBC.SQL_NULL_DATA.value:
        return None
    if indicator == ConstantsODBC.SQL_NO_TOTAL.value or indicator >= buffer_size:
        logger.debug("Column %d truncated to %d bytes", column, buffer_size - 1)
    return decode_text(buffer_text(raw, indicator, buffer_size))


def _get_number(
    stmt: SqlHandle,
    column: int,
    kind: ValueKind,
    info_sink: Optional[List[DiagnosticRecord]],
) -> TypedValue:
    ret, value, indicator = stmt.driver_manager.SQLGetData(stmt.value, column, kind.c_type)
    check_error(stmt, ret, ExecutionError, f"Failed to get data for column {column}", info_sink)
    if ret == ConstantsODBC.SQL_NO_DATA.value or indicator == ConstantsODBC.SQL_NULL_DATA.value:
        return None
    return int(value) if kind is ValueKind.INTEGER else float(value)


def get_typed_value(
    stmt: SqlHandle,
    column: int,
    sql_type: SqlDataType,
    info_sink: Optional[List[DiagnosticRecord]] = None,
) -> TypedValue:
    """
    Retrieve a column of the current row as the value kind of its type tag.

    Returns:
        int, float or str according to TYPE_DISPATCH, None for SQL NULL.
    """
    kind = value_kind(sql_type)
    if kind is ValueKind.TEXT:
        return get_text(stmt, column, info_sink)
    return _get_number(stmt, column, kind, info_sink)


def execute(session: "Session", sql: str) -> int:
    """
    Execute a statement that does not return rows.

    Args:
        session: A live session.
        sql: Statement text, passed through verbatim.

    Returns:
        int: The row count the driver reports. DDL may report 0, and -1 is
        returned as-is when the driver does not know the count.

    Raises:
        ExecutionError: If execution or the row count fails.
    """
    info_sink = session._begin_operation()
    with statement_scope(session) as stmt:
        _exec_direct(stmt, sql, info_sink, "Execution failed")
        ret, row_count = stmt.driver_manager.SQLRowCount(stmt.value)
        check_error(stmt, ret, ExecutionError, "Failed to get row count", info_sink)
    logger.debug("Statement affected %d row(s)", row_count)
    return row_count


def query(session: "Session", sql: str) -> ResultSet:
    """
    Execute a query and return every value as text.

    Args:
        session: A live session.
        sql: Query text, passed through verbatim.

    Returns:
        ResultSet: Column descriptors and rows in fetch order. NULL values
        are empty strings.

    Raises:
        ExecutionError: If execution, description or retrieval fails.
    """
    info_sink = session._begin_operation()
    with statement_scope(session) as stmt:
        _exec_direct(stmt, sql, info_sink, "Query failed")
        result = ResultSet(columns=describe_columns(stmt, info_sink))
        if result.columns:
            while _fetch(stmt, info_sink):
                row = []
                for index in range(1, len(result.columns) + 1):
                    value = get_text(stmt, index, info_sink)
                    row.append("" if value is None else value)
                result.rows.append(row)
    logger.debug("Query returned %d row(s)", len(result.rows))
    return result


def query_typed(session: "Session", sql: str) -> List[StructuredRow]:
    """
    Execute a query and convert each value according to its column type.

    Integer and short integer columns become int, float, real and double
    columns become float, every other type becomes str. NULL becomes None.

    Args:
        session: A live session.
        sql: Query text, passed through verbatim.

    Returns:
        List[StructuredRow]: One row per fetched row, in fetch order.

    Raises:
        ExecutionError: If execution, description or retrieval fails.
    """
    info_sink = session._begin_operation()
    rows = []
    with statement_scope(session) as stmt:
        _exec_direct(stmt, sql, info_sink, "Query failed")
        columns = describe_columns(stmt, info_sink)
        if columns:
            column_map = StructuredRow.build_column_map(columns)
            while _fetch(stmt, info_sink):
                values = [
                    get_typed_value(stmt, index, column.sql_type, info_sink)
                    for index, column in enumerate(columns, start=1)
                ]
                rows.append(StructuredRow(values, column_map))
    logger.debug("Typed query returned %d row(s)", len(rows))
    return rows
