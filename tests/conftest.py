"""
This file contains fixtures for the tests in the odbclite package.
Classes:
- FakeResult: A scripted result set returned by the fake driver manager.
- FakeDriverManager: In-memory driver-manager call surface with failure injection.
Functions:
- fake_dm: Fixture returning a fresh FakeDriverManager.
- session: Fixture yielding a session opened on the fake driver manager.
- conn_str: Fixture to get the connection string from environment variables.
- db_connection: Fixture yielding a live session, skipped without DB_CONNECTION_STRING.
"""

import os

import pytest

from odbclite import connect
from odbclite.constants import ConstantsODBC
from odbclite.helpers import reset_settings

SQL_SUCCESS = ConstantsODBC.SQL_SUCCESS.value
SQL_SUCCESS_WITH_INFO = ConstantsODBC.SQL_SUCCESS_WITH_INFO.value
SQL_ERROR = ConstantsODBC.SQL_ERROR.value
SQL_INVALID_HANDLE = ConstantsODBC.SQL_INVALID_HANDLE.value
SQL_NO_DATA = ConstantsODBC.SQL_NO_DATA.value
SQL_NULL_DATA = ConstantsODBC.SQL_NULL_DATA.value

ENV = ConstantsODBC.SQL_HANDLE_ENV.value
DBC = ConstantsODBC.SQL_HANDLE_DBC.value
STMT = ConstantsODBC.SQL_HANDLE_STMT.value

CONNECTION_STRING = "DRIVER={Fake};SERVER=localhost;UID=user;PWD=secret"


def _fill(data, size):
    """Copy data into a NUL-padded buffer of size bytes, terminator included."""
    if size <= 0:
        return b""
    body = data[: size - 1]
    return body + b"\0" * (size - len(body))


class FakeResult:
    """Columns are (name, type_code) or (name, type_code, size) tuples."""

    def __init__(self, columns, rows=(), row_count=-1):
        self.columns = [tuple(column) + (10,) * (3 - len(column)) for column in columns]
        self.rows = [list(row) for row in rows]
        self.row_count = row_count


class FakeDriverManager:
    """
    In-memory stand-in for the ctypes DriverManager.

    Every call is appended to ``calls`` as (name, *args). Failures are queued
    with fail(); the next matching call returns the queued code and leaves the
    queued records on the handle it was made on (the parent handle for
    SQLAllocHandle). Diagnostics are cleared by every other call on a handle.
    """

    def __init__(self):
        self.calls = []
        self.results = {}
        self.drivers = []
        self.failures = {}
        self.handles = {}
        self.freed = []
        self.diagnostics = {}
        self.env_attrs = {}
        self._next_value = 1000
        self._cursors = {}
        self._driver_positions = {}

    # Scripting

    def add_result(self, sql, columns, rows=(), row_count=-1):
        self.results[sql] = FakeResult(columns, rows, row_count)

    def add_statement(self, sql, row_count=0):
        self.results[sql] = FakeResult([], row_count=row_count)

    def add_driver(self, description, attributes):
        block = "".join(f"{attribute}\0" for attribute in attributes) + "\0"
        self.drivers.append((description.encode("utf-8"), block.encode("utf-8")))

    def fail(self, call, ret=SQL_ERROR, records=(), handle_type=None):
        key = call if handle_type is None else (call, handle_type)
        self.failures.setdefault(key, []).append((ret, [tuple(r) for r in records]))

    def call_names(self):
        return [call[0] for call in self.calls]

    def live_handle_types(self):
        return sorted(self.handles.values())

    # Internals

    def _begin(self, key, handle, *record):
        self.calls.append(record)
        if handle is not None:
            self.diagnostics.pop(handle, None)
        queue = self.failures.get(key)
        if not queue:
            return None
        ret, records = queue.pop(0)
        if handle is not None and records:
            self.diagnostics[handle] = records
        return ret

    def _warn_truncated(self, handle):
        self.diagnostics[handle] = [("01004", 0, "String data, right truncated")]
        return SQL_SUCCESS_WITH_INFO

    # Driver-manager call surface

    def SQLAllocHandle(self, handle_type, input_handle):
        ret = self._begin(
            ("SQLAllocHandle", handle_type), input_handle, "SQLAllocHandle", handle_type
        )
        if ret is not None:
            return ret, None
        value = self._next_value
        self._next_value += 1
        self.handles[value] = handle_type
        return SQL_SUCCESS, value

    def SQLFreeHandle(self, handle_type, handle):
        ret = self._begin("SQLFreeHandle", None, "SQLFreeHandle", handle_type)
        if handle not in self.handles:
            return SQL_INVALID_HANDLE
        del self.handles[handle]
        self._cursors.pop(handle, None)
        self.freed.append(handle_type)
        return SQL_SUCCESS if ret is None else ret

    def SQLSetEnvAttr(self, env, attribute, value):
        ret = self._begin("SQLSetEnvAttr", env, "SQLSetEnvAttr", attribute, value)
        if ret is not None:
            return ret
        self.env_attrs[(env, attribute)] = value
        return SQL_SUCCESS

    def SQLDriverConnect(self, dbc, connection_string, out_buffer_size, completion):
        ret = self._begin(
            "SQLDriverConnect",
            dbc,
            "SQLDriverConnect",
            connection_string.decode("utf-8"),
            completion,
        )
        out = _fill(connection_string, out_buffer_size)
        return (SQL_SUCCESS if ret is None else ret), out, len(connection_string)

    def SQLDisconnect(self, dbc):
        ret = self._begin("SQLDisconnect", dbc, "SQLDisconnect")
        return SQL_SUCCESS if ret is None else ret

    def SQLExecDirect(self, stmt, statement_text):
        sql = statement_text.decode("utf-8")
        ret = self._begin("SQLExecDirect", stmt, "SQLExecDirect", sql)
        if ret is not None:
            return ret
        if sql not in self.results:
            self.diagnostics[stmt] = [("42S02", 208, f"Invalid object name in '{sql}'")]
            return SQL_ERROR
        self._cursors[stmt] = [self.results[sql], -1]
        return SQL_SUCCESS

    def SQLRowCount(self, stmt):
        ret = self._begin("SQLRowCount", stmt, "SQLRowCount")
        if ret is not None:
            return ret, 0
        return SQL_SUCCESS, self._cursors[stmt][0].row_count

    def SQLNumResultCols(self, stmt):
        ret = self._begin("SQLNumResultCols", stmt, "SQLNumResultCols")
        if ret is not None:
            return ret, 0
        return SQL_SUCCESS, len(self._cursors[stmt][0].columns)

    def SQLDescribeCol(self, stmt, column, name_buffer_size):
        ret = self._begin("SQLDescribeCol", stmt, "SQLDescribeCol", column)
        if ret is not None:
            return ret, b"", 0, 0, 0, 0, 0
        name, type_code, size = self._cursors[stmt][0].columns[column - 1]
        data = name.encode("utf-8")
        ret = SQL_SUCCESS
        if len(data) >= name_buffer_size:
            ret = self._warn_truncated(stmt)
        return (
            ret,
            _fill(data, name_buffer_size),
            len(data),
            type_code,
            size,
            0,
            ConstantsODBC.SQL_NULLABLE.value,
        )

    def SQLFetch(self, stmt):
        ret = self._begin("SQLFetch", stmt, "SQLFetch")
        if ret is not None:
            return ret
        cursor = self._cursors[stmt]
        cursor[1] += 1
        if cursor[1] >= len(cursor[0].rows):
            return SQL_NO_DATA
        return SQL_SUCCESS

    def SQLGetData(self, stmt, column, c_type, buffer_size=0):
        ret = self._begin("SQLGetData", stmt, "SQLGetData", column, c_type)
        if ret is not None:
            return ret, None, 0
        result, position = self._cursors[stmt]
        value = result.rows[position][column - 1]
        if c_type == ConstantsODBC.SQL_C_CHAR.value:
            if value is None:
                return SQL_SUCCESS, _fill(b"", buffer_size), SQL_NULL_DATA
            data = str(value).encode("utf-8")
            ret = SQL_SUCCESS
            if len(data) >= buffer_size:
                ret = self._warn_truncated(stmt)
            return ret, _fill(data, buffer_size), len(data)
        if value is None:
            return SQL_SUCCESS, 0, SQL_NULL_DATA
        if c_type == ConstantsODBC.SQL_C_LONG.value:
            return SQL_SUCCESS, int(value), 4
        if c_type == ConstantsODBC.SQL_C_DOUBLE.value:
            return SQL_SUCCESS, float(value), 8
        raise AssertionError(f"unexpected C type {c_type}")

    def SQLGetDiagRec(self, handle_type, handle, rec_number, buffer_size):
        self.calls.append(("SQLGetDiagRec", handle_type, rec_number))
        records = self.diagnostics.get(handle, [])
        if rec_number > len(records):
            return SQL_NO_DATA, b"\0" * 6, 0, _fill(b"", buffer_size), 0
        state, native_error, message = records[rec_number - 1]
        data = message.encode("utf-8")
        ret = SQL_SUCCESS_WITH_INFO if len(data) >= buffer_size else SQL_SUCCESS
        return ret, state.encode("ascii").ljust(6, b"\0"), native_error, _fill(data, buffer_size), len(data)

    def SQLDrivers(self, env, direction, desc_buffer_size, attr_buffer_size):
        ret = self._begin("SQLDrivers", env, "SQLDrivers", direction)
        if ret is not None:
            return ret, _fill(b"", desc_buffer_size), 0, _fill(b"", attr_buffer_size), 0
        if direction == ConstantsODBC.SQL_FETCH_FIRST.value:
            position = 0
        else:
            position = self._driver_positions.get(env, -1) + 1
        self._driver_positions[env] = position
        if position >= len(self.drivers):
            return SQL_NO_DATA, _fill(b"", desc_buffer_size), 0, _fill(b"", attr_buffer_size), 0
        description, block = self.drivers[position]
        return (
            SQL_SUCCESS,
            _fill(description, desc_buffer_size),
            len(description),
            _fill(block, attr_buffer_size),
            len(block) - 1,
        )


@pytest.fixture(autouse=True)
def default_settings():
    reset_settings()
    yield
    reset_settings()


@pytest.fixture
def fake_dm():
    return FakeDriverManager()


@pytest.fixture
def session(fake_dm):
    session = connect(CONNECTION_STRING, driver_manager=fake_dm)
    yield session
    session.close()


@pytest.fixture(scope="session")
def conn_str():
    conn_str = os.getenv("DB_CONNECTION_STRING")
    return conn_str


@pytest.fixture(scope="module")
def db_connection(conn_str):
    if not conn_str:
        pytest.skip("DB_CONNECTION_STRING is not set")
    try:
        conn = connect(conn_str)
    except Exception as e:
        pytest.fail(f"Database connection failed: {e}")
    yield conn
    conn.close()
