"""
This file contains tests for the exception hierarchy and diagnostic collection.
Functions:
- test_from_records: Errors concatenate every record and keep the last SQLSTATE.
- test_from_records_without_records: Errors without records name the return code.
- test_description: describe_sqlstate() labels known and unknown SQLSTATEs.
- test_collect_diagnostics: Records are read in order until no more data.
- test_check_error: Only failure return codes raise.
"""

import pytest

from odbclite.constants import ConstantsODBC
from odbclite.exceptions import (
    AllocationError,
    CatalogError,
    ConnectionError,
    DatabaseError,
    DiagnosticRecord,
    Error,
    ExecutionError,
    InterfaceError,
    describe_sqlstate,
)
from odbclite.handles import SqlHandle
from odbclite.helpers import check_error, collect_diagnostics, configure

from conftest import (
    SQL_ERROR,
    SQL_INVALID_HANDLE,
    SQL_NO_DATA,
    SQL_SUCCESS,
    SQL_SUCCESS_WITH_INFO,
    STMT,
)


@pytest.fixture
def stmt(fake_dm):
    _, value = fake_dm.SQLAllocHandle(STMT, 1)
    handle = SqlHandle(fake_dm, STMT, value)
    yield handle
    handle.free()


def test_hierarchy():
    assert issubclass(Error, Exception)
    assert issubclass(InterfaceError, Error)
    assert issubclass(DatabaseError, Error)
    for cls in (AllocationError, ConnectionError, ExecutionError, CatalogError):
        assert issubclass(cls, DatabaseError)
    assert not issubclass(InterfaceError, DatabaseError)


def test_diagnostic_record_str():
    record = DiagnosticRecord("42000", 102, "Incorrect syntax near 'FROM'")
    assert str(record) == "[42000] Incorrect syntax near 'FROM'"


def test_from_records():
    records = [
        DiagnosticRecord("01000", 0, "first"),
        DiagnosticRecord("42000", 102, "second"),
        DiagnosticRecord("HY000", 7, "third"),
    ]

    error = ExecutionError.from_records(records, context="Execution failed", return_code=-1)

    assert isinstance(error, ExecutionError)
    assert error.message == "[01000] first\n[42000] second\n[HY000] third"
    assert str(error) == error.message
    assert error.sqlstate == "HY000"
    assert error.native_error == 7
    assert error.records == records
    assert error.context == "Execution failed"


def test_from_records_without_records():
    error = CatalogError.from_records([], context="Failed to fetch driver information", return_code=-2)

    assert error.message == "Failed to fetch driver information (return code -2)"
    assert error.sqlstate == ""
    assert error.records == []


def test_from_records_without_context():
    error = DatabaseError.from_records([], return_code=-1)
    assert error.message == "ODBC call failed (return code -1)"


def test_description():
    assert describe_sqlstate("42S02") == "Base table or view not found"
    assert describe_sqlstate("ZZ999") == "SQLSTATE ZZ999"
    assert describe_sqlstate("") == "No SQLSTATE available"
    error = ConnectionError("failed", sqlstate="08001")
    assert error.description == "Client unable to establish connection"


def test_collect_diagnostics(fake_dm, stmt):
    fake_dm.diagnostics[stmt.value] = [
        ("01000", 1, "one"),
        ("42000", 2, "two"),
    ]

    records = collect_diagnostics(stmt)

    assert records == [
        DiagnosticRecord("01000", 1, "one"),
        DiagnosticRecord("42000", 2, "two"),
    ]
    rec_numbers = [call[2] for call in fake_dm.calls if call[0] == "SQLGetDiagRec"]
    assert rec_numbers == [1, 2, 3]


def test_collect_diagnostics_empty(fake_dm, stmt):
    assert collect_diagnostics(stmt) == []


def test_collect_diagnostics_truncates_message(fake_dm, stmt):
    configure(diag_message_buffer_size=10)
    fake_dm.diagnostics[stmt.value] = [("HY000", 0, "a long diagnostic message"), ("HY001", 0, "x")]

    records = collect_diagnostics(stmt)

    # The truncated record is returned with info and reading continues
    assert [record.message for record in records] == ["a long di", "x"]


@pytest.mark.parametrize("ret", [SQL_SUCCESS, SQL_SUCCESS_WITH_INFO, SQL_NO_DATA])
def test_check_error_success(fake_dm, stmt, ret):
    fake_dm.diagnostics[stmt.value] = [("01000", 0, "info")]
    check_error(stmt, ret, ExecutionError, "step")


def test_check_error_collects_info(fake_dm, stmt):
    fake_dm.diagnostics[stmt.value] = [("01004", 0, "String data, right truncated")]
    sink = []

    check_error(stmt, SQL_SUCCESS_WITH_INFO, ExecutionError, "step", sink)

    assert sink == [DiagnosticRecord("01004", 0, "String data, right truncated")]


def test_check_error_without_sink_reads_nothing(fake_dm, stmt):
    check_error(stmt, SQL_SUCCESS_WITH_INFO, ExecutionError, "step")
    assert "SQLGetDiagRec" not in fake_dm.call_names()


@pytest.mark.parametrize("ret", [SQL_ERROR, SQL_INVALID_HANDLE, ConstantsODBC.SQL_NEED_DATA.value])
def test_check_error_raises(fake_dm, stmt, ret):
    fake_dm.diagnostics[stmt.value] = [("HY010", 0, "Function sequence error")]

    with pytest.raises(ExecutionError) as excinfo:
        check_error(stmt, ret, ExecutionError, "Query failed")

    assert excinfo.value.sqlstate == "HY010"
    assert excinfo.value.context == "Query failed"
