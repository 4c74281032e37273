"""
Copyright (c) Microsoft Corporation.
Licensed under the MIT license.
This module defines the Session class, which owns the environment and
connection handles of one database session.
Resource Management:
- A session exclusively owns one ENV and one DBC handle.
- close() disconnects, then frees the DBC handle, then the ENV handle. It is
  idempotent and never raises; failures while closing are logged.
- A failure while connecting releases whatever was already allocated, in the
  same order, before the error propagates.
- Statement handles are borrowed from the session for one call at a time and
  are always freed before that call returns.
"""

from typing import List, Optional

from odbclite.constants import ConstantsODBC, is_success
from odbclite.cursor import execute, query, query_typed
from odbclite.exceptions import AllocationError, ConnectionError, DiagnosticRecord, InterfaceError
from odbclite.handles import SqlHandle, alloc_environment, alloc_handle
from odbclite.helpers import check_error, encode_text, get_settings, sanitize_connection_string
from odbclite.logging import logger
from odbclite.odbc_bindings import get_driver_manager
from odbclite.row import ResultSet, StructuredRow


class Session:
    """
    A live database session opened through the ODBC driver manager.

    A session is not safe for concurrent use from several threads; run at most
    one operation on it at a time.

    Methods:
        execute(sql) -> int
        query(sql) -> ResultSet
        query_typed(sql) -> List[StructuredRow]
        close() -> None
    """

    def __init__(
        self,
        connection_str: str,
        driver_manager=None,
        collect_info: Optional[bool] = None,
    ) -> None:
        """
        Open a session with the given driver connection string.

        Args:
            connection_str (str): Driver connection string, passed to the driver
                verbatim, e.g. "DRIVER={PostgreSQL};SERVER=localhost;DATABASE=db".
            driver_manager: Driver-manager call surface. Defaults to the
                process-wide ctypes binding of the platform library.
            collect_info (bool): Keep the records of SQL_SUCCESS_WITH_INFO
                returns in ``messages``. Defaults to Settings.collect_info.

        Raises:
            AllocationError: If a handle cannot be allocated.
            ConnectionError: If version negotiation or the driver connect fails.
        """
        self.driver_manager = driver_manager or get_driver_manager()
        self.collect_info = get_settings().collect_info if collect_info is None else collect_info
        self.messages: List[DiagnosticRecord] = []
        self.connected = False
        self._env: Optional[SqlHandle] = None
        self._dbc: Optional[SqlHandle] = None
        self._closed = False
        self._trace_id = logger.generate_trace_id("SESS")

        try:
            self._connect(connection_str)
        except BaseException:
            self._teardown()
            self._closed = True
            raise

    def _connect(self, connection_str: str) -> None:
        logger.set_trace_id(self._trace_id)
        logger.info("Connecting with: %s", sanitize_connection_string(connection_str))

        self._env = alloc_environment(self.driver_manager, ConnectionError)
        self._dbc = alloc_handle(
            self.driver_manager,
            ConstantsODBC.SQL_HANDLE_DBC.value,
            parent=self._env,
            error_cls=AllocationError,
            context="Failed to allocate connection handle",
        )

        # The completed connection string the driver writes back is discarded
        ret, _, _ = self.driver_manager.SQLDriverConnect(
            self._dbc.value,
            encode_text(connection_str),
            get_settings().connect_out_buffer_size,
            ConstantsODBC.SQL_DRIVER_NOPROMPT.value,
        )
        check_error(
            self._dbc,
            ret,
            ConnectionError,
            "Failed to connect to database",
            self.messages if self.collect_info else None,
        )
        self.connected = True
        logger.info("Connection established")

    def _teardown(self) -> None:
        """
        Disconnect and free the handles.

        Each step runs even if an earlier one failed. Failures are logged and
        never raised, so they cannot replace an error already in flight.
        """
        if self.connected:
            self.connected = False
            try:
                ret = self.driver_manager.SQLDisconnect(self._dbc.value)
                if not is_success(ret):
                    logger.warning("SQLDisconnect returned %d", ret)
            except Exception as e:
                logger.warning("Error during disconnect: %s: %s", type(e).__name__, e)
        for handle in (self._dbc, self._env):
            if handle is None:
                continue
            try:
                handle.free()
            except Exception as e:
                logger.warning(
                    "Error freeing %s handle: %s: %s", handle.type_name, type(e).__name__, e
                )

    @property
    def closed(self) -> bool:
        return self._closed

    def _connection_handle(self) -> SqlHandle:
        if self._closed or not self.connected:
            raise InterfaceError("Operation attempted on a closed session")
        return self._dbc

    def _begin_operation(self) -> Optional[List[DiagnosticRecord]]:
        """Reset ``messages`` and return the sink for informational records."""
        self._connection_handle()
        logger.set_trace_id(self._trace_id)
        self.messages = []
        return self.messages if self.collect_info else None

    def execute(self, sql: str) -> int:
        """
        Execute a statement that does not return rows.

        Returns:
            int: Affected row count as reported by the driver (-1 if unknown).

        Raises:
            InterfaceError: If the session is closed.
            ExecutionError: If the statement fails.

        Example:
            inserted = session.execute("INSERT INTO users (name, age) VALUES ('Alice', 30)")
        """
        return execute(self, sql)

    def query(self, sql: str) -> ResultSet:
        """
        Execute a query and return column metadata and every value as text.

        Raises:
            InterfaceError: If the session is closed.
            ExecutionError: If the query fails.

        Example:
            result = session.query("SELECT id, name FROM users")
            for row in result.rows:
                print(row)
        """
        return query(self, sql)

    def query_typed(self, sql: str) -> List[StructuredRow]:
        """
        Execute a query and return one typed row per fetched row.

        Raises:
            InterfaceError: If the session is closed.
            ExecutionError: If the query fails.

        Example:
            for row in session.query_typed("SELECT id, score FROM users"):
                print(row["id"], row.score)
        """
        return query_typed(self, sql)

    def close(self) -> None:
        """
        Close the session now (rather than whenever .__del__() is called).

        Disconnects, then frees the connection handle, then the environment
        handle. Calling close() again does nothing. Errors are logged, never
        raised.
        """
        if self._closed:
            return
        self._closed = True
        logger.set_trace_id(self._trace_id)
        self._teardown()
        logger.info("Session closed")
        logger.clear_trace_id()

    def __enter__(self) -> "Session":
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        self.close()

    def __del__(self):
        """
        Safety net releasing the handles of a session that was never closed.
        """
        if "_closed" in self.__dict__ and not self._closed:
            logger.warning("Session garbage collected without close()")
            self.close()

    def __repr__(self) -> str:
        state = "closed" if self._closed else "open"
        return f"<odbclite.Session {self._trace_id} {state}>"


def connect(
    connection_str: str, *, driver_manager=None, collect_info: Optional[bool] = None
) -> Session:
    """
    Open a database session.

    Args:
        connection_str (str): Driver connection string, passed through verbatim.
        driver_manager: Optional driver-manager call surface.
        collect_info (bool): Keep informational diagnostics in Session.messages.

    Returns:
        Session: A connected session. Close it with close() or use it as a
        context manager.

    Raises:
        AllocationError: If a handle cannot be allocated.
        ConnectionError: If the connection cannot be established.
        InterfaceError: If the driver manager library cannot be loaded.

    Example:
        with connect("DRIVER={SQLite3};Database=test.db") as session:
            session.execute("CREATE TABLE t (id INTEGER, v DOUBLE)")
    """
    session = Session(connection_str, driver_manager=driver_manager, collect_info=collect_info)
    from odbclite import _register_session

    _register_session(session)
    return session
