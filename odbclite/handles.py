"""
Copyright (c) Microsoft Corporation.
Licensed under the MIT license.
This module wraps driver-manager handles.

Handle Hierarchy:
- ENV (SQL_HANDLE_ENV) - no parent
- DBC (SQL_HANDLE_DBC) - parent is ENV
- STMT (SQL_HANDLE_STMT) - parent is DBC

A handle is freed at most once by its owner; after that its value can no
longer be read, so it cannot be passed to another driver-manager call.
"""

from contextlib import contextmanager
from typing import Iterator, Optional, Type

from odbclite.constants import ConstantsODBC, is_success
from odbclite.exceptions import AllocationError, ConnectionError, Error, InterfaceError
from odbclite.helpers import check_error, collect_diagnostics
from odbclite.logging import logger

_HANDLE_NAMES = {
    ConstantsODBC.SQL_HANDLE_ENV.value: "ENV",
    ConstantsODBC.SQL_HANDLE_DBC.value: "DBC",
    ConstantsODBC.SQL_HANDLE_STMT.value: "STMT",
}


class SqlHandle:
    """
    An owned driver-manager handle.
    """

    def __init__(self, driver_manager, handle_type: int, value, parent: Optional["SqlHandle"] = None):
        self.driver_manager = driver_manager
        self.handle_type = handle_type
        self.parent = parent
        self._value = value
        self._freed = False

    @property
    def value(self):
        if self._freed:
            raise InterfaceError(f"{self.type_name} handle used after it was freed")
        return self._value

    @property
    def freed(self) -> bool:
        return self._freed

    @property
    def type_name(self) -> str:
        return _HANDLE_NAMES.get(self.handle_type, str(self.handle_type))

    def free(self) -> Optional[int]:
        """
        Free the handle. Calling free() again does nothing.

        Returns:
            The SQLFreeHandle return code, or None if the handle was already freed.
        """
        if self._freed:
            return None
        if self.parent is not None and self.parent.freed:
            logger.warning(
                "%s handle freed after its parent %s handle", self.type_name, self.parent.type_name
            )
        self._freed = True
        ret = self.driver_manager.SQLFreeHandle(self.handle_type, self._value)
        if not is_success(ret):
            logger.warning("SQLFreeHandle(%s) returned %d", self.type_name, ret)
        else:
            logger.debug("Freed %s handle", self.type_name)
        return ret

    def __repr__(self) -> str:
        state = "freed" if self._freed else "live"
        return f"<SqlHandle {self.type_name} {state}>"


def alloc_handle(
    driver_manager,
    handle_type: int,
    parent: Optional[SqlHandle] = None,
    error_cls: Type[Error] = AllocationError,
    context: str = "",
) -> SqlHandle:
    """
    Allocate a handle of the given type from its parent.

    An environment handle has no parent, so a failure to allocate one is
    reported without diagnostic records. Other failures carry the records of
    the parent handle.

    Args:
        driver_manager: The driver-manager call surface.
        handle_type: SQL_HANDLE_ENV, SQL_HANDLE_DBC or SQL_HANDLE_STMT.
        parent: The handle to allocate from, None for an environment handle.
        error_cls: Exception class raised on failure.
        context: Description of the step, kept on the exception.

    Returns:
        SqlHandle: The new handle.

    Raises:
        Error: An instance of ``error_cls`` when allocation fails.
    """
    type_name = _HANDLE_NAMES.get(handle_type, str(handle_type))
    context = context or f"Failed to allocate {type_name} handle"
    input_handle = parent.value if parent is not None else None
    ret, value = driver_manager.SQLAllocHandle(handle_type, input_handle)
    if is_success(ret) and value is not None:
        logger.debug("Allocated %s handle", type_name)
        return SqlHandle(driver_manager, handle_type, value, parent)

    if parent is None:
        logger.error("%s (return code %d)", context, ret)
        raise error_cls(f"{context} (return code {ret})", context=context)

    records = collect_diagnostics(parent)
    error = error_cls.from_records(records, context=context, return_code=ret)
    logger.error("%s: %s", context, error.message)
    raise error


def alloc_environment(driver_manager, error_cls: Type[Error] = ConnectionError) -> SqlHandle:
    """
    Allocate an environment handle and select ODBC 3 behaviour on it.

    The handle is freed again if version negotiation fails.

    Args:
        driver_manager: The driver-manager call surface.
        error_cls: Exception class raised when SQLSetEnvAttr fails.

    Raises:
        AllocationError: If the handle cannot be allocated.
        Error: An instance of ``error_cls`` if SQLSetEnvAttr fails.
    """
    env = alloc_handle(
        driver_manager,
        ConstantsODBC.SQL_HANDLE_ENV.value,
        context="Failed to allocate environment handle",
    )
    try:
        ret = driver_manager.SQLSetEnvAttr(
            env.value,
            ConstantsODBC.SQL_ATTR_ODBC_VERSION.value,
            ConstantsODBC.SQL_OV_ODBC3.value,
        )
        check_error(env, ret, error_cls, "Failed to set ODBC version")
    except BaseException:
        env.free()
        raise
    return env


@contextmanager
def environment(driver_manager, error_cls: Type[Error] = ConnectionError) -> Iterator[SqlHandle]:
    """
    Scoped environment handle, freed when the block exits for any reason.

    Example:
        with environment(dm) as env:
            ...
    """
    env = alloc_environment(driver_manager, error_cls)
    try:
        yield env
    finally:
        env.free()
