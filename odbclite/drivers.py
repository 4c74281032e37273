"""
Copyright (c) Microsoft Corporation.
Licensed under the MIT license.
This module enumerates the ODBC drivers installed with the driver manager.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from odbclite.constants import ConstantsODBC
from odbclite.exceptions import CatalogError
from odbclite.handles import environment
from odbclite.helpers import buffer_text, check_error, decode_text, get_settings
from odbclite.logging import logger
from odbclite.odbc_bindings import get_driver_manager


@dataclass
class DriverInfo:
    """
    An installed driver and its attributes, in catalog order.
    """

    name: str
    attributes: List[Tuple[str, str]] = field(default_factory=list)

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        """Return the value of the first attribute named ``key``."""
        for name, value in self.attributes:
            if name == key:
                return value
        return default


def parse_attribute_block(block: str) -> List[Tuple[str, str]]:
    """
    Parse a driver attribute block.

    The block is a sequence of "key=value" segments, each terminated by a
    NUL, with a second NUL ending the block. Parsing stops at the first empty
    segment. Each segment is split on its first "="; a segment without "="
    becomes a key with an empty value.

    Args:
        block: The attribute block as returned by SQLDrivers.

    Returns:
        List[Tuple[str, str]]: The key/value pairs in block order.

    Example:
        >>> parse_attribute_block("Driver=psqlodbcw.so\\0Setup=libodbcpsqlS.so\\0\\0")
        [('Driver', 'psqlodbcw.so'), ('Setup', 'libodbcpsqlS.so')]
    """
    attributes = []
    for segment in block.split("\0"):
        if not segment:
            break
        key, _, value = segment.partition("=")
        attributes.append((key, value))
    return attributes


def list_drivers(*, driver_manager=None) -> List[DriverInfo]:
    """
    List the ODBC drivers installed on this system.

    A transient environment handle is allocated for the enumeration and
    freed when it completes or fails.

    Args:
        driver_manager: Optional driver-manager call surface.

    Returns:
        List[DriverInfo]: One entry per installed driver, in catalog order.

    Raises:
        AllocationError: If the environment handle cannot be allocated.
        CatalogError: If version negotiation or the enumeration fails.

    Example:
        for driver in list_drivers():
            print(driver.name, driver.get("Driver"))
    """
    driver_manager = driver_manager or get_driver_manager()
    settings = get_settings()
    desc_size = settings.driver_desc_buffer_size
    attr_size = settings.driver_attr_buffer_size

    drivers = []
    with environment(driver_manager, CatalogError) as env:
        direction = ConstantsODBC.SQL_FETCH_FIRST.value
        while True:
            ret, desc, desc_length, attrs, attrs_length = driver_manager.SQLDrivers(
                env.value, direction, desc_size, attr_size
            )
            if ret == ConstantsODBC.SQL_NO_DATA.value:
                break
            check_error(env, ret, CatalogError, "Failed to fetch driver information")

            name = decode_text(buffer_text(desc, desc_length, desc_size))
            # The block is cut at the reported length, so its NUL separators survive
            block = decode_text(buffer_text(attrs, attrs_length, attr_size))
            drivers.append(DriverInfo(name=name, attributes=parse_attribute_block(block)))
            direction = ConstantsODBC.SQL_FETCH_NEXT.value

    logger.debug("Found %d installed driver(s)", len(drivers))
    return drivers
