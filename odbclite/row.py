"""
Copyright (c) Microsoft Corporation.
Licensed under the MIT license.
This module contains the result containers returned by queries: column
descriptors, raw result sets and structured rows.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Sequence, Union

from odbclite.constants import SqlDataType

TypedValue = Union[int, float, str, None]


@dataclass(frozen=True)
class ColumnDescriptor:
    """
    Shape of one result column as reported by SQLDescribeCol.

    Attributes:
        name: Column name, truncated to the name buffer.
        sql_type: Type tag; UNKNOWN for codes outside SqlDataType.
        size: Declared column size.
        type_code: Raw type code reported by the driver.
        decimal_digits: Declared decimal digits.
        nullable: SQL_NO_NULLS, SQL_NULLABLE or SQL_NULLABLE_UNKNOWN.
    """

    name: str
    sql_type: SqlDataType
    size: int
    type_code: int = 0
    decimal_digits: int = 0
    nullable: int = 2


@dataclass
class ResultSet:
    """
    Columns and rows of a query, every value as text.
    SQL NULL is represented by an empty string.
    """

    columns: List[ColumnDescriptor] = field(default_factory=list)
    rows: List[List[str]] = field(default_factory=list)

    @property
    def column_names(self) -> List[str]:
        return [column.name for column in self.columns]

    def __len__(self) -> int:
        return len(self.rows)

    def __iter__(self) -> Iterator[List[str]]:
        return iter(self.rows)


class StructuredRow:
    """
    A row of typed values, accessible by column name, by position and as
    attributes.

    Every described column keeps its positional slot. When two columns share
    a name, lookup by name returns the right-most one.
    """

    def __init__(self, values: Sequence[TypedValue], column_map: Dict[str, int]):
        """
        Initialize a StructuredRow with values and a pre-built column map.
        Args:
            values: Values for this row, in column order
            column_map: Column name to index mapping (shared across rows)
        """
        self._values = list(values)
        self._column_map = column_map

    @staticmethod
    def build_column_map(columns: Sequence[ColumnDescriptor]) -> Dict[str, int]:
        """Map each column name to its index; later duplicates win."""
        return {column.name: index for index, column in enumerate(columns)}

    def __getitem__(self, key: Union[str, int]) -> TypedValue:
        if isinstance(key, str):
            try:
                return self._values[self._column_map[key]]
            except KeyError:
                raise KeyError(key) from None
        return self._values[key]

    def __getattr__(self, name: str) -> Any:
        if name.startswith("_"):
            raise AttributeError(name)
        if name in self._column_map:
            return self._values[self._column_map[name]]
        raise AttributeError(f"Row has no attribute '{name}'")

    def __contains__(self, name: object) -> bool:
        return name in self._column_map

    def get(self, name: str, default: Any = None) -> Any:
        if name in self._column_map:
            return self._values[self._column_map[name]]
        return default

    def keys(self) -> List[str]:
        return list(self._column_map)

    def values(self) -> List[TypedValue]:
        return list(self._values)

    def items(self) -> List[tuple]:
        return [(name, self._values[index]) for name, index in self._column_map.items()]

    def as_dict(self) -> Dict[str, TypedValue]:
        return dict(self.items())

    def __eq__(self, other: Any) -> bool:
        if isinstance(other, dict):
            return self.as_dict() == other
        if isinstance(other, list):
            return self._values == other
        if isinstance(other, StructuredRow):
            return self._values == other._values and self._column_map == other._column_map
        return NotImplemented

    def __len__(self) -> int:
        return len(self._values)

    def __iter__(self) -> Iterator[str]:
        return iter(self._column_map)

    def __repr__(self) -> str:
        return f"StructuredRow({self.as_dict()!r})"
