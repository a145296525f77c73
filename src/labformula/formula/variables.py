"""Variable bindings built from tabular data.

Tables follow the laboratory convention: a column literally named
"Variable" names each row, and every other column that is not one of the
descriptive columns (id, Data Source, Method, Unit, LOQ) is a data column,
typically one sampling date. Formulas are evaluated once per data column
with the bindings of that column.
"""

import math
import re
from collections.abc import Iterator
from dataclasses import dataclass, field
from typing import Any

from labformula.core.config import Settings, settings as default_settings
from labformula.core.logging import get_logger
from labformula.formula.normalizer import clean_variable_name
from labformula.schemas.formula import TableData

logger = get_logger(__name__)

_NON_NUMERIC = re.compile(r"[^\d.\-]")


def parse_numeric(value: Any) -> float | None:
    """
    Tolerantly read a cell as a number.

    Strings keep only digits, "." and "-" ("< 0.5 mg/L" reads as 0.5);
    anything that still is not a number gives None.

    Args:
        value: Raw cell value

    Returns:
        Parsed float, or None when the cell holds no usable number
    """
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, (int, float)):
        number = float(value)
        return number if math.isfinite(number) else None

    if isinstance(value, str):
        cleaned = _NON_NUMERIC.sub("", value).strip()
        if cleaned in ("", "-"):
            return None
        try:
            number = float(cleaned)
        except ValueError:
            return None
        return number if math.isfinite(number) else None

    return None


@dataclass
class ColumnBindings:
    """
    Bindings of one data column.

    Attributes:
        column: Data column name
        values: Clean variable name -> number
        rows: Clean variable name -> index of the row that supplied the value
    """

    column: str
    values: dict[str, float] = field(default_factory=dict)
    rows: dict[str, int] = field(default_factory=dict)


@dataclass
class TableVariables:
    """
    Variable layout of one table.

    Attributes:
        columns: Column headers
        rows: Data rows
        variable_index: Position of the Variable column
        data_columns: Columns evaluated independently, in table order
        row_index: Clean variable name -> row index; a repeated name maps to
            its last row. Highlighting uses ColumnBindings.rows instead,
            which follows the row that supplied each value
    """

    columns: list[str]
    rows: list[list[Any]]
    variable_index: int
    data_columns: list[str]
    row_index: dict[str, int] = field(default_factory=dict)
    _column_index: dict[str, int] = field(default_factory=dict, repr=False)

    @classmethod
    def from_table(
        cls,
        table: TableData | dict[str, Any],
        settings: Settings | None = None,
    ) -> "TableVariables":
        """
        Build the layout of a table.

        Args:
            table: TableData or a {"columns": [...], "data": [[...]]} payload
            settings: Optional settings (variable column, exclusions)

        Returns:
            TableVariables

        Raises:
            ValueError: If the table has no Variable column
        """
        settings = settings or default_settings
        if not isinstance(table, TableData):
            table = TableData.model_validate(table)

        columns = list(table.columns)
        if settings.variable_column not in columns:
            raise ValueError(f"Table has no '{settings.variable_column}' column")

        variable_index = columns.index(settings.variable_column)
        excluded = set(settings.excluded_columns) | {settings.variable_column}
        data_columns = [column for column in columns if column not in excluded]

        row_index: dict[str, int] = {}
        for index, row in enumerate(table.data):
            raw = row[variable_index] if variable_index < len(row) else None
            if raw is None:
                continue
            name = clean_variable_name(raw)
            if name:
                row_index[name] = index

        column_index: dict[str, int] = {}
        for index, column in enumerate(columns):
            column_index.setdefault(column, index)

        return cls(
            columns=columns,
            rows=[list(row) for row in table.data],
            variable_index=variable_index,
            data_columns=data_columns,
            row_index=row_index,
            _column_index=column_index,
        )

    @property
    def available_variables(self) -> list[str]:
        """Clean variable names in row order."""
        return list(self.row_index)

    def column_bindings(self, column: str) -> ColumnBindings:
        """
        Variable values of one data column and the rows they come from.

        Rows whose value does not parse as a number are left out rather
        than bound to 0. When a name repeats, the last row with a number
        supplies both the value and the row.
        """
        if column not in self._column_index:
            raise KeyError(f"Unknown column: {column}")
        column_index = self._column_index[column]

        result = ColumnBindings(column)
        for index, row in enumerate(self.rows):
            if self.variable_index >= len(row) or column_index >= len(row):
                continue
            raw = row[self.variable_index]
            if raw is None:
                continue
            name = clean_variable_name(raw)
            if not name:
                continue
            value = parse_numeric(row[column_index])
            if value is not None:
                result.values[name] = value
                result.rows[name] = index

        logger.debug(
            "Built bindings",
            extra={"column": column, "bound": len(result.values), "rows": len(self.rows)},
        )
        return result

    def bindings(self, column: str) -> dict[str, float]:
        """Variable values of one data column."""
        return self.column_bindings(column).values

    def iter_bindings(self) -> Iterator[ColumnBindings]:
        """Yield the bindings of every data column, in table order."""
        for column in self.data_columns:
            yield self.column_bindings(column)


def format_row_id(index: int, settings: Settings | None = None) -> str:
    """Canonical id of the row at a zero-based index."""
    settings = settings or default_settings
    return f"{settings.row_id_prefix}{index + settings.row_id_base}"

def build_bindings(
    table: TableData | dict[str, Any],
    column: str,
    settings: Settings | None = None,
) -> dict[str, float]:
    """Convenience function: bindings of one data column of a table."""
    return TableVariables.from_table(table, settings).bindings(column)
