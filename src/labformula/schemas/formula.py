"""Formula engine schemas for input/output validation."""

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base schema that accepts snake_case and dumps camelCase with by_alias=True."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class FormulaScope(str, Enum):
    """Where a formula applies."""

    TABLE = "table"
    WORKSPACE = "workspace"


class FormulaType(str, Enum):
    """Formula category as stored by the surrounding application."""

    CELL_VALIDATION = "CELL_VALIDATION"
    RELATIONAL = "RELATIONAL"


class Formula(CamelModel):
    """A named, colored condition formula."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    id: str = Field(..., min_length=1, description="Formula ID")
    name: str = Field(..., description="Display name")
    text: str = Field(..., alias="formula", description="Formula text")
    color: str = Field(..., description="Highlight color")
    active: bool = Field(default=True, description="Whether the formula is evaluated")
    scope: FormulaScope = Field(default=FormulaScope.TABLE, description="Formula scope")
    table_id: Optional[str] = Field(None, description="Owning table for table-scope formulas")
    type: FormulaType = Field(default=FormulaType.CELL_VALIDATION, description="Formula type")


class TableData(BaseModel):
    """Tabular payload: a header row and data rows."""

    columns: list[str] = Field(..., description="Column headers")
    data: list[list[Optional[str | float | int]]] = Field(
        default_factory=list, description="Row values, aligned with columns"
    )

    @field_validator("data")
    @classmethod
    def validate_row_width(cls, v: list[list[Any]], info) -> list[list[Any]]:
        """Rows may be shorter than the header but never longer."""
        columns = info.data.get("columns")
        if columns is None:
            return v
        for index, row in enumerate(v):
            if len(row) > len(columns):
                raise ValueError(
                    f"Row {index} has {len(row)} values but the table has {len(columns)} columns"
                )
        return v


class FormulaDetail(CamelModel):
    """One formula's contribution to a highlighted cell."""

    id: str
    name: str
    formula_text: str
    left_result: Optional[float] = None
    right_result: Optional[float] = None
    color: str
    warnings: list[str] = Field(default_factory=list)


class HighlightedCell(CamelModel):
    """A (row, column) pair flagged by one or more formulas.

    ``color`` is the first contributor's color; renderers that want to show
    every formula read the per-formula colors from ``formula_details``.
    """

    row: str
    col: str
    color: str
    message: str
    formula_ids: list[str] = Field(default_factory=list)
    formula_details: list[FormulaDetail] = Field(default_factory=list)


class ValidationResult(CamelModel):
    """Outcome of validating a formula before it is activated."""

    is_valid: bool
    error: Optional[str] = None
    missing_variables: Optional[list[str]] = None
    target_variable: Optional[str] = None
    left_variables: Optional[list[str]] = None
    right_variables: Optional[list[str]] = None
    warnings: Optional[list[str]] = None


class CheckResult(CamelModel):
    """Outcome of a built-in plausibility check; result True means the values were flagged."""

    result: bool
    message: Optional[str] = None
    color: str
    formula_name: str


class FormulaSummary(CamelModel):
    """Counts used by reports."""

    total_formulas: int
    active_formulas: int
    table_formulas: int
    workspace_formulas: int
    formulas_by_type: dict[str, int] = Field(default_factory=dict)
