"""
Pytest configuration and fixtures for labformula tests.
"""

from typing import Any

import pytest

from labformula.core.config import Settings
from labformula.formula.cache import ParseCache
from labformula.schemas.formula import Formula, TableData


@pytest.fixture
def test_settings() -> Settings:
    """Settings independent of the environment the tests run in."""
    return Settings(
        environment="test",
        log_level="DEBUG",
        comparison_epsilon=1e-10,
        fuzzy_token_threshold=0.6,
        fuzzy_min_token_length=3,
        variable_column="Variable",
        excluded_columns=["id", "Variable", "Data Source", "Method", "Unit", "LOQ"],
        row_id_prefix="row-",
        row_id_base=1,
        highlight_evaluation_errors=True,
        error_highlight_color="#ff6b6b",
        max_workspace_conditions=3,
        max_workspace_variables=5,
        parse_cache_size=16,
    )


@pytest.fixture
def parse_cache() -> ParseCache:
    """Fresh parse cache."""
    return ParseCache(maxsize=16)


@pytest.fixture
def lab_table() -> TableData:
    """
    Water quality table with two sampling months.

    Row ids with the default settings:
    row-1 İletkenlik, row-2 pH, row-3 Orto Fosfat, row-4 Alkalinite,
    row-5 Toplam Fosfor.
    """
    return TableData(
        columns=["id", "Variable", "Unit", "Ocak", "Şubat"],
        data=[
            [1, "İletkenlik", "µS/cm", 350, 300],
            [2, "pH", "-", "7.2", "6.8"],
            [3, "Orto Fosfat", "mg/L", 0.5, 0.1],
            [4, "Alkalinite", "mg/L", 0.2, 0.3],
            [5, "Toplam Fosfor", "mg/L", "< 0.8", None],
        ],
    )


@pytest.fixture
def simple_table() -> TableData:
    """Two variables, one data column."""
    return TableData(columns=["Variable", "Jan"], data=[["A", 60], ["B", 5]])


@pytest.fixture
def make_formula():
    """Factory for Formula objects with sensible defaults."""

    def _make(formula_id: str, text: str, **kwargs: Any) -> Formula:
        values: dict[str, Any] = {
            "id": formula_id,
            "name": kwargs.pop("name", f"Formula {formula_id}"),
            "formula": text,
            "color": kwargs.pop("color", "#ff0000"),
        }
        values.update(kwargs)
        return Formula.model_validate(values)

    return _make
