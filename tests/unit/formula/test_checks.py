"""Unit tests for the built-in plausibility checks."""

import pytest

from labformula.formula.checks import (
    LOQ_CHECK_ID,
    PairCheck,
    evaluate_loq,
    evaluate_pair,
    evaluate_total_phosphorus_vs_orthophosphate,
    evaluate_total_vs_component,
    evaluate_wad_vs_total_cyanide,
    loq_highlights,
)
from labformula.schemas.formula import TableData


@pytest.fixture
def loq_table() -> TableData:
    return TableData(
        columns=["id", "Variable", "LOQ", "Ocak", "Şubat"],
        data=[
            [1, "Siyanür", "<0.01", 0.004, "<0.01"],
            [2, "Orto Fosfat", "0.05", 0.5, 0.02],
            [3, "pH", None, 7.2, 6.8],
        ],
    )


class TestEvaluateLoq:
    """Tests for evaluate_loq()."""

    def test_below_limit(self):
        """Test a value under the LOQ is flagged."""
        result = evaluate_loq(0.004, "<0.01")
        assert result.result is True
        assert result.message == "Value 0.004 is less than LOQ 0.01"
        assert result.color == "#ff5555"
        assert result.formula_name == "LOQ Check"

    def test_reported_as_below_limit(self):
        """Test "<0.01" against a LOQ of 0.01 is not below it."""
        result = evaluate_loq("<0.01", "<0.01")
        assert result.result is False
        assert result.color == "#55ff55"
        assert result.message is None

    def test_not_numeric(self):
        """Test missing or text inputs give no result."""
        assert evaluate_loq(None, "0.01") is None
        assert evaluate_loq("0.5", "") is None
        assert evaluate_loq("n.d.", "0.01") is None


class TestPairChecks:
    """Tests for the parameter pair checks."""

    def test_total_vs_component(self):
        """Test a total lower than its component is flagged."""
        result = evaluate_total_vs_component("1.2", "1.5")
        assert result.result is True
        assert result.message == "Total value 1.2 is less than component value 1.5"
        assert result.color == "#ffaa00"
        assert evaluate_total_vs_component(1.5, 1.5).result is False

    def test_wad_vs_total_cyanide(self):
        """Test WAD cyanide above total cyanide is flagged."""
        result = evaluate_wad_vs_total_cyanide(0.08, 0.05)
        assert result.result is True
        assert result.message == "WAD Cyanide 0.08 is greater than Total Cyanide 0.05"
        assert result.color == "#ff00ff"
        assert evaluate_wad_vs_total_cyanide(0.05, 0.05).result is False

    def test_total_phosphorus_vs_orthophosphate(self):
        """Test total phosphorus must be strictly greater than orthophosphate."""
        result = evaluate_total_phosphorus_vs_orthophosphate(0.5, 0.5)
        assert result.result is True
        assert result.message == "Total Phosphor 0.5 is not greater than Orthophosphat 0.5"
        assert result.color == "#aa55ff"
        assert evaluate_total_phosphorus_vs_orthophosphate(0.8, 0.5).result is False

    def test_not_numeric(self):
        """Test a pair with an empty value gives no result."""
        assert evaluate_wad_vs_total_cyanide("", 0.05) is None

    def test_evaluate_pair_by_name(self):
        """Test running a pair check by its name."""
        result = evaluate_pair("TOTAL_VS_COMPONENT", 1, 2)
        assert result.formula_name == "Total vs Component"
        assert evaluate_pair(PairCheck.WAD_VS_TOTAL_CYANIDE, 1, 2).result is False

    def test_unknown_pair(self):
        """Test an unknown check name."""
        with pytest.raises(ValueError):
            evaluate_pair("PH_VS_CONDUCTIVITY", 1, 2)


class TestLoqHighlights:
    """Tests for loq_highlights()."""

    def test_flags_values_below_loq(self, loq_table, test_settings):
        """Test only values under their row's LOQ are highlighted."""
        cells = loq_highlights(loq_table, test_settings)

        assert [(cell.row, cell.col) for cell in cells] == [("row-1", "Ocak"), ("row-2", "Şubat")]
        cell = cells[1]
        assert cell.color == "#ff5555"
        assert cell.message == "Value 0.02 is less than LOQ 0.05"
        assert cell.formula_ids == [LOQ_CHECK_ID]
        detail = cell.formula_details[0]
        assert detail.left_result == 0.02
        assert detail.right_result == 0.05
        assert detail.formula_text == "Value < 0.05"

    def test_table_without_loq_column(self, lab_table, test_settings):
        """Test a table without a LOQ column yields nothing."""
        assert loq_highlights(lab_table, test_settings) == []

    def test_custom_loq_column(self, test_settings):
        """Test the LOQ column name comes from the settings."""
        settings = test_settings.model_copy(
            update={"loq_column": "LOD", "excluded_columns": ["Variable", "LOD"]}
        )
        table = {"columns": ["Variable", "LOD", "Jan"], "data": [["Nitrit", 0.1, 0.05]]}
        cells = loq_highlights(table, settings)
        assert [(cell.row, cell.col) for cell in cells] == [("row-1", "Jan")]

    def test_table_without_variable_column(self, test_settings):
        """Test a table without a Variable column yields nothing."""
        table = TableData(columns=["Name", "LOQ", "Jan"], data=[["A", 1, 0]])
        assert loq_highlights(table, test_settings) == []
