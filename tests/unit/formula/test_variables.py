"""Unit tests for table variable bindings."""

import math

import pytest

from labformula.formula.variables import TableVariables, build_bindings, parse_numeric
from labformula.schemas.formula import TableData


class TestParseNumeric:
    """Tests for parse_numeric()."""

    def test_numbers(self):
        """Test numeric cells pass through as floats."""
        assert parse_numeric(5) == 5.0
        assert parse_numeric(0.25) == 0.25

    def test_non_finite(self):
        """Test NaN and infinity are rejected."""
        assert parse_numeric(math.nan) is None
        assert parse_numeric(math.inf) is None

    def test_none_and_bool(self):
        """Test empty and boolean cells."""
        assert parse_numeric(None) is None
        assert parse_numeric(True) is None

    def test_strings(self):
        """Test tolerant string parsing."""
        assert parse_numeric("7.2") == 7.2
        assert parse_numeric(" -3 ") == -3.0
        assert parse_numeric("< 0.5 mg/L") == 0.5

    def test_unparsable_strings(self):
        """Test strings without a usable number."""
        assert parse_numeric("") is None
        assert parse_numeric("-") is None
        assert parse_numeric("n.d.") is None
        assert parse_numeric("1.2.3") is None


class TestTableVariables:
    """Tests for TableVariables class."""

    def test_layout(self, lab_table, test_settings):
        """Test data columns and variable order."""
        layout = TableVariables.from_table(lab_table, test_settings)
        assert layout.variable_index == 1
        assert layout.data_columns == ["Ocak", "Şubat"]
        assert layout.available_variables == [
            "İletkenlik",
            "pH",
            "Orto Fosfat",
            "Alkalinite",
            "Toplam Fosfor",
        ]
        assert layout.row_index["Orto Fosfat"] == 2

    def test_bindings(self, lab_table, test_settings):
        """Test one column's bindings."""
        layout = TableVariables.from_table(lab_table, test_settings)
        assert layout.bindings("Ocak") == {
            "İletkenlik": 350.0,
            "pH": 7.2,
            "Orto Fosfat": 0.5,
            "Alkalinite": 0.2,
            "Toplam Fosfor": 0.8,
        }

    def test_unparsable_values_are_omitted(self, lab_table, test_settings):
        """Test that empty cells do not bind to 0."""
        bindings = TableVariables.from_table(lab_table, test_settings).bindings("Şubat")
        assert "Toplam Fosfor" not in bindings
        assert bindings["pH"] == 6.8

    def test_iter_bindings(self, lab_table, test_settings):
        """Test iteration over every data column."""
        layout = TableVariables.from_table(lab_table, test_settings)
        assert [column.column for column in layout.iter_bindings()] == ["Ocak", "Şubat"]

    def test_accepts_dict_payload(self, test_settings):
        """Test a raw payload is validated into TableData."""
        layout = TableVariables.from_table(
            {"columns": ["Variable", "Jan"], "data": [["A", "1"]]}, test_settings
        )
        assert layout.bindings("Jan") == {"A": 1.0}

    def test_missing_variable_column(self, test_settings):
        """Test a table without a Variable column."""
        table = TableData(columns=["Name", "Jan"], data=[["A", 1]])
        with pytest.raises(ValueError):
            TableVariables.from_table(table, test_settings)

    def test_unknown_column(self, lab_table, test_settings):
        """Test bindings of an unknown column."""
        layout = TableVariables.from_table(lab_table, test_settings)
        with pytest.raises(KeyError):
            layout.bindings("Mart")

    def test_clean_names(self, test_settings):
        """Test trailing commas and whitespace are stripped from names."""
        table = TableData(columns=["Variable", "Jan"], data=[[" pH, ", 7]])
        layout = TableVariables.from_table(table, test_settings)
        assert layout.available_variables == ["pH"]
        assert layout.bindings("Jan") == {"pH": 7.0}

    def test_duplicate_names_use_last_row(self, test_settings):
        """Test a repeated variable maps to its last row."""
        table = TableData(columns=["Variable", "Jan"], data=[["A", 1], ["B", 2], ["A", 3]])
        layout = TableVariables.from_table(table, test_settings)
        assert layout.row_index["A"] == 2
        assert layout.bindings("Jan")["A"] == 3.0

    def test_duplicate_name_row_follows_value(self, test_settings):
        """Test the row of a repeated variable is the row that supplied its value."""
        table = TableData(
            columns=["Variable", "Jan", "Feb"],
            data=[["A", 60, None], ["A", None, 4]],
        )
        layout = TableVariables.from_table(table, test_settings)

        jan = layout.column_bindings("Jan")
        assert jan.values == {"A": 60.0}
        assert jan.rows == {"A": 0}

        feb = layout.column_bindings("Feb")
        assert feb.values == {"A": 4.0}
        assert feb.rows == {"A": 1}

    def test_short_rows(self, test_settings):
        """Test rows shorter than the header."""
        table = TableData(columns=["Variable", "Jan", "Feb"], data=[["A", 1], [None, 2]])
        layout = TableVariables.from_table(table, test_settings)
        assert layout.bindings("Feb") == {}
        assert layout.bindings("Jan") == {"A": 1.0}

    def test_excluded_columns_setting(self, lab_table, test_settings):
        """Test custom excluded columns."""
        settings = test_settings.model_copy(update={"excluded_columns": ["id", "Unit", "Ocak"]})
        layout = TableVariables.from_table(lab_table, settings)
        assert layout.data_columns == ["Şubat"]

    def test_build_bindings(self, simple_table, test_settings):
        """Test the convenience function."""
        assert build_bindings(simple_table, "Jan", test_settings) == {"A": 60.0, "B": 5.0}


class TestTableData:
    """Tests for the table payload schema."""

    def test_rows_longer_than_columns(self):
        """Test that over-long rows are rejected."""
        with pytest.raises(ValueError):
            TableData(columns=["Variable"], data=[["A", 1]])
