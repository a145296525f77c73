"""Unit tests for FormulaValidator."""

import pytest

from labformula.formula.validator import FormulaValidator, validate_formula
from labformula.schemas.formula import FormulaScope

VARIABLES = ["İletkenlik", "pH", "Orto Fosfat", "Alkalinite", "A", "B", "C", "D"]


@pytest.fixture
def validator(test_settings, parse_cache):
    return FormulaValidator(test_settings, parse_cache)


class TestFormulaValidator:
    """Tests for FormulaValidator.validate()."""

    def test_valid_table_formula(self, validator):
        """Test a unidirectional formula reports its target."""
        result = validator.validate("İletkenlik > 312", VARIABLES, table_id="t1")
        assert result.is_valid
        assert result.error is None
        assert result.target_variable == "İletkenlik"
        assert result.left_variables == ["İletkenlik"]
        assert result.right_variables == []

    def test_target_hint(self, validator):
        """Test the target is named in the warnings."""
        result = validator.validate("pH < 9", VARIABLES, table_id="t1")
        assert result.warnings == ["Cells of 'pH' are highlighted when the formula holds"]

    def test_table_formula_without_table(self, validator):
        """Test a table-scope formula without a table id is flagged."""
        result = validator.validate("pH < 9", VARIABLES)
        assert result.is_valid
        assert "Table-scope formula is not linked to a table" in result.warnings

    def test_empty(self, validator):
        """Test an empty formula."""
        result = validator.validate("", VARIABLES)
        assert result.is_valid is False
        assert result.error == "Formula cannot be empty"

    def test_no_conditions(self, validator):
        """Test a formula without usable conditions."""
        result = validator.validate(">10", VARIABLES)
        assert result.is_valid is False
        assert result.error == "No valid conditions found in formula"

    def test_partially_malformed(self, validator):
        """Test a malformed clause next to a valid one, in workspace scope."""
        result = validator.validate("A > 1 OR <", VARIABLES, FormulaScope.WORKSPACE)
        assert result.is_valid is False

    def test_short_name_matches_longer_table_name(self, validator):
        """Test "pH" finds the table variable "pH Değeri"."""
        result = validator.validate("pH > 7", ["pH Değeri", "İletkenlik"], table_id="t1")
        assert result.is_valid
        assert result.target_variable == "pH Değeri"

    def test_dangling_logical_operator(self, validator):
        """Test a trailing AND is a malformed clause, not a missing variable."""
        result = validator.validate("A > 10 AND", VARIABLES, table_id="t1")
        assert result.is_valid is False
        assert result.error == "Formula contains a condition with a missing side or operator"
        assert result.missing_variables is None

    def test_missing_variable(self, validator):
        """Test a reference to a variable the table does not have."""
        result = validator.validate("A > C", ["A", "B"])
        assert result.is_valid is False
        assert result.missing_variables == ["C"]

    def test_ambiguous(self, validator):
        """Test both sides with multiple variables."""
        result = validator.validate("(A + B) > (C + D)", VARIABLES)
        assert result.is_valid is False
        assert "both sides contain multiple variables" in result.error.lower()
        assert result.left_variables == ["A", "B"]
        assert result.right_variables == ["C", "D"]

    def test_arithmetic_on_variable_side(self, validator):
        """Test the single-variable side must be bare."""
        result = validator.validate("A + 1 > 5", VARIABLES)
        assert result.is_valid is False
        assert "Arithmetic" in result.error

    def test_table_scope_single_condition(self, validator):
        """Test table scope rejects AND/OR chains."""
        result = validator.validate("A > 1 AND B > 1", VARIABLES)
        assert result.is_valid is False

    def test_dry_run_division_by_zero(self, validator):
        """Test evaluation errors surface before activation."""
        result = validator.validate("C > A / (B - D)", VARIABLES, table_id="t1")
        assert result.is_valid is False
        assert "Division by zero" in result.error

    def test_dry_run_bad_parentheses(self, validator):
        """Test unbalanced parentheses are caught."""
        result = validator.validate("C > (A + B", VARIABLES, table_id="t1")
        assert result.is_valid is False

    def test_workspace_chain_is_valid(self, validator):
        """Test workspace formulas may chain conditions."""
        result = validator.validate("A > 1 AND B > 1", VARIABLES, "workspace")
        assert result.is_valid
        assert result.target_variable is None
        assert result.warnings is None

    def test_workspace_condition_heuristic(self, validator):
        """Test a warning above the condition limit."""
        result = validator.validate(
            "A > 1 AND B > 1 AND C > 1 AND D > 1", VARIABLES, FormulaScope.WORKSPACE
        )
        assert result.is_valid
        assert any("4 conditions" in w for w in result.warnings)

    def test_workspace_variable_heuristic(self, validator):
        """Test a warning above the variable limit."""
        result = validator.validate(
            "(A + B + C) > (D + pH + Alkalinite)", VARIABLES, FormulaScope.WORKSPACE
        )
        assert result.is_valid
        assert any("6 variables" in w for w in result.warnings)

    def test_serializes_camel_case(self, validator):
        """Test API output uses camelCase keys."""
        data = validator.validate("A > C", ["A", "B"]).model_dump(by_alias=True, exclude_none=True)
        assert data == {
            "isValid": False,
            "error": "Variable not found: C. Available variables: A, B",
            "missingVariables": ["C"],
        }

    def test_convenience_function(self):
        """Test validate_formula()."""
        assert validate_formula("A > 1", ["A"], table_id="t").is_valid
