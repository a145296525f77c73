"""Condition formula engine for labformula.

This module evaluates comparison formulas over laboratory tables:
- Comparisons (>, <, >=, <=, ==, !=) between numbers, variables and arithmetic
- Arithmetic on either side (+, -, *, / and parentheses)
- AND/OR chains, folded strictly left to right
- Variable references by name or [Bracketed Name], matched fuzzily
- Per-column evaluation with merged cell highlights
- Built-in LOQ and parameter pair checks
"""

from labformula.formula.cache import ParseCache
from labformula.formula.checks import PairCheck, evaluate_loq, evaluate_pair, loq_highlights
from labformula.formula.evaluator import ExpressionEvaluator, FormulaEvaluation
from labformula.formula.highlighter import HighlightAggregator, evaluate_formulas_for_table
from labformula.formula.parser import Condition, FormulaParser, format_conditions, parse_formula
from labformula.formula.targets import TargetResolution, TargetResolver
from labformula.formula.validator import FormulaValidator, validate_formula
from labformula.formula.variables import ColumnBindings, TableVariables

__all__ = [
    "ColumnBindings",
    "Condition",
    "ExpressionEvaluator",
    "FormulaEvaluation",
    "FormulaParser",
    "FormulaValidator",
    "HighlightAggregator",
    "PairCheck",
    "ParseCache",
    "TableVariables",
    "TargetResolution",
    "TargetResolver",
    "evaluate_formulas_for_table",
    "evaluate_loq",
    "evaluate_pair",
    "format_conditions",
    "loq_highlights",
    "parse_formula",
    "validate_formula",
]
