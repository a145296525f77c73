"""
Custom exceptions for labformula.

Provides a hierarchy of exceptions raised by the formula engine. Each
carries a machine-readable code and structured details so callers can
turn them into API responses without parsing messages.
"""

from typing import Any


class LabFormulaException(Exception):
    """
    Base exception for all labformula errors.

    All custom exceptions should inherit from this class.
    """

    # Status code a surrounding HTTP layer should use
    status_code = 500

    def __init__(
        self,
        message: str,
        code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """
        Initialize exception.

        Args:
            message: Human-readable error message
            code: Machine-readable error code
            details: Additional error details
        """
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for API response."""
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "details": self.details,
            }
        }


# =============================================================================
# Formula Errors
# =============================================================================


class FormulaError(LabFormulaException):
    """Formula parsing, resolution or evaluation error."""

    status_code = 422

    def __init__(
        self,
        message: str,
        code: str = "FORMULA_ERROR",
        formula: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        details = dict(details or {})
        if formula is not None:
            details["formula"] = formula
        super().__init__(message=message, code=code, details=details)


class ParseError(FormulaError):
    """Malformed or empty condition."""

    def __init__(self, message: str, formula: str | None = None) -> None:
        super().__init__(message=message, code="PARSE_ERROR", formula=formula)


class VariableNotFoundError(FormulaError):
    """One or more identifiers could not be resolved, even fuzzily."""

    def __init__(
        self,
        variables: list[str] | str,
        formula: str | None = None,
        available: list[str] | None = None,
    ) -> None:
        if isinstance(variables, str):
            variables = [variables]
        self.variables = list(variables)

        message = f"Variable not found: {', '.join(self.variables)}"
        if available:
            preview = ", ".join(available[:5])
            if len(available) > 5:
                preview += "..."
            message += f". Available variables: {preview}"

        super().__init__(
            message=message,
            code="VARIABLE_NOT_FOUND",
            formula=formula,
            details={"missing_variables": self.variables},
        )


class EvaluationError(FormulaError):
    """Expression did not produce a finite number."""

    def __init__(
        self,
        message: str,
        expression: str | None = None,
        substituted: str | None = None,
    ) -> None:
        details: dict[str, Any] = {}
        if expression is not None:
            details["expression"] = expression
        if substituted is not None:
            details["substituted"] = substituted
        super().__init__(message=message, code="EVALUATION_ERROR", details=details)


class ScopeViolationError(FormulaError):
    """Formula breaks a rule of its scope (e.g. the unidirectional rule)."""

    def __init__(
        self,
        message: str,
        formula: str | None = None,
        left_variables: list[str] | None = None,
        right_variables: list[str] | None = None,
    ) -> None:
        super().__init__(
            message=message,
            code="SCOPE_VIOLATION",
            formula=formula,
            details={
                "left_variables": left_variables or [],
                "right_variables": right_variables or [],
            },
        )


class AmbiguousTargetError(FormulaError):
    """No single variable can be chosen as the highlight target."""

    def __init__(
        self,
        message: str,
        formula: str | None = None,
        left_variables: list[str] | None = None,
        right_variables: list[str] | None = None,
    ) -> None:
        super().__init__(
            message=message,
            code="AMBIGUOUS_TARGET",
            formula=formula,
            details={
                "left_variables": left_variables or [],
                "right_variables": right_variables or [],
            },
        )
