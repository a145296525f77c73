"""Formula validation before a formula is saved or activated."""

from collections.abc import Sequence

from labformula.core.config import Settings, settings as default_settings
from labformula.core.exceptions import FormulaError, VariableNotFoundError
from labformula.core.logging import get_logger
from labformula.formula.cache import ParseCache
from labformula.formula.evaluator import ExpressionEvaluator
from labformula.formula.highlighter import bind_aliases
from labformula.formula.parser import FormulaParser
from labformula.formula.targets import TargetResolver
from labformula.schemas.formula import FormulaScope, ValidationResult

logger = get_logger(__name__)


class FormulaValidator:
    """
    Checks a formula against the variables of a table.

    Never raises for bad user input: every problem is reported through the
    returned ValidationResult.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        cache: ParseCache | None = None,
        evaluator: ExpressionEvaluator | None = None,
    ):
        self.settings = settings or default_settings
        self.parser = FormulaParser(cache)
        self.evaluator = evaluator or ExpressionEvaluator(self.settings)
        self.resolver = TargetResolver(self.settings)

    def validate(
        self,
        text: str,
        available_variables: Sequence[str],
        scope: FormulaScope | str = FormulaScope.TABLE,
        table_id: str | None = None,
    ) -> ValidationResult:
        """
        Validate a formula.

        Args:
            text: Formula text
            available_variables: Variable names present in the target table
            scope: Formula scope
            table_id: Owning table of a table-scope formula

        Returns:
            ValidationResult
        """
        scope = FormulaScope(scope)

        is_valid, error = self.parser.validate(text or "")
        if not is_valid:
            return ValidationResult(is_valid=False, error=error)

        conditions = self.parser.parse(text)
        available = list(available_variables)

        try:
            resolution = self.resolver.resolve(conditions, available, scope, formula=text)
        except VariableNotFoundError as e:
            return ValidationResult(
                is_valid=False,
                error=e.message,
                missing_variables=e.variables,
            )
        except FormulaError as e:
            return ValidationResult(
                is_valid=False,
                error=e.message,
                left_variables=e.details.get("left_variables"),
                right_variables=e.details.get("right_variables"),
            )

        warnings: list[str] = []

        # Dry run with every variable bound to 1
        bindings = bind_aliases({name: 1.0 for name in available}, resolution.resolved)
        try:
            evaluation = self.evaluator.evaluate_conditions(conditions, bindings)
        except FormulaError as e:
            logger.debug("Dry run failed: %s", e.message, extra={"formula": text})
            return ValidationResult(
                is_valid=False,
                error=f"Formula cannot be evaluated: {e.message}",
                left_variables=resolution.left_variables,
                right_variables=resolution.right_variables,
            )
        warnings.extend(evaluation.warnings)

        if scope is FormulaScope.WORKSPACE:
            if len(conditions) > self.settings.max_workspace_conditions:
                warnings.append(
                    f"Formula has {len(conditions)} conditions; consider splitting it "
                    f"(more than {self.settings.max_workspace_conditions} is hard to read)"
                )
            variables = resolution.variables
            if len(variables) > self.settings.max_workspace_variables:
                warnings.append(
                    f"Formula references {len(variables)} variables; workspace formulas "
                    f"are easier to maintain with at most {self.settings.max_workspace_variables}"
                )
        elif not table_id:
            warnings.append("Table-scope formula is not linked to a table")

        if resolution.target_variable is not None:
            warnings.append(
                f"Cells of '{resolution.target_variable}' are highlighted when the formula holds"
            )

        return ValidationResult(
            is_valid=True,
            target_variable=resolution.target_variable,
            left_variables=resolution.left_variables,
            right_variables=resolution.right_variables,
            warnings=warnings or None,
        )


def validate_formula(
    text: str,
    available_variables: Sequence[str],
    scope: FormulaScope | str = FormulaScope.TABLE,
    table_id: str | None = None,
) -> ValidationResult:
    """Convenience function for FormulaValidator.validate()."""
    return FormulaValidator().validate(text, available_variables, scope, table_id)
