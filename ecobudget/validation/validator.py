"""
Two-Stage Input Validation

DESIGN DECISION: Everything the presentation layer hands to the engine is
checked in two distinct stages before any aggregate moves:

STAGE 1 - SCHEMA VALIDATION:
- Type checking and required fields (pydantic)
- Positive, finite amounts, targets and limits
- A failure here rejects the mutation

STAGE 2 - SEMANTIC VALIDATION:
- Suspiciously large amounts
- Transactions dated in the future
- Savings transfers into a goal that does not exist
- These only produce warnings; the mutation still applies

IMPORTANT: Validation NEVER silently fixes input.
NaN and non-positive numbers are refused, not clamped.
"""

from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Optional, TypeVar

from pydantic import BaseModel, ValidationError

from ecobudget.config import AppSettings, get_settings
from ecobudget.models.ledger import (
    CapsuleInput,
    RecurringTransactionInput,
    SavingsGoal,
    TransactionInput,
    TransactionType,
)
from ecobudget.models.validation import ValidationIssue, ValidationResult


ModelT = TypeVar("ModelT", bound=BaseModel)


def _issues_from_error(error: ValidationError) -> list[ValidationIssue]:
    issues = []
    for err in error.errors():
        issues.append(ValidationIssue(
            field=".".join(str(part) for part in err["loc"]) or "__root__",
            issue_type=err["type"],
            message=err["msg"],
            severity="error",
        ))
    return issues


class InputValidator:
    """
    Validates mutation input through a two-stage pipeline.

    Stage 1: Schema validation (parse into the input model)
    Stage 2: Semantic validation (warnings only)
    """

    def __init__(
        self,
        settings: Optional[AppSettings] = None,
        today: Callable[[], date] = date.today,
    ):
        self._settings = settings or get_settings().app
        self._today = today

    def _parse(
        self,
        model: type[ModelT],
        data: Any,
        entity_type: str,
    ) -> tuple[Optional[ModelT], ValidationResult]:
        """Stage 1. Accepts a model instance or a plain mapping."""
        if isinstance(data, BaseModel):
            data = data.model_dump()
        try:
            parsed = model.model_validate(data)
        except ValidationError as e:
            return None, ValidationResult(
                entity_type=entity_type,
                schema_valid=False,
                semantic_valid=False,
                issues=_issues_from_error(e),
            )
        return parsed, ValidationResult(entity_type=entity_type, schema_valid=True)

    def _check_amount(self, amount: Decimal, field: str) -> list[ValidationIssue]:
        issues = []
        if amount > Decimal(str(self._settings.max_transaction_amount)):
            issues.append(ValidationIssue(
                field=field,
                issue_type="suspicious_value",
                message=f"Amount {amount} is unusually large",
                severity="warning",
                suggested_fix="Check for an extra digit",
            ))
        return issues

    @staticmethod
    def _finish(result: ValidationResult, issues: list[ValidationIssue]) -> ValidationResult:
        warnings = [i.message for i in issues if i.severity == "warning"]
        return result.model_copy(update={
            "issues": [*result.issues, *issues],
            "warnings": [*result.warnings, *warnings],
            "semantic_valid": not any(i.severity == "error" for i in issues),
        })

    def validate_transaction(
        self,
        data: Any,
        goals: Optional[list[SavingsGoal]] = None,
    ) -> tuple[Optional[TransactionInput], ValidationResult]:
        """
        Run full two-stage validation for a transaction.

        Args:
            data: TransactionInput or a mapping of its fields
            goals: Current savings goals, to flag savings into unknown goals

        Returns:
            (parsed input or None, ValidationResult)
        """
        parsed, result = self._parse(TransactionInput, data, "transaction")
        if parsed is None:
            return None, result

        issues = self._check_amount(parsed.amount, "amount")

        if parsed.date > self._today():
            issues.append(ValidationIssue(
                field="date",
                issue_type="future_date",
                message=f"Transaction is dated in the future ({parsed.date.isoformat()})",
                severity="warning",
            ))

        if parsed.type == TransactionType.SAVINGS and goals is not None:
            if not any(g.name == parsed.category for g in goals):
                issues.append(ValidationIssue(
                    field="category",
                    issue_type="unknown_goal",
                    message=f"No savings goal named '{parsed.category}'; only total savings will move",
                    severity="warning",
                ))

        return parsed, self._finish(result, issues)

    def validate_capsule(self, data: Any) -> tuple[Optional[CapsuleInput], ValidationResult]:
        parsed, result = self._parse(CapsuleInput, data, "capsule")
        if parsed is None:
            return None, result
        return parsed, self._finish(result, self._check_amount(parsed.total, "total"))

    def validate_goal(self, data: Any) -> tuple[Optional[SavingsGoal], ValidationResult]:
        parsed, result = self._parse(SavingsGoal, data, "goal")
        if parsed is None:
            return None, result
        return parsed, self._finish(result, self._check_amount(parsed.target, "target"))

    def validate_recurring(
        self,
        data: Any,
    ) -> tuple[Optional[RecurringTransactionInput], ValidationResult]:
        parsed, result = self._parse(RecurringTransactionInput, data, "recurring_rule")
        if parsed is None:
            return None, result
        return parsed, self._finish(result, self._check_amount(parsed.amount, "amount"))

    def validate_amount(self, value: Any, field: str = "amount") -> tuple[Optional[Decimal], ValidationResult]:
        """Stage 1 for a bare amount (e.g. funding a goal)."""
        result = ValidationResult(entity_type=field, schema_valid=True)
        try:
            amount = Decimal(str(value))
        except (InvalidOperation, ValueError):
            amount = None

        if amount is None or not amount.is_finite() or amount <= 0:
            return None, result.model_copy(update={
                "schema_valid": False,
                "semantic_valid": False,
                "issues": [ValidationIssue(
                    field=field,
                    issue_type="invalid_value",
                    message=f"{field} must be a positive number, got {value!r}",
                    severity="error",
                )],
            })
        return amount, self._finish(result, self._check_amount(amount, field))

    def get_user_friendly_summary(self, result: ValidationResult) -> str:
        """Short text to show next to the form that produced the input."""
        if result.is_valid and not result.warnings:
            return "All checks passed."

        lines = []
        if not result.is_valid:
            lines.append("This entry was not saved:")
            for issue in result.issues:
                if issue.severity == "error":
                    lines.append(f"   • {issue.field}: {issue.message}")
                    if issue.suggested_fix:
                        lines.append(f"     {issue.suggested_fix}")

        if result.warnings:
            lines.append("Please double-check:")
            for warning in result.warnings:
                lines.append(f"   • {warning}")

        return "\n".join(lines)
