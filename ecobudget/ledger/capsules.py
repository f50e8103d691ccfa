"""
Capsule Tracker

Capsules are category budgets. They are not linked to transactions by id:
every expense is matched against capsule names when it is applied or
reverted, so renaming a capsule only affects future matches.
"""

from decimal import Decimal
from typing import Any, Optional
from uuid import UUID

from pydantic import BaseModel

from ecobudget.models.ledger import (
    ZERO,
    Capsule,
    CapsuleInput,
    TransactionInput,
    TransactionType,
)


class CapsuleSummary(BaseModel):
    """Totals across all capsules."""

    total_budget: Decimal
    total_spent: Decimal
    remaining: Decimal
    over_budget: list[str]


def capsule_matches(capsule: Capsule, category: str) -> bool:
    """
    Case-insensitive equality, or the category containing the capsule name.

    "Fast Food" matches a "Food" capsule; "Food" does not match "Fast Food".
    """
    name = capsule.name.lower()
    cat = category.lower()
    return name == cat or name in cat


def apply_capsule_effect(
    capsules: list[Capsule],
    tx: TransactionInput,
    sign: int,
) -> list[Capsule]:
    """Debit (sign=1) or refund (sign=-1) every capsule an expense matches."""
    if tx.type != TransactionType.EXPENSE:
        return list(capsules)

    amount = tx.amount * sign
    return [
        cap.model_copy(update={"spent": max(ZERO, cap.spent + amount)})
        if capsule_matches(cap, tx.category) else cap
        for cap in capsules
    ]


def add_capsule(capsules: list[Capsule], data: CapsuleInput) -> tuple[list[Capsule], Capsule]:
    capsule = Capsule(**data.model_dump())
    return [*capsules, capsule], capsule


def edit_capsule(
    capsules: list[Capsule],
    capsule_id: UUID,
    changes: dict[str, Any],
) -> tuple[list[Capsule], Optional[Capsule]]:
    """
    Apply a partial update.

    The merged record is re-validated, so a non-positive total raises
    pydantic's ValidationError. The id never changes. Unknown ids return
    (capsules, None).
    """
    updated = None
    result = []
    for cap in capsules:
        if cap.id == capsule_id:
            merged = {**cap.model_dump(), **changes, "id": cap.id}
            updated = Capsule.model_validate(merged)
            result.append(updated)
        else:
            result.append(cap)
    if updated is None:
        return list(capsules), None
    return result, updated


def delete_capsule(
    capsules: list[Capsule],
    capsule_id: UUID,
) -> tuple[list[Capsule], Optional[Capsule]]:
    removed = next((c for c in capsules if c.id == capsule_id), None)
    if removed is None:
        return list(capsules), None
    return [c for c in capsules if c.id != capsule_id], removed


def summarize_capsules(capsules: list[Capsule]) -> CapsuleSummary:
    total_budget = sum((c.total for c in capsules), ZERO)
    total_spent = sum((c.spent for c in capsules), ZERO)
    return CapsuleSummary(
        total_budget=total_budget,
        total_spent=total_spent,
        remaining=total_budget - total_spent,
        over_budget=[c.name for c in capsules if c.is_over_budget],
    )
