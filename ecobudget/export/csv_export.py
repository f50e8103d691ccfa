"""
CSV export of the transaction history.

Layout is fixed: one header row, then one row per transaction in ledger
order (most recent first). Category is always quoted; the note is quoted
when present and left empty otherwise. Lines are joined with a bare "\\n".
"""

from datetime import date
from decimal import ROUND_HALF_UP, Decimal, localcontext
from pathlib import Path
from typing import Iterable, Optional, Union

import structlog

from ecobudget.models.ledger import Transaction


logger = structlog.get_logger("ecobudget.export")


CSV_HEADERS = ("Date", "Type", "Category", "Amount", "Currency", "Note")
CENTS = Decimal("0.01")


def _quote(value: str) -> str:
    return '"' + value.replace('"', '""') + '"'


def _format_amount(amount: Decimal) -> str:
    # precision must cover the integer digits and the cents
    with localcontext() as ctx:
        ctx.prec = max(ctx.prec, amount.adjusted() + 4)
        return str(amount.quantize(CENTS, rounding=ROUND_HALF_UP))


def _format_row(tx: Transaction, currency: str) -> str:
    return ",".join([
        tx.date.isoformat(),
        tx.type.value,
        _quote(tx.category),
        _format_amount(tx.amount),
        currency,
        _quote(tx.note) if tx.note else "",
    ])


def transactions_to_csv(transactions: Iterable[Transaction], currency: str) -> str:
    """Render transactions as CSV text (no trailing newline)."""
    currency = getattr(currency, "value", currency)
    rows = [",".join(CSV_HEADERS)]
    rows.extend(_format_row(tx, currency) for tx in transactions)
    return "\n".join(rows)


def export_filename(today: Optional[date] = None) -> str:
    """ecobudget_export_YYYY-MM-DD.csv"""
    return f"ecobudget_export_{(today or date.today()).isoformat()}.csv"


def write_csv(
    path: Union[str, Path],
    transactions: Iterable[Transaction],
    currency: str,
) -> Path:
    """
    Write the export to `path`.

    If `path` is an existing directory, the dated default filename is used
    inside it. Returns the file actually written.
    """
    target = Path(path)
    if target.is_dir():
        target = target / export_filename()

    content = transactions_to_csv(transactions, currency)
    target.write_text(content, encoding="utf-8")

    logger.info("csv_exported", path=str(target), rows=content.count("\n"))
    return target
