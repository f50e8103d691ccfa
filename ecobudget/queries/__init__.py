"""Read-only insight queries over the ledger."""

from ecobudget.queries.insights import InsightsQuery

__all__ = ["InsightsQuery"]
