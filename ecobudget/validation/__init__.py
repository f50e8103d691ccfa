"""Input validation package."""

from ecobudget.validation.validator import InputValidator

__all__ = ["InputValidator"]
