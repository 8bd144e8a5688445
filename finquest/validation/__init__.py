"""Two-stage validation for transaction and goal forms."""

from finquest.validation.validator import LedgerValidator

__all__ = ["LedgerValidator"]
