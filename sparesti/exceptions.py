"""
Ledger error taxonomy.

Every error derives from ValueError so callers that already treat bad input
as a ValueError keep working.
"""


class LedgerError(ValueError):
    """Base class for all ledger failures"""


class ValidationError(LedgerError):
    """Input was missing or malformed"""


class NotFoundError(LedgerError):
    """A referenced account or transaction does not exist"""


class ConflictError(LedgerError):
    """The operation would violate a uniqueness constraint"""
