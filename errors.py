"""Exception hierarchy raised at the store and service boundary.

Callers can catch ``LedgerError`` for any expected failure, or one of the
subclasses to tell validation problems apart from missing records and
referential-integrity violations.
"""


class LedgerError(Exception):
    """Base exception for all expected ledger failures."""


class ValidationError(LedgerError):
    """Raised when input is rejected before any persistence call.

    Examples: empty description, non-numeric amount, missing category on a
    rule, a regex pattern that does not compile.
    """


class NotFoundError(LedgerError):
    """Raised when an update or delete targets an unknown id."""

    def __init__(self, entity: str, entity_id: str):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} with id {entity_id} not found")


class ReferentialIntegrityError(LedgerError):
    """Raised when a write would leave a dangling reference.

    Examples: deleting a category still used by transactions or rules,
    creating a rule for a category that does not exist.
    """
