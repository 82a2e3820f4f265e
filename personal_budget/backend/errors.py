class BudgetError(Exception):
    """Base class for budget store errors."""


class ValidationRejected(BudgetError, ValueError):
    """Raised when a mutation is refused because its input is invalid.

    No state has changed when this is raised.
    """


class StorageUnavailable(BudgetError):
    """Raised by a storage gateway when the backing store cannot be reached."""


class StoreNotReady(BudgetError, RuntimeError):
    """Raised when the store is used before initialize() has completed."""


class MonthNotFound(BudgetError, KeyError):
    """Raised when reading a month that has no record in the document."""

    def __str__(self):
        return self.args[0] if self.args else 'Month not found'
