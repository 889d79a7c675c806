"""
Ledger collaborator.

The ledger turns a recurring firing into a realized transaction. It lives
outside the engine; the execution flow only hands it the due item and the
date the item was due on.
"""

from abc import ABC, abstractmethod
from datetime import date

from recurring_engine.models.recurring import RecurringItem


class LedgerError(Exception):
    """The ledger refused or failed to record a firing."""
    pass


class LedgerInterface(ABC):
    """Receives "materialize this firing" calls."""

    @abstractmethod
    async def materialize(self, item: RecurringItem, firing_date: date) -> str:
        """
        Record one firing of a recurring item as a realized transaction.

        Args:
            item: The due recurring item
            firing_date: The date the item was scheduled for

        Returns:
            Opaque reference of the created transaction

        Raises:
            LedgerError: If the transaction could not be recorded
        """
        pass
