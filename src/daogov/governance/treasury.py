"""
Treasury vault for governance.

A DAO holds a single native-asset balance. Funds enter through deposits and
leave only through the actions of an executed proposal; every payout is
credited to the target's row in the payouts table.
"""

import logging

logger = logging.getLogger(__name__)
from typing import Dict, List, Sequence

from ..errors.exceptions import InsufficientTreasuryBalanceError, ValidationError
from ..storage.keyvalue import StorageTransaction
from .core import DAO, Action
from .tables import PAYOUTS_NAMESPACE, address_key, dao_prefix, strip_prefix


class TreasuryVault:
    """Treasury of one DAO, viewed through a transaction."""

    def __init__(self, txn: StorageTransaction, dao: DAO):
        self.txn = txn
        self.dao = dao

    @property
    def balance(self) -> int:
        return self.dao.treasury_balance

    def deposit(self, amount: int) -> int:
        """Add ``amount`` to the balance and return the new balance."""
        if isinstance(amount, bool) or not isinstance(amount, int):
            raise ValidationError("Deposit amount must be an integer", field="amount", value=amount)

        if amount < 0:
            raise ValidationError("Deposit amount cannot be negative", field="amount", value=amount)

        self.dao.treasury_balance += amount
        return self.dao.treasury_balance

    def plan_disbursement(self, actions: Sequence[Action]) -> List[Action]:
        """
        Check that every transfer in ``actions`` can be paid, in order.

        Returns:
            The actions that move value, in execution order
        """
        remaining = self.balance
        transfers = []
        for index, action in enumerate(actions):
            if action.value <= 0:
                continue
            if remaining < action.value:
                raise InsufficientTreasuryBalanceError(
                    f"Action {index} needs {action.value} but the treasury "
                    f"would hold only {remaining}"
                )
            remaining -= action.value
            transfers.append(action)
        return transfers

    def disburse(self, target: str, value: int) -> int:
        """Debit ``value`` and credit ``target``; returns the new balance."""
        if value < 0:
            raise ValidationError("Disbursement cannot be negative", field="value", value=value)

        if self.balance < value:
            raise InsufficientTreasuryBalanceError(
                f"Treasury holds {self.balance}, cannot pay {value} to {target}"
            )

        self.dao.treasury_balance -= value
        key = address_key(self.dao.dao_id, target)
        credited = self.txn.get(PAYOUTS_NAMESPACE, key) or 0
        self.txn.put(PAYOUTS_NAMESPACE, key, credited + value)
        return self.dao.treasury_balance

    def get_payout(self, target: str) -> int:
        """Total paid out to ``target`` so far."""
        return self.txn.get(PAYOUTS_NAMESPACE, address_key(self.dao.dao_id, target)) or 0

    def payouts(self) -> Dict[str, int]:
        prefix = dao_prefix(self.dao.dao_id)
        return {
            strip_prefix(key, prefix): value
            for key, value in self.txn.scan(PAYOUTS_NAMESPACE, prefix)
        }
