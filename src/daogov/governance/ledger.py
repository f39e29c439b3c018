"""
Voting power ledger.

The ledger is the authoritative address -> power mapping of a DAO. The DAO
record caches the sum of all entries in ``total_voting_power``; every write
goes through ``set_power`` so the cache never drifts.
"""

import logging
from typing import Any, Dict

from ..errors.exceptions import ValidationError, create_validation_error
from ..storage.keyvalue import StorageTransaction
from .core import DAO
from .security import CapabilityIssuer
from .tables import VOTING_POWER_NAMESPACE, address_key, dao_prefix, strip_prefix

logger = logging.getLogger(__name__)


class VotingPowerLedger:
    """Voting power entries of one DAO, viewed through a transaction."""

    def __init__(self, txn: StorageTransaction, dao: DAO, issuer: CapabilityIssuer = None):
        self.txn = txn
        self.dao = dao
        self.issuer = issuer or CapabilityIssuer()

    def get_power(self, voter: str) -> int:
        """Return ``voter``'s power; absent entries are zero."""
        value = self.txn.get(VOTING_POWER_NAMESPACE, address_key(self.dao.dao_id, voter))
        return value if value is not None else 0

    def set_power(self, capability: Any, voter: str, power: int) -> int:
        """
        Overwrite ``voter``'s power.

        Args:
            capability: The DAO's governor capability
            voter: Address whose power changes
            power: New non-negative power; zero removes the entry

        Returns:
            The previous power of ``voter``
        """
        self.issuer.verify(self.dao.dao_id, self.dao.capability_digest, capability)

        if isinstance(power, bool) or not isinstance(power, int):
            raise create_validation_error("power", power, "a non-negative integer")

        if power < 0:
            raise ValidationError("Voting power cannot be negative", field="power", value=power)

        if not voter:
            raise ValidationError("Voter address is required", field="voter")

        old_power = self.get_power(voter)
        key = address_key(self.dao.dao_id, voter)
        if power == 0:
            self.txn.delete(VOTING_POWER_NAMESPACE, key)
        else:
            self.txn.put(VOTING_POWER_NAMESPACE, key, power)

        self.dao.total_voting_power += power - old_power
        return old_power

    def entries(self) -> Dict[str, int]:
        """All non-zero entries keyed by address."""
        prefix = dao_prefix(self.dao.dao_id)
        return {
            strip_prefix(key, prefix): value
            for key, value in self.txn.scan(VOTING_POWER_NAMESPACE, prefix)
        }

    def check_total(self) -> bool:
        """Check the cached total against the sum of entries."""
        return self.dao.total_voting_power == sum(self.entries().values())
