"""
Vote delegation for governance.

Each address may delegate to at most one other address (last write wins).
Two resolvers turn the delegation table into effective voting power:

- ``InertDelegationResolver`` keeps the table but gives delegation no weight:
  effective power is the voter's own ledger entry. Chains are only walked for
  diagnostics.
- ``AggregatingDelegationResolver`` moves power along chains: an address that
  delegates contributes its power to the final delegate of its chain.
  Self-delegation, cycles and over-long chains are rejected.
"""

import logging

logger = logging.getLogger(__name__)
from abc import ABC, abstractmethod
from typing import Dict, List, Optional

from ..errors.exceptions import (
    DelegationCycleError,
    DelegationTooDeepError,
    SelfDelegationError,
    ValidationError,
)
from ..storage.keyvalue import StorageTransaction
from .core import DAO, GovernanceSettings
from .ledger import VotingPowerLedger
from .tables import DELEGATIONS_NAMESPACE, address_key, dao_prefix, strip_prefix


class CircularDelegationDetector:
    """Detects circular and over-long delegation chains."""

    def would_create_cycle(
        self,
        delegator_address: str,
        delegatee_address: str,
        delegations: Dict[str, str],
    ) -> bool:
        """Check if adding ``delegator -> delegatee`` would close a cycle."""
        if delegator_address == delegatee_address:
            return True

        visited = set()
        current = delegatee_address
        while current in delegations:
            if current in visited:
                # Existing cycle that does not pass through the delegator
                return False
            visited.add(current)
            current = delegations[current]
            if current == delegator_address:
                return True
        return False

    def chain_length_through(
        self,
        delegator_address: str,
        delegatee_address: str,
        delegations: Dict[str, str],
    ) -> int:
        """Length in hops of the longest chain using ``delegator -> delegatee``."""
        graph = dict(delegations)
        graph[delegator_address] = delegatee_address

        downstream = 1
        current = delegatee_address
        seen = {delegator_address}
        while current in graph and current not in seen:
            seen.add(current)
            current = graph[current]
            downstream += 1

        incoming: Dict[str, List[str]] = {}
        for source, target in graph.items():
            incoming.setdefault(target, []).append(source)

        upstream = 0
        frontier = [delegator_address]
        visited = {delegator_address}
        while frontier:
            next_frontier = []
            for address in frontier:
                for source in incoming.get(address, []):
                    if source not in visited:
                        visited.add(source)
                        next_frontier.append(source)
            if not next_frontier:
                break
            upstream += 1
            frontier = next_frontier

        return upstream + downstream


class DelegationResolver(ABC):
    """Delegation table of one DAO plus a rule for effective power."""

    def __init__(
        self,
        txn: StorageTransaction,
        dao: DAO,
        ledger: VotingPowerLedger,
        settings: Optional[GovernanceSettings] = None,
    ):
        self.txn = txn
        self.dao = dao
        self.ledger = ledger
        self.settings = settings or GovernanceSettings()

    @property
    def max_depth(self) -> int:
        return self.settings.max_delegation_depth

    def get_delegate(self, delegator: str) -> Optional[str]:
        """Current delegate of ``delegator``, if any."""
        return self.txn.get(DELEGATIONS_NAMESPACE, address_key(self.dao.dao_id, delegator))

    def all_delegations(self) -> Dict[str, str]:
        """Every live delegator -> delegate entry."""
        prefix = dao_prefix(self.dao.dao_id)
        return {
            strip_prefix(key, prefix): value
            for key, value in self.txn.scan(DELEGATIONS_NAMESPACE, prefix)
        }

    def set_delegate(self, delegator: str, delegate: str) -> Optional[str]:
        """Record ``delegator -> delegate`` and return the replaced delegate."""
        if not delegator or not delegate:
            raise ValidationError("Delegator and delegate addresses are required")

        self.validate_delegation(delegator, delegate)
        previous = self.get_delegate(delegator)
        self.txn.put(DELEGATIONS_NAMESPACE, address_key(self.dao.dao_id, delegator), delegate)
        return previous

    def clear_delegate(self, delegator: str) -> Optional[str]:
        """Remove ``delegator``'s delegation and return the removed delegate."""
        previous = self.get_delegate(delegator)
        if previous is not None:
            self.txn.delete(DELEGATIONS_NAMESPACE, address_key(self.dao.dao_id, delegator))
        return previous

    def resolve_chain(self, voter: str) -> List[str]:
        """Follow delegations from ``voter``, bounded by the max depth."""
        chain = [voter]
        current = voter
        for _ in range(self.max_depth):
            delegate = self.get_delegate(current)
            if delegate is None or delegate in chain:
                break
            chain.append(delegate)
            current = delegate
        return chain

    @abstractmethod
    def validate_delegation(self, delegator: str, delegate: str) -> None:
        """Raise if ``delegator -> delegate`` may not be recorded."""
        pass

    @abstractmethod
    def power_sources(self, voter: str) -> Dict[str, int]:
        """Ledger entries whose power ``voter`` casts, keyed by owning address."""
        pass

    def effective_power(self, voter: str) -> int:
        """Voting power ``voter`` can cast right now."""
        return sum(self.power_sources(voter).values())


class InertDelegationResolver(DelegationResolver):
    """Delegation is recorded but does not move voting power."""

    def validate_delegation(self, delegator: str, delegate: str) -> None:
        return None

    def power_sources(self, voter: str) -> Dict[str, int]:
        chain = self.resolve_chain(voter)
        if len(chain) > 1:
            logger.debug(f"Delegation chain for {voter} ignored: {' -> '.join(chain)}")
        power = self.ledger.get_power(voter)
        return {voter: power} if power > 0 else {}


class AggregatingDelegationResolver(DelegationResolver):
    """Power flows to the final delegate of each chain."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.detector = CircularDelegationDetector()

    def validate_delegation(self, delegator: str, delegate: str) -> None:
        if delegator == delegate:
            raise SelfDelegationError(f"{delegator} cannot delegate to itself")

        delegations = self.all_delegations()
        if self.detector.would_create_cycle(delegator, delegate, delegations):
            raise DelegationCycleError(f"Delegating {delegator} -> {delegate} would create a cycle")

        length = self.detector.chain_length_through(delegator, delegate, delegations)
        if length > self.max_depth:
            raise DelegationTooDeepError(
                f"Delegation chain of {length} hops exceeds the maximum of {self.max_depth}"
            )

    def final_delegate(self, address: str, delegations: Dict[str, str]) -> str:
        """Address at the end of ``address``'s chain."""
        current = address
        for _ in range(self.max_depth):
            if current not in delegations:
                return current
            current = delegations[current]
        return current

    def power_sources(self, voter: str) -> Dict[str, int]:
        delegations = self.all_delegations()
        return {
            address: power
            for address, power in self.ledger.entries().items()
            if power > 0 and self.final_delegate(address, delegations) == voter
        }

    def effective_powers(self) -> Dict[str, int]:
        """Effective power of every address that holds any."""
        delegations = self.all_delegations()
        powers: Dict[str, int] = {}
        for address, power in self.ledger.entries().items():
            target = self.final_delegate(address, delegations)
            powers[target] = powers.get(target, 0) + power
        return powers


DELEGATION_RESOLVERS = {
    "inert": InertDelegationResolver,
    "aggregating": AggregatingDelegationResolver,
}


def create_delegation_resolver(
    txn: StorageTransaction,
    dao: DAO,
    ledger: VotingPowerLedger,
    settings: GovernanceSettings,
) -> DelegationResolver:
    """Build the resolver selected by ``settings.delegation_mode``."""
    resolver_class = DELEGATION_RESOLVERS[settings.delegation_mode]
    return resolver_class(txn, dao, ledger, settings)
