"""
DAO governance engine.

This package provides the governance core:
- Proposal lifecycle with quorum, strict majority, timelock and veto
- Vote tallying with pluggable voting strategies
- Vote delegation (inert or aggregating)
- Voting power ledger guarded by a governor capability
- Treasury escrow with all-or-nothing execution
- Hash-chained audit trail of governance events
"""

from .clock import GovernanceClock, ManualClock, SystemClock
from .core import (
    ALLOWED_TRANSITIONS,
    DAO,
    Action,
    DAOConfig,
    GovernanceSettings,
    Proposal,
    ProposalState,
    Vote,
    VoteSupport,
    VotingStrategyKind,
)
from .delegation import (
    AggregatingDelegationResolver,
    CircularDelegationDetector,
    DelegationResolver,
    InertDelegationResolver,
)
from .engine import GovernanceEngine
from .execution import ExecutionEngine, ExecutionResult, TimelockManager
from .ledger import VotingPowerLedger
from .lifecycle import ProposalLifecycle
from .observability import AuditTrail, EventType, GovernanceEvent, GovernanceEvents
from .security import CapabilityIssuer, GovernorCapability
from .strategies import (
    IdentityStrategy,
    IntegerSquareRootStrategy,
    StrategyRegistry,
    VotingStrategy,
    WeightedMultiplierStrategy,
)
from .tally import TallyResult, VoteTally
from .treasury import TreasuryVault

__all__ = [
    # Core
    "ALLOWED_TRANSITIONS",
    "DAO",
    "Action",
    "DAOConfig",
    "GovernanceSettings",
    "Proposal",
    "ProposalState",
    "Vote",
    "VoteSupport",
    "VotingStrategyKind",
    # Engine
    "GovernanceEngine",
    # Components
    "VotingPowerLedger",
    "DelegationResolver",
    "InertDelegationResolver",
    "AggregatingDelegationResolver",
    "CircularDelegationDetector",
    "VoteTally",
    "TallyResult",
    "ProposalLifecycle",
    "TreasuryVault",
    "ExecutionEngine",
    "ExecutionResult",
    "TimelockManager",
    # Strategies
    "VotingStrategy",
    "IdentityStrategy",
    "IntegerSquareRootStrategy",
    "WeightedMultiplierStrategy",
    "StrategyRegistry",
    # Time
    "GovernanceClock",
    "SystemClock",
    "ManualClock",
    # Authorization
    "GovernorCapability",
    "CapabilityIssuer",
    # Observability
    "EventType",
    "GovernanceEvent",
    "AuditTrail",
    "GovernanceEvents",
]
