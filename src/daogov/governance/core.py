"""
Core governance types and data structures.

This module defines the fundamental types used throughout the governance
engine: DAO configuration and records, proposals and their state machine,
actions, votes, and the engine-wide settings.
"""

import logging

logger = logging.getLogger(__name__)
import os
from dataclasses import dataclass, field, replace
from enum import Enum, IntEnum
from typing import Any, Dict, FrozenSet, List, Optional

from ..errors.exceptions import (
    ConfigurationError,
    InvalidQuorumThresholdError,
    InvalidSupportValueError,
    InvalidTimelockDelayError,
    InvalidVetoConfigurationError,
    InvalidVotingPeriodError,
    ValidationError,
)

BASIS_POINTS = 10000


class ProposalState(Enum):
    """Lifecycle state of a proposal."""

    ACTIVE = "active"
    SUCCEEDED = "succeeded"
    QUEUED = "queued"
    EXECUTED = "executed"
    FAILED = "failed"
    VETOED = "vetoed"

    def can_transition_to(self, target: "ProposalState") -> bool:
        """Check the transition graph."""
        return target in ALLOWED_TRANSITIONS[self]

    def is_terminal(self) -> bool:
        """Executed, Failed and Vetoed admit no further transitions."""
        return not ALLOWED_TRANSITIONS[self]


ALLOWED_TRANSITIONS: Dict[ProposalState, FrozenSet[ProposalState]] = {
    ProposalState.ACTIVE: frozenset({ProposalState.SUCCEEDED, ProposalState.FAILED}),
    ProposalState.SUCCEEDED: frozenset({ProposalState.QUEUED}),
    ProposalState.QUEUED: frozenset({ProposalState.EXECUTED, ProposalState.VETOED}),
    ProposalState.EXECUTED: frozenset(),
    ProposalState.FAILED: frozenset(),
    ProposalState.VETOED: frozenset(),
}


class VoteSupport(IntEnum):
    """Vote choices. Integer codes match the on-chain encoding."""

    AGAINST = 0
    FOR = 1
    ABSTAIN = 2

    @classmethod
    def parse(cls, value: Any) -> "VoteSupport":
        """Parse a support value from a member, an int code or a name."""
        if isinstance(value, cls):
            return value
        if isinstance(value, bool):
            raise InvalidSupportValueError(f"Invalid support value: {value!r}")
        if isinstance(value, int):
            try:
                return cls(value)
            except ValueError:
                raise InvalidSupportValueError(f"Invalid support value: {value!r}")
        if isinstance(value, str):
            name = value.strip().upper()
            if name in cls.__members__:
                return cls[name]
            if name.isdecimal():
                return cls.parse(int(name))
        raise InvalidSupportValueError(f"Invalid support value: {value!r}")


class VotingStrategyKind(IntEnum):
    """Voting strategy selector stored in the DAO configuration."""

    SIMPLE_MAJORITY = 0
    QUADRATIC = 1
    WEIGHTED = 2

    @classmethod
    def parse(cls, value: Any) -> "VotingStrategyKind":
        """Parse a strategy from a member, an int code or a name."""
        if isinstance(value, cls):
            return value
        try:
            if isinstance(value, str) and not value.strip().isdigit():
                return cls[value.strip().upper()]
            return cls(int(value))
        except (KeyError, ValueError, TypeError, OverflowError):
            raise ValidationError(
                f"Unknown voting strategy: {value!r}",
                field="voting_strategy",
                value=value,
                expected=[kind.name for kind in cls],
            )


@dataclass
class GovernanceSettings:
    """Engine-wide governance settings."""

    min_voting_period: int = 86400
    min_timelock_delay: int = 3600
    max_delegation_depth: int = 10
    delegation_mode: str = "aggregating"
    corrected_strategies: bool = False
    weighted_multiplier_bps: int = BASIS_POINTS
    max_title_length: int = 256
    max_description_length: int = 10000
    max_actions_per_proposal: int = 64

    # Environment overrides
    environment_overrides: Dict[str, Any] = field(default_factory=dict)

    DELEGATION_MODES = ("inert", "aggregating")

    def __post_init__(self):
        """Validate settings after initialization."""
        self.validate()

    def validate(self) -> None:
        """Validate settings."""
        if self.min_voting_period <= 0:
            raise ConfigurationError(
                "Minimum voting period must be positive",
                config_key="min_voting_period",
                config_value=self.min_voting_period,
            )

        if self.min_timelock_delay < 0:
            raise ConfigurationError(
                "Minimum timelock delay cannot be negative",
                config_key="min_timelock_delay",
                config_value=self.min_timelock_delay,
            )

        if self.max_delegation_depth <= 0:
            raise ConfigurationError(
                "Max delegation depth must be positive",
                config_key="max_delegation_depth",
                config_value=self.max_delegation_depth,
            )

        if self.delegation_mode not in self.DELEGATION_MODES:
            raise ConfigurationError(
                f"Delegation mode must be one of {self.DELEGATION_MODES}",
                config_key="delegation_mode",
                config_value=self.delegation_mode,
            )

        if self.weighted_multiplier_bps < 0:
            raise ConfigurationError(
                "Weighted multiplier cannot be negative",
                config_key="weighted_multiplier_bps",
                config_value=self.weighted_multiplier_bps,
            )

        if self.max_actions_per_proposal <= 0:
            raise ConfigurationError(
                "Max actions per proposal must be positive",
                config_key="max_actions_per_proposal",
                config_value=self.max_actions_per_proposal,
            )

    @classmethod
    def from_env(cls, **overrides: Any) -> "GovernanceSettings":
        """Build settings from ``DAOGOV_*`` environment variables."""
        env_mappings = {
            "DAOGOV_MIN_VOTING_PERIOD": ("min_voting_period", int),
            "DAOGOV_MIN_TIMELOCK_DELAY": ("min_timelock_delay", int),
            "DAOGOV_MAX_DELEGATION_DEPTH": ("max_delegation_depth", int),
            "DAOGOV_DELEGATION_MODE": ("delegation_mode", str),
            "DAOGOV_CORRECTED_STRATEGIES": ("corrected_strategies", bool),
            "DAOGOV_WEIGHTED_MULTIPLIER_BPS": ("weighted_multiplier_bps", int),
        }

        values: Dict[str, Any] = {}
        applied: Dict[str, Any] = {}
        for env_var, (attr_name, attr_type) in env_mappings.items():
            env_value = os.getenv(env_var)
            if env_value is None:
                continue
            try:
                if attr_type is bool:
                    value = env_value.lower() in ("true", "1", "yes", "on")
                else:
                    value = attr_type(env_value)
            except (ValueError, TypeError) as e:
                raise ConfigurationError(
                    f"Invalid environment variable {env_var}={env_value}",
                    config_key=env_var,
                    config_value=env_value,
                    cause=e,
                )
            values[attr_name] = value
            applied[env_var] = value

        values.update(overrides)
        settings = cls(**values)
        settings.environment_overrides = applied
        return settings


@dataclass(frozen=True)
class DAOConfig:
    """Immutable configuration of a DAO."""

    voting_period: int
    timelock_delay: int
    quorum_threshold: int
    proposal_threshold: int
    voting_strategy: VotingStrategyKind = VotingStrategyKind.SIMPLE_MAJORITY
    veto_enabled: bool = False
    veto_authority: Optional[str] = None

    def validate(self, settings: GovernanceSettings) -> None:
        """Validate configuration against engine minimums."""
        for name in ("voting_period", "timelock_delay", "quorum_threshold", "proposal_threshold"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int):
                raise ValidationError(
                    f"{name} must be an integer", field=name, value=value, expected="int"
                )

        if self.voting_period < settings.min_voting_period:
            raise InvalidVotingPeriodError(
                f"Voting period {self.voting_period}s is below the minimum "
                f"of {settings.min_voting_period}s"
            )

        if self.timelock_delay < settings.min_timelock_delay:
            raise InvalidTimelockDelayError(
                f"Timelock delay {self.timelock_delay}s is below the minimum "
                f"of {settings.min_timelock_delay}s"
            )

        if not 0 <= self.quorum_threshold <= BASIS_POINTS:
            raise InvalidQuorumThresholdError(
                f"Quorum threshold must be between 0 and {BASIS_POINTS} basis points"
            )

        if self.proposal_threshold < 0:
            raise ValidationError(
                "Proposal threshold cannot be negative",
                field="proposal_threshold",
                value=self.proposal_threshold,
            )

        if self.veto_authority is not None and not isinstance(self.veto_authority, str):
            raise InvalidVetoConfigurationError("Veto authority must be an address")

        if self.veto_enabled and not self.veto_authority:
            raise InvalidVetoConfigurationError("Veto is enabled but no veto authority is set")

        if not self.veto_enabled and self.veto_authority is not None:
            raise InvalidVetoConfigurationError("Veto authority is set but veto is disabled")

    def copy(self, **changes: Any) -> "DAOConfig":
        """Return a copy with the given fields replaced."""
        return replace(self, **changes)

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary."""
        return {
            "voting_period": self.voting_period,
            "timelock_delay": self.timelock_delay,
            "quorum_threshold": self.quorum_threshold,
            "proposal_threshold": self.proposal_threshold,
            "voting_strategy": int(self.voting_strategy),
            "veto_enabled": self.veto_enabled,
            "veto_authority": self.veto_authority,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DAOConfig":
        """Create configuration from dictionary."""
        return cls(
            voting_period=data["voting_period"],
            timelock_delay=data["timelock_delay"],
            quorum_threshold=data["quorum_threshold"],
            proposal_threshold=data["proposal_threshold"],
            voting_strategy=VotingStrategyKind(data["voting_strategy"]),
            veto_enabled=data["veto_enabled"],
            veto_authority=data.get("veto_authority"),
        )


@dataclass
class DAO:
    """A DAO instance record."""

    dao_id: str
    name: str
    config: DAOConfig
    capability_digest: str
    treasury_balance: int = 0
    proposal_counter: int = 0
    total_voting_power: int = 0
    upgrade_authority: Optional[str] = None
    created_at: int = 0

    def next_proposal_id(self) -> int:
        """Advance the proposal counter and return the new id."""
        self.proposal_counter += 1
        return self.proposal_counter

    def to_dict(self) -> Dict[str, Any]:
        """Convert DAO to dictionary."""
        return {
            "dao_id": self.dao_id,
            "name": self.name,
            "config": self.config.to_dict(),
            "capability_digest": self.capability_digest,
            "treasury_balance": self.treasury_balance,
            "proposal_counter": self.proposal_counter,
            "total_voting_power": self.total_voting_power,
            "upgrade_authority": self.upgrade_authority,
            "created_at": self.created_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DAO":
        """Create DAO from dictionary."""
        return cls(
            dao_id=data["dao_id"],
            name=data["name"],
            config=DAOConfig.from_dict(data["config"]),
            capability_digest=data["capability_digest"],
            treasury_balance=data["treasury_balance"],
            proposal_counter=data["proposal_counter"],
            total_voting_power=data["total_voting_power"],
            upgrade_authority=data.get("upgrade_authority"),
            created_at=data.get("created_at", 0),
        )


@dataclass(frozen=True)
class Action:
    """A value transfer bundled in a proposal.

    ``function_name`` and ``arguments`` are carried for a future call
    dispatcher and are not interpreted during execution.
    """

    target: str
    value: int = 0
    function_name: str = ""
    arguments: bytes = b""

    def __post_init__(self):
        """Validate action after initialization."""
        if not self.target:
            raise ValidationError("Action must have a target", field="target")

        if isinstance(self.value, bool) or not isinstance(self.value, int):
            raise ValidationError("Action value must be an integer", field="value", value=self.value)

        if self.value < 0:
            raise ValidationError("Action value cannot be negative", field="value", value=self.value)

    def to_dict(self) -> Dict[str, Any]:
        """Convert action to dictionary."""
        return {
            "target": self.target,
            "value": self.value,
            "function_name": self.function_name,
            "arguments": self.arguments.hex(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Action":
        """Create action from dictionary."""
        return cls(
            target=data["target"],
            value=data.get("value", 0),
            function_name=data.get("function_name", ""),
            arguments=bytes.fromhex(data.get("arguments", "")),
        )


@dataclass
class Proposal:
    """A governance proposal."""

    proposal_id: int
    proposer: str
    title: str
    description: str
    start_time: int
    end_time: int
    state: ProposalState = ProposalState.ACTIVE
    execution_time: Optional[int] = None
    for_votes: int = 0
    against_votes: int = 0
    abstain_votes: int = 0
    actions: List[Action] = field(default_factory=list)
    executed: bool = False
    vetoed: bool = False

    def total_votes(self) -> int:
        """Sum of all three vote buckets."""
        return self.for_votes + self.against_votes + self.abstain_votes

    def total_value(self) -> int:
        """Sum of value carried by all actions."""
        return sum(action.value for action in self.actions)

    def is_terminal(self) -> bool:
        return self.state.is_terminal()

    def transition(self, target: ProposalState) -> None:
        """Move to ``target`` along the transition graph."""
        if not self.state.can_transition_to(target):
            raise ValueError(f"Illegal transition {self.state.value} -> {target.value}")
        self.state = target

    def to_dict(self) -> Dict[str, Any]:
        """Convert proposal to dictionary."""
        return {
            "proposal_id": self.proposal_id,
            "proposer": self.proposer,
            "title": self.title,
            "description": self.description,
            "start_time": self.start_time,
            "end_time": self.end_time,
            "state": self.state.value,
            "execution_time": self.execution_time,
            "for_votes": self.for_votes,
            "against_votes": self.against_votes,
            "abstain_votes": self.abstain_votes,
            "actions": [action.to_dict() for action in self.actions],
            "executed": self.executed,
            "vetoed": self.vetoed,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Proposal":
        """Create proposal from dictionary."""
        return cls(
            proposal_id=data["proposal_id"],
            proposer=data["proposer"],
            title=data["title"],
            description=data["description"],
            start_time=data["start_time"],
            end_time=data["end_time"],
            state=ProposalState(data["state"]),
            execution_time=data.get("execution_time"),
            for_votes=data["for_votes"],
            against_votes=data["against_votes"],
            abstain_votes=data["abstain_votes"],
            actions=[Action.from_dict(item) for item in data.get("actions", [])],
            executed=data.get("executed", False),
            vetoed=data.get("vetoed", False),
        )


@dataclass
class Vote:
    """A live vote record; at most one per (proposal, voter).

    ``sources`` maps each ledger address whose power the vote counts to the
    power it contributed before strategy adjustment.
    """

    voter: str
    proposal_id: int
    support: VoteSupport
    voting_power: int
    timestamp: int
    sources: Dict[str, int] = field(default_factory=dict)

    def __post_init__(self):
        """Validate vote after initialization."""
        if self.voting_power < 0:
            raise ValidationError("Voting power cannot be negative", field="voting_power")

    def to_dict(self) -> Dict[str, Any]:
        """Convert vote to dictionary."""
        return {
            "voter": self.voter,
            "proposal_id": self.proposal_id,
            "support": int(self.support),
            "voting_power": self.voting_power,
            "timestamp": self.timestamp,
            "sources": dict(self.sources),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Vote":
        """Create vote from dictionary."""
        return cls(
            voter=data["voter"],
            proposal_id=data["proposal_id"],
            support=VoteSupport(data["support"]),
            voting_power=data["voting_power"],
            timestamp=data["timestamp"],
            sources=dict(data.get("sources", {})),
        )
