"""daogov error handling.

This module exposes the exception hierarchy shared by the governance engine,
the storage layer and the CLI.
"""

from .exceptions import (
    AlreadyExecutedError,
    AlreadyInitializedError,
    ConfigurationError,
    DaoGovError,
    DelegationCycleError,
    DelegationTooDeepError,
    ErrorCategory,
    ErrorContext,
    ErrorKind,
    ErrorSeverity,
    GovernanceError,
    InsufficientTreasuryBalanceError,
    InsufficientVotingPowerError,
    InvalidProposalError,
    InvalidProposalStateError,
    InvalidQuorumThresholdError,
    InvalidSupportValueError,
    InvalidTimelockDelayError,
    InvalidVetoConfigurationError,
    InvalidVotingPeriodError,
    NotAuthorizedError,
    NotInitializedError,
    ProposalNotFoundError,
    ProposalNotSucceededError,
    ProposalVetoedError,
    SelfDelegationError,
    StorageError,
    TimelockNotExpiredError,
    ValidationError,
    VotingEndedError,
    VotingNotEndedError,
    VotingNotStartedError,
    create_validation_error,
)

__all__ = [
    # Base
    "DaoGovError",
    "ErrorCategory",
    "ErrorContext",
    "ErrorKind",
    "ErrorSeverity",
    "ValidationError",
    "StorageError",
    "ConfigurationError",
    "create_validation_error",
    # Governance
    "GovernanceError",
    "NotInitializedError",
    "AlreadyInitializedError",
    "NotAuthorizedError",
    "InvalidProposalStateError",
    "ProposalNotFoundError",
    "VotingNotStartedError",
    "VotingEndedError",
    "VotingNotEndedError",
    "ProposalNotSucceededError",
    "TimelockNotExpiredError",
    "AlreadyExecutedError",
    "ProposalVetoedError",
    "InsufficientVotingPowerError",
    "InvalidVotingPeriodError",
    "InvalidTimelockDelayError",
    "InvalidSupportValueError",
    "InsufficientTreasuryBalanceError",
    "InvalidProposalError",
    "InvalidQuorumThresholdError",
    "InvalidVetoConfigurationError",
    "SelfDelegationError",
    "DelegationCycleError",
    "DelegationTooDeepError",
]
