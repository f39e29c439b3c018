"""Exception hierarchy for daogov.

This module defines the structured exception hierarchy used across the
governance engine, the storage layer and the CLI.
"""

import time
import traceback
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional


class ErrorSeverity(Enum):
    """Error severity levels."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ErrorCategory(Enum):
    """Error categories."""

    VALIDATION = "validation"
    STORAGE = "storage"
    CONFIGURATION = "configuration"
    GOVERNANCE = "governance"
    SYSTEM = "system"


class ErrorKind(Enum):
    """Governance failure kinds reported to callers."""

    NOT_INITIALIZED = "NotInitialized"
    ALREADY_INITIALIZED = "AlreadyInitialized"
    NOT_AUTHORIZED = "NotAuthorized"
    INVALID_PROPOSAL_STATE = "InvalidProposalState"
    PROPOSAL_NOT_FOUND = "ProposalNotFound"
    VOTING_NOT_STARTED = "VotingNotStarted"
    VOTING_ENDED = "VotingEnded"
    VOTING_NOT_ENDED = "VotingNotEnded"
    PROPOSAL_NOT_SUCCEEDED = "ProposalNotSucceeded"
    TIMELOCK_NOT_EXPIRED = "TimelockNotExpired"
    ALREADY_EXECUTED = "AlreadyExecuted"
    VETOED = "Vetoed"
    INSUFFICIENT_VOTING_POWER = "InsufficientVotingPower"
    INVALID_VOTING_PERIOD = "InvalidVotingPeriod"
    INVALID_TIMELOCK_DELAY = "InvalidTimelockDelay"
    INVALID_SUPPORT_VALUE = "InvalidSupportValue"
    INSUFFICIENT_TREASURY_BALANCE = "InsufficientTreasuryBalance"
    INVALID_PROPOSAL = "InvalidProposal"
    INVALID_QUORUM_THRESHOLD = "InvalidQuorumThreshold"
    INVALID_VETO_CONFIGURATION = "InvalidVetoConfiguration"
    SELF_DELEGATION = "SelfDelegation"
    DELEGATION_CYCLE = "DelegationCycle"
    DELEGATION_TOO_DEEP = "DelegationTooDeep"


@dataclass
class ErrorContext:
    """Context information for an error."""

    timestamp: float = field(default_factory=time.time)
    component: Optional[str] = None
    operation: Optional[str] = None
    dao_id: Optional[str] = None
    proposal_id: Optional[int] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Convert context to dictionary."""
        return {
            "timestamp": self.timestamp,
            "component": self.component,
            "operation": self.operation,
            "dao_id": self.dao_id,
            "proposal_id": self.proposal_id,
            "metadata": self.metadata,
        }


class DaoGovError(Exception):
    """Base exception for all daogov errors."""

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        severity: ErrorSeverity = ErrorSeverity.MEDIUM,
        category: ErrorCategory = ErrorCategory.SYSTEM,
        context: Optional[ErrorContext] = None,
        cause: Optional[Exception] = None,
        retryable: bool = False,
        metadata: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.severity = severity
        self.category = category
        self.context = context or ErrorContext()
        self.cause = cause
        self.retryable = retryable
        self.metadata = metadata or {}
        self.timestamp = time.time()
        self.traceback = traceback.format_exc()

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary."""
        return {
            "type": self.__class__.__name__,
            "message": self.message,
            "error_code": self.error_code,
            "severity": self.severity.value,
            "category": self.category.value,
            "context": self.context.to_dict(),
            "cause": str(self.cause) if self.cause else None,
            "retryable": self.retryable,
            "metadata": self.metadata,
            "timestamp": self.timestamp,
        }

    def __str__(self) -> str:
        """String representation of the error."""
        parts = [f"{self.__class__.__name__}: {self.message}"]

        if self.error_code:
            parts.append(f"Code: {self.error_code}")

        if self.severity != ErrorSeverity.MEDIUM:
            parts.append(f"Severity: {self.severity.value}")

        if self.retryable:
            parts.append("Retryable: Yes")

        return " | ".join(parts)


class ValidationError(DaoGovError):
    """Validation error."""

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        value: Optional[Any] = None,
        expected: Optional[Any] = None,
        **kwargs,
    ):
        kwargs.setdefault("category", ErrorCategory.VALIDATION)
        super().__init__(message, **kwargs)
        self.field = field
        self.value = value
        self.expected = expected

    def to_dict(self) -> Dict[str, Any]:
        """Convert validation error to dictionary."""
        data = super().to_dict()
        data.update(
            {
                "field": self.field,
                "value": str(self.value) if self.value is not None else None,
                "expected": str(self.expected) if self.expected is not None else None,
            }
        )
        return data


class StorageError(DaoGovError):
    """Storage error."""

    def __init__(
        self,
        message: str,
        storage_type: Optional[str] = None,
        operation: Optional[str] = None,
        **kwargs,
    ):
        super().__init__(
            message,
            category=ErrorCategory.STORAGE,
            severity=ErrorSeverity.HIGH,
            **kwargs,
        )
        self.storage_type = storage_type
        self.operation = operation

    def to_dict(self) -> Dict[str, Any]:
        """Convert storage error to dictionary."""
        data = super().to_dict()
        data.update({"storage_type": self.storage_type, "operation": self.operation})
        return data


class ConfigurationError(DaoGovError):
    """Configuration error."""

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        config_value: Optional[Any] = None,
        **kwargs,
    ):
        super().__init__(message, category=ErrorCategory.CONFIGURATION, **kwargs)
        self.config_key = config_key
        self.config_value = config_value

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration error to dictionary."""
        data = super().to_dict()
        data.update(
            {
                "config_key": self.config_key,
                "config_value": str(self.config_value)
                if self.config_value is not None
                else None,
            }
        )
        return data


class GovernanceError(DaoGovError):
    """A governance operation was rejected.

    Subclasses fix ``kind``; the operation that raised it has had no
    observable effect.
    """

    kind: ErrorKind = ErrorKind.INVALID_PROPOSAL

    def __init__(self, message: str, **kwargs):
        kwargs.setdefault("error_code", self.kind.value)
        kwargs.setdefault("category", ErrorCategory.GOVERNANCE)
        super().__init__(message, retryable=False, **kwargs)

    def to_dict(self) -> Dict[str, Any]:
        """Convert governance error to dictionary."""
        data = super().to_dict()
        data["kind"] = self.kind.value
        return data


class NotInitializedError(GovernanceError):
    kind = ErrorKind.NOT_INITIALIZED


class AlreadyInitializedError(GovernanceError):
    kind = ErrorKind.ALREADY_INITIALIZED


class NotAuthorizedError(GovernanceError):
    kind = ErrorKind.NOT_AUTHORIZED


class InvalidProposalStateError(GovernanceError):
    kind = ErrorKind.INVALID_PROPOSAL_STATE


class ProposalNotFoundError(GovernanceError):
    kind = ErrorKind.PROPOSAL_NOT_FOUND


class VotingNotStartedError(GovernanceError):
    kind = ErrorKind.VOTING_NOT_STARTED


class VotingEndedError(GovernanceError):
    kind = ErrorKind.VOTING_ENDED


class VotingNotEndedError(GovernanceError):
    kind = ErrorKind.VOTING_NOT_ENDED


class ProposalNotSucceededError(GovernanceError):
    kind = ErrorKind.PROPOSAL_NOT_SUCCEEDED


class TimelockNotExpiredError(GovernanceError):
    kind = ErrorKind.TIMELOCK_NOT_EXPIRED


class AlreadyExecutedError(GovernanceError):
    kind = ErrorKind.ALREADY_EXECUTED


class ProposalVetoedError(GovernanceError):
    kind = ErrorKind.VETOED


class InsufficientVotingPowerError(GovernanceError):
    kind = ErrorKind.INSUFFICIENT_VOTING_POWER


class InvalidVotingPeriodError(GovernanceError):
    kind = ErrorKind.INVALID_VOTING_PERIOD


class InvalidTimelockDelayError(GovernanceError):
    kind = ErrorKind.INVALID_TIMELOCK_DELAY


class InsufficientTreasuryBalanceError(GovernanceError):
    kind = ErrorKind.INSUFFICIENT_TREASURY_BALANCE


class InvalidProposalError(GovernanceError):
    kind = ErrorKind.INVALID_PROPOSAL


class InvalidSupportValueError(InvalidProposalError):
    """A vote support value outside AGAINST, FOR and ABSTAIN."""

    kind = ErrorKind.INVALID_SUPPORT_VALUE


class InvalidQuorumThresholdError(GovernanceError):
    kind = ErrorKind.INVALID_QUORUM_THRESHOLD


class InvalidVetoConfigurationError(GovernanceError):
    kind = ErrorKind.INVALID_VETO_CONFIGURATION


class SelfDelegationError(GovernanceError):
    kind = ErrorKind.SELF_DELEGATION


class DelegationCycleError(GovernanceError):
    kind = ErrorKind.DELEGATION_CYCLE


class DelegationTooDeepError(GovernanceError):
    kind = ErrorKind.DELEGATION_TOO_DEEP


def create_validation_error(
    field: str, value: Any, expected: Any, message: Optional[str] = None
) -> ValidationError:
    """Create a validation error."""
    if message is None:
        message = f"Invalid value for field '{field}': expected {expected}, got {value}"

    return ValidationError(message=message, field=field, value=value, expected=expected)
