"""Tests for the daogov error handling system."""

import pytest

from daogov.errors.exceptions import (
    AlreadyExecutedError,
    ConfigurationError,
    DaoGovError,
    DelegationCycleError,
    ErrorCategory,
    ErrorContext,
    ErrorKind,
    ErrorSeverity,
    GovernanceError,
    InsufficientTreasuryBalanceError,
    InvalidProposalError,
    InvalidSupportValueError,
    StorageError,
    ValidationError,
    create_validation_error,
)


class TestDaoGovError:
    """Test base error functionality."""

    def test_base_error_creation(self):
        """Test base error creation."""
        error = DaoGovError("Test error message")

        assert error.message == "Test error message"
        assert error.error_code is None
        assert error.severity == ErrorSeverity.MEDIUM
        assert error.category == ErrorCategory.SYSTEM
        assert error.retryable is False
        assert error.timestamp > 0
        assert error.context is not None

    def test_error_with_context(self):
        """Test error with context and metadata."""
        context = ErrorContext(component="governance", operation="cast_vote", dao_id="0xdao")

        error = DaoGovError(
            "Test error",
            error_code="TEST_ERROR",
            severity=ErrorSeverity.HIGH,
            context=context,
            metadata={"key": "value"},
        )

        assert error.context.dao_id == "0xdao"
        assert error.metadata["key"] == "value"
        assert error.to_dict()["context"]["operation"] == "cast_vote"

    def test_error_to_dict(self):
        """Test error to dictionary conversion."""
        error_dict = DaoGovError("Test error", error_code="TEST_ERROR").to_dict()

        assert error_dict["type"] == "DaoGovError"
        assert error_dict["message"] == "Test error"
        assert error_dict["error_code"] == "TEST_ERROR"
        assert error_dict["severity"] == "medium"
        assert error_dict["category"] == "system"
        assert "timestamp" in error_dict

    def test_error_string_representation(self):
        """Test error string representation."""
        error_str = str(DaoGovError("Test error", error_code="TEST_ERROR", retryable=True))

        assert "DaoGovError: Test error" in error_str
        assert "Code: TEST_ERROR" in error_str
        assert "Retryable: Yes" in error_str


class TestGovernanceError:
    """Test governance error kinds."""

    @pytest.mark.parametrize(
        "error_class,kind",
        [
            (AlreadyExecutedError, ErrorKind.ALREADY_EXECUTED),
            (InsufficientTreasuryBalanceError, ErrorKind.INSUFFICIENT_TREASURY_BALANCE),
            (DelegationCycleError, ErrorKind.DELEGATION_CYCLE),
        ],
    )
    def test_kind_and_code(self, error_class, kind):
        """Test that each error carries its kind as the error code."""
        error = error_class("rejected")

        assert isinstance(error, GovernanceError)
        assert error.kind == kind
        assert error.error_code == kind.value
        assert error.category == ErrorCategory.GOVERNANCE
        assert error.to_dict()["kind"] == kind.value

    def test_every_kind_has_an_error(self):
        """Test that every kind is raised by some error class."""
        kinds = set()
        pending = list(GovernanceError.__subclasses__())
        while pending:
            cls = pending.pop()
            kinds.add(cls.kind)
            pending.extend(cls.__subclasses__())
        assert kinds == set(ErrorKind)

    def test_support_error_is_invalid_proposal(self):
        """Test that a bad support value is also an invalid proposal call."""
        error = InvalidSupportValueError("bad support")
        assert isinstance(error, InvalidProposalError)
        assert error.kind == ErrorKind.INVALID_SUPPORT_VALUE


class TestTypedErrors:
    """Test validation, storage and configuration errors."""

    def test_validation_error(self):
        """Test validation error fields."""
        error = ValidationError("Bad amount", field="amount", value=-1, expected=">= 0")

        assert error.category == ErrorCategory.VALIDATION
        data = error.to_dict()
        assert data["field"] == "amount"
        assert data["value"] == "-1"
        assert data["expected"] == ">= 0"

    def test_storage_error(self):
        """Test storage error fields."""
        error = StorageError("Write failed", storage_type="sqlite", operation="put")

        assert error.severity == ErrorSeverity.HIGH
        assert error.to_dict()["storage_type"] == "sqlite"

    def test_configuration_error(self):
        """Test configuration error fields."""
        error = ConfigurationError("Bad", config_key="DAOGOV_DELEGATION_MODE", config_value="x")

        assert error.category == ErrorCategory.CONFIGURATION
        assert error.to_dict()["config_key"] == "DAOGOV_DELEGATION_MODE"

    def test_create_validation_error(self):
        """Test the convenience constructor."""
        error = create_validation_error("power", 1.5, "integer")

        assert isinstance(error, ValidationError)
        assert "expected integer" in error.message
