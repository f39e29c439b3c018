"""
Unit tests for the voting power ledger.
"""

import pytest

from daogov.governance.security import GovernorCapability
from daogov.errors.exceptions import NotAuthorizedError, NotInitializedError, ValidationError

DAO_ID = "0xdao"


class TestVotingPowerLedger:
    """Test set_voting_power and its queries."""

    def test_absent_entry_is_zero(self, engine, capability):
        """Test default power."""
        assert engine.get_voting_power_for_address(DAO_ID, "nobody") == 0

    def test_set_and_get(self, engine, capability):
        """Test round trip and total bookkeeping."""
        assert engine.set_voting_power(DAO_ID, capability, "alice", 300) == 0
        assert engine.get_voting_power_for_address(DAO_ID, "alice") == 300
        assert engine.get_total_voting_power(DAO_ID) == 300

    def test_overwrite_adjusts_total_by_difference(self, engine, capability):
        """Test that the total changes by new - old."""
        engine.set_voting_power(DAO_ID, capability, "alice", 300)
        engine.set_voting_power(DAO_ID, capability, "bob", 200)

        assert engine.set_voting_power(DAO_ID, capability, "alice", 100) == 300
        assert engine.get_total_voting_power(DAO_ID) == 300

    def test_zero_removes_entry(self, engine, capability):
        """Test that zero power leaves no entry."""
        engine.set_voting_power(DAO_ID, capability, "alice", 300)
        engine.set_voting_power(DAO_ID, capability, "alice", 0)

        assert engine.get_voting_power_for_address(DAO_ID, "alice") == 0
        assert engine.get_total_voting_power(DAO_ID) == 0
        assert engine.check_invariants(DAO_ID)["total_voting_power"] is True

    def test_negative_power_rejected(self, engine, capability):
        """Test negative power."""
        with pytest.raises(ValidationError):
            engine.set_voting_power(DAO_ID, capability, "alice", -5)

    def test_non_integer_power_rejected(self, engine, capability):
        """Test non-integer power."""
        with pytest.raises(ValidationError):
            engine.set_voting_power(DAO_ID, capability, "alice", 1.5)

    def test_dao_address_is_not_authorization(self, engine, capability):
        """Test that passing the DAO address as caller fails."""
        with pytest.raises(NotAuthorizedError):
            engine.set_voting_power(DAO_ID, DAO_ID, "alice", 10)
        assert engine.get_total_voting_power(DAO_ID) == 0

    def test_forged_capability_rejected(self, engine, capability):
        """Test a forged capability."""
        forged = GovernorCapability(DAO_ID, "f" * 64)
        with pytest.raises(NotAuthorizedError):
            engine.set_voting_power(DAO_ID, forged, "alice", 10)

    def test_foreign_capability_rejected(self, engine, capability):
        """Test a capability from another DAO."""
        other = engine.initialize_dao("0xother", "Other", 86400, 3600, 0, 0)
        with pytest.raises(NotAuthorizedError):
            engine.set_voting_power(DAO_ID, other, "alice", 10)

    def test_unknown_dao(self, engine, capability):
        """Test operations on a DAO that does not exist."""
        with pytest.raises(NotInitializedError):
            engine.set_voting_power("0xmissing", capability, "alice", 10)
        with pytest.raises(NotInitializedError):
            engine.get_voting_power_for_address("0xmissing", "alice")

    def test_event_emitted(self, engine, capability):
        """Test the voting power event payload."""
        engine.set_voting_power(DAO_ID, capability, "alice", 40)
        engine.set_voting_power(DAO_ID, capability, "alice", 25)

        event = engine.audit_trail.events[-1]
        assert event.event_type.value == "voting_power_changed"
        assert event.address == "alice"
        assert event.data == {"old_power": 40, "new_power": 25, "total_voting_power": 25}
