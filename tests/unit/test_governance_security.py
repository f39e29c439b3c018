"""
Unit tests for governor capabilities.
"""

import pytest

from daogov.governance.security import CapabilityIssuer, GovernorCapability
from daogov.errors.exceptions import NotAuthorizedError


class TestGovernorCapability:
    """Test GovernorCapability."""

    def test_issue_is_unique(self):
        """Test that two capabilities for one DAO differ."""
        issuer = CapabilityIssuer()
        first = issuer.issue("0xdao")
        second = issuer.issue("0xdao")
        assert first.dao_id == second.dao_id == "0xdao"
        assert first.secret != second.secret
        assert first.digest() != second.digest()

    def test_secret_not_in_repr(self):
        """Test that the secret is not leaked by repr."""
        capability = CapabilityIssuer().issue("0xdao")
        assert capability.secret not in repr(capability)

    def test_encode_decode(self):
        """Test the compact CLI form."""
        capability = CapabilityIssuer().issue("0xdao")
        decoded = GovernorCapability.decode(capability.encode())
        assert decoded == capability

    def test_encode_decode_with_colon_in_dao_id(self):
        """Test that the secret is split off the right end."""
        capability = GovernorCapability(dao_id="ns:dao", secret="abc")
        assert GovernorCapability.decode(capability.encode()) == capability

    @pytest.mark.parametrize("token", ["", "nocolon", ":secret", "dao:"])
    def test_decode_malformed(self, token):
        """Test malformed tokens."""
        with pytest.raises(NotAuthorizedError):
            GovernorCapability.decode(token)

    def test_dict_round_trip(self):
        """Test dictionary form."""
        capability = GovernorCapability("0xdao", "s3cret")
        assert GovernorCapability.from_dict(capability.to_dict()) == capability


class TestCapabilityIssuer:
    """Test capability verification."""

    @pytest.fixture
    def issued(self):
        issuer = CapabilityIssuer()
        capability = issuer.issue("0xdao")
        return issuer, capability

    def test_verify_accepts_genuine(self, issued):
        """Test the genuine capability."""
        issuer, capability = issued
        issuer.verify("0xdao", capability.digest(), capability)

    def test_verify_rejects_missing(self, issued):
        """Test that a missing capability is rejected."""
        issuer, capability = issued
        with pytest.raises(NotAuthorizedError):
            issuer.verify("0xdao", capability.digest(), None)

    def test_verify_rejects_address_as_caller(self, issued):
        """Test that the DAO's own address is not a capability."""
        issuer, capability = issued
        with pytest.raises(NotAuthorizedError):
            issuer.verify("0xdao", capability.digest(), "0xdao")

    def test_verify_rejects_forged_secret(self, issued):
        """Test a capability with a guessed secret."""
        issuer, capability = issued
        forged = GovernorCapability("0xdao", "00" * 32)
        with pytest.raises(NotAuthorizedError):
            issuer.verify("0xdao", capability.digest(), forged)

    def test_verify_rejects_foreign_dao(self, issued):
        """Test a capability issued for another DAO."""
        issuer, capability = issued
        other = issuer.issue("0xother")
        with pytest.raises(NotAuthorizedError):
            issuer.verify("0xdao", capability.digest(), other)
