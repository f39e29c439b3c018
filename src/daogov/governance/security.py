"""
Authorization for privileged governance operations.

A DAO's governor capability is an unforgeable token minted once at DAO
creation. Only a digest of its secret is persisted, so a capability cannot be
reconstructed from stored state; privileged calls must present the token
itself.
"""

import hmac
import logging
import secrets
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from ..crypto.hashing import SHA256Hasher
from ..errors.exceptions import NotAuthorizedError

logger = logging.getLogger(__name__)

CAPABILITY_SECRET_BYTES = 32


@dataclass(frozen=True)
class GovernorCapability:
    """Token granting governor rights over one DAO."""

    dao_id: str
    secret: str = field(repr=False)

    def digest(self) -> str:
        """Hex digest bound to both the DAO id and the secret."""
        return SHA256Hasher.hash(f"{self.dao_id}:{self.secret}").to_hex()

    def to_dict(self) -> Dict[str, Any]:
        """Serialize the token; the result is as sensitive as the token."""
        return {"dao_id": self.dao_id, "secret": self.secret}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GovernorCapability":
        return cls(dao_id=data["dao_id"], secret=data["secret"])

    def encode(self) -> str:
        """Compact ``dao_id:secret`` form used by the CLI."""
        return f"{self.dao_id}:{self.secret}"

    @classmethod
    def decode(cls, token: str) -> "GovernorCapability":
        dao_id, sep, secret = token.rpartition(":")
        if not sep or not dao_id or not secret:
            raise NotAuthorizedError("Malformed governor capability")
        return cls(dao_id=dao_id, secret=secret)


class CapabilityIssuer:
    """Mints and verifies governor capabilities."""

    def issue(self, dao_id: str) -> GovernorCapability:
        """Mint a fresh capability for ``dao_id``."""
        capability = GovernorCapability(dao_id=dao_id, secret=secrets.token_hex(CAPABILITY_SECRET_BYTES))
        logger.debug(f"Issued governor capability for DAO {dao_id}")
        return capability

    def verify(self, dao_id: str, expected_digest: str, capability: Optional[Any]) -> None:
        """Raise ``NotAuthorizedError`` unless ``capability`` governs ``dao_id``."""
        if not isinstance(capability, GovernorCapability):
            raise NotAuthorizedError("A governor capability is required")

        if capability.dao_id != dao_id:
            raise NotAuthorizedError(f"Capability does not govern DAO {dao_id}")

        if not hmac.compare_digest(capability.digest(), expected_digest):
            raise NotAuthorizedError(f"Invalid governor capability for DAO {dao_id}")
