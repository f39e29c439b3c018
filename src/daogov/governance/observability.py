"""
Governance events and audit trail.

Every committed governance operation emits one event. Events are chained by
SHA-256 (each event hashes its predecessor's hash), so an indexer can check
that the log it replays was not altered or truncated in the middle.
Listeners run synchronously after commit; a failing listener is logged and
never affects the operation that emitted the event.
"""

import logging

logger = logging.getLogger(__name__)
import json
import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from ..crypto.hashing import SHA256Hasher


class EventType(Enum):
    """Types of governance events."""

    DAO_INITIALIZED = "dao_initialized"

    PROPOSAL_CREATED = "proposal_created"
    PROPOSAL_QUEUED = "proposal_queued"
    PROPOSAL_FAILED = "proposal_failed"
    PROPOSAL_EXECUTED = "proposal_executed"
    PROPOSAL_VETOED = "proposal_vetoed"

    VOTE_CAST = "vote_cast"

    DELEGATE_CHANGED = "delegate_changed"
    VOTING_POWER_CHANGED = "voting_power_changed"

    TREASURY_DEPOSIT = "treasury_deposit"


@dataclass
class GovernanceEvent:
    """A governance event for the audit trail."""

    event_type: EventType
    dao_id: str
    timestamp: int
    sequence: int = 0

    # Event data
    proposal_id: Optional[int] = None
    address: Optional[str] = None
    data: Dict[str, Any] = field(default_factory=dict)

    # Cryptographic integrity
    event_hash: Optional[str] = None
    previous_event_hash: Optional[str] = None

    def calculate_hash(self) -> str:
        """Calculate hash of this event."""
        event_data = {
            "event_type": self.event_type.value,
            "dao_id": self.dao_id,
            "timestamp": self.timestamp,
            "sequence": self.sequence,
            "proposal_id": self.proposal_id,
            "address": self.address,
            "data": self.data,
            "previous_event_hash": self.previous_event_hash,
        }
        event_json = json.dumps(event_data, sort_keys=True)
        return SHA256Hasher.hash(event_json).to_hex()

    def to_dict(self) -> Dict[str, Any]:
        """Convert event to dictionary."""
        return {
            "event_type": self.event_type.value,
            "dao_id": self.dao_id,
            "timestamp": self.timestamp,
            "sequence": self.sequence,
            "proposal_id": self.proposal_id,
            "address": self.address,
            "data": self.data,
            "event_hash": self.event_hash,
            "previous_event_hash": self.previous_event_hash,
        }


class AuditTrail:
    """Append-only, hash-chained record of governance events."""

    def __init__(self):
        """Initialize audit trail."""
        self.events: List[GovernanceEvent] = []
        self.proposal_events: Dict[tuple, List[GovernanceEvent]] = {}  # (dao_id, proposal_id) -> events

    def add_event(self, event: GovernanceEvent) -> GovernanceEvent:
        """Link ``event`` to the chain and append it."""
        event.sequence = len(self.events)
        event.previous_event_hash = self.events[-1].event_hash if self.events else None
        event.event_hash = event.calculate_hash()
        self.events.append(event)

        if event.proposal_id is not None:
            self.proposal_events.setdefault((event.dao_id, event.proposal_id), []).append(event)
        return event

    def get_proposal_events(self, dao_id: str, proposal_id: int) -> List[GovernanceEvent]:
        """Get all events for a proposal."""
        return list(self.proposal_events.get((dao_id, proposal_id), []))

    def get_events(
        self, event_type: Optional[EventType] = None, dao_id: Optional[str] = None
    ) -> List[GovernanceEvent]:
        return [
            event
            for event in self.events
            if (event_type is None or event.event_type == event_type)
            and (dao_id is None or event.dao_id == dao_id)
        ]

    def verify_integrity(self) -> bool:
        """Verify the integrity of the audit trail."""
        for i, event in enumerate(self.events):
            if event.event_hash != event.calculate_hash():
                return False

            if i > 0 and event.previous_event_hash != self.events[i - 1].event_hash:
                return False

        return True

    def get_audit_summary(self) -> Dict[str, Any]:
        """Get audit trail summary."""
        event_counts: Dict[str, int] = {}
        for event in self.events:
            event_type = event.event_type.value
            event_counts[event_type] = event_counts.get(event_type, 0) + 1

        return {
            "total_events": len(self.events),
            "event_counts": event_counts,
            "unique_proposals": len(self.proposal_events),
            "integrity_verified": self.verify_integrity(),
            "head": self.events[-1].event_hash if self.events else None,
        }


EventListener = Callable[[GovernanceEvent], None]


class GovernanceEvents:
    """Event emitter feeding the audit trail and registered listeners."""

    def __init__(self, audit_trail: Optional[AuditTrail] = None):
        self.audit_trail = audit_trail or AuditTrail()
        self._listeners: List[EventListener] = []
        self._lock = threading.Lock()

    def subscribe(self, listener: EventListener) -> None:
        """Register ``listener`` for every subsequent event."""
        with self._lock:
            self._listeners.append(listener)

    def unsubscribe(self, listener: EventListener) -> None:
        with self._lock:
            if listener in self._listeners:
                self._listeners.remove(listener)

    def emit(
        self,
        event_type: EventType,
        dao_id: str,
        timestamp: int,
        proposal_id: Optional[int] = None,
        address: Optional[str] = None,
        **data: Any,
    ) -> GovernanceEvent:
        """Record an event and notify listeners."""
        event = GovernanceEvent(
            event_type=event_type,
            dao_id=dao_id,
            timestamp=timestamp,
            proposal_id=proposal_id,
            address=address,
            data=data,
        )

        with self._lock:
            self.audit_trail.add_event(event)
            listeners = list(self._listeners)

        logger.debug(f"Event {event_type.value} #{event.sequence} for DAO {dao_id}")

        for listener in listeners:
            try:
                listener(event)
            except Exception as e:
                logger.warning(f"Event listener failed on {event_type.value}: {e}")

        return event
