"""
Proposal execution with timelock.

A proposal that passes its vote is scheduled behind the DAO's timelock delay.
Once the delay has elapsed it can be executed exactly once: its transfers are
paid out of the treasury in order, all or nothing.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from ..errors.exceptions import (
    AlreadyExecutedError,
    ProposalNotSucceededError,
    ProposalVetoedError,
    TimelockNotExpiredError,
)
from .core import Proposal, ProposalState
from .treasury import TreasuryVault

logger = logging.getLogger(__name__)


@dataclass
class ExecutionResult:
    """Result of proposal execution."""

    proposal_id: int
    executor: str
    executed_at: int
    transfers: List[Dict[str, Any]] = field(default_factory=list)
    total_disbursed: int = 0
    treasury_balance: int = 0

    def to_dict(self) -> Dict[str, Any]:
        """Convert result to dictionary."""
        return {
            "proposal_id": self.proposal_id,
            "executor": self.executor,
            "executed_at": self.executed_at,
            "transfers": list(self.transfers),
            "total_disbursed": self.total_disbursed,
            "treasury_balance": self.treasury_balance,
        }


class TimelockManager:
    """Manages the delay between queueing and execution."""

    def __init__(self, delay: int):
        """Initialize timelock manager."""
        self.delay = delay

    def schedule(self, proposal: Proposal, now: int) -> int:
        """Set and return the earliest execution time of ``proposal``."""
        proposal.execution_time = now + self.delay
        return proposal.execution_time

    def check_ready(self, proposal: Proposal, now: int) -> None:
        """Raise ``TimelockNotExpiredError`` before the execution time."""
        if proposal.execution_time is None or now < proposal.execution_time:
            raise TimelockNotExpiredError(
                f"Proposal {proposal.proposal_id} executable at "
                f"{proposal.execution_time}, now {now}"
            )

    def remaining(self, proposal: Proposal, now: int) -> Optional[int]:
        """Seconds left on the timelock, or ``None`` if not scheduled."""
        if proposal.execution_time is None:
            return None
        return max(0, proposal.execution_time - now)


class ExecutionEngine:
    """Executes queued proposals against a treasury."""

    def __init__(self, treasury: TreasuryVault, timelock: TimelockManager):
        self.treasury = treasury
        self.timelock = timelock

    def check_executable(self, proposal: Proposal, now: int) -> None:
        """Raise the matching error if ``proposal`` cannot run at ``now``."""
        if proposal.executed:
            raise AlreadyExecutedError(f"Proposal {proposal.proposal_id} already executed")

        if proposal.vetoed:
            raise ProposalVetoedError(f"Proposal {proposal.proposal_id} was vetoed")

        if proposal.state != ProposalState.QUEUED:
            raise ProposalNotSucceededError(
                f"Proposal {proposal.proposal_id} is {proposal.state.value}, not queued"
            )

        self.timelock.check_ready(proposal, now)

    def execute(self, proposal: Proposal, executor: str, now: int) -> ExecutionResult:
        """
        Pay out every transfer of ``proposal`` and mark it executed.

        The whole batch is checked against the treasury before the first
        payout, so an underfunded action fails the call with nothing paid.
        """
        self.check_executable(proposal, now)

        transfers = self.treasury.plan_disbursement(proposal.actions)

        paid = []
        for action in transfers:
            self.treasury.disburse(action.target, action.value)
            paid.append({"target": action.target, "value": action.value})

        proposal.transition(ProposalState.EXECUTED)
        proposal.executed = True

        return ExecutionResult(
            proposal_id=proposal.proposal_id,
            executor=executor,
            executed_at=now,
            transfers=paid,
            total_disbursed=sum(item["value"] for item in paid),
            treasury_balance=self.treasury.balance,
        )
