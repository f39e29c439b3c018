"""
Proposal lifecycle state machine.

    ACTIVE --queue--> SUCCEEDED --> QUEUED --execute--> EXECUTED
       |                               |
       +--queue--> FAILED              +--veto--> VETOED

The queue decision is taken exactly once. SUCCEEDED only exists inside the
queue operation, so callers see ACTIVE turn into QUEUED or FAILED.
"""

import logging
from typing import List, Optional, Sequence, Tuple

from ..errors.exceptions import (
    InsufficientVotingPowerError,
    InvalidProposalError,
    InvalidProposalStateError,
    NotAuthorizedError,
    ProposalNotFoundError,
    VotingNotEndedError,
)
from ..storage.keyvalue import StorageTransaction
from .core import DAO, Action, GovernanceSettings, Proposal, ProposalState
from .delegation import DelegationResolver
from .execution import ExecutionEngine, ExecutionResult, TimelockManager
from .tables import PROPOSALS_NAMESPACE, dao_prefix, proposal_key
from .tally import TallyResult, VoteTally
from .treasury import TreasuryVault

logger = logging.getLogger(__name__)


class ProposalLifecycle:
    """Proposal registry of one DAO, viewed through a transaction."""

    def __init__(
        self,
        txn: StorageTransaction,
        dao: DAO,
        settings: Optional[GovernanceSettings] = None,
    ):
        self.txn = txn
        self.dao = dao
        self.settings = settings or GovernanceSettings()
        self.timelock = TimelockManager(dao.config.timelock_delay)

    def load(self, proposal_id: int) -> Proposal:
        """Fetch a proposal or raise ``ProposalNotFoundError``."""
        if isinstance(proposal_id, bool) or not isinstance(proposal_id, int):
            raise ProposalNotFoundError(f"Invalid proposal id {proposal_id!r}")

        data = self.txn.get(PROPOSALS_NAMESPACE, proposal_key(self.dao.dao_id, proposal_id))
        if data is None:
            raise ProposalNotFoundError(
                f"Proposal {proposal_id} not found in DAO {self.dao.dao_id}"
            )
        return Proposal.from_dict(data)

    def save(self, proposal: Proposal) -> None:
        self.txn.put(
            PROPOSALS_NAMESPACE,
            proposal_key(self.dao.dao_id, proposal.proposal_id),
            proposal.to_dict(),
        )

    def list_proposals(self) -> List[Proposal]:
        """All proposals of the DAO in id order."""
        return [
            Proposal.from_dict(value)
            for _, value in self.txn.scan(PROPOSALS_NAMESPACE, dao_prefix(self.dao.dao_id))
        ]

    def _validate_content(self, title: str, description: str, actions: Sequence[Action]) -> None:
        if not isinstance(title, str) or not title.strip():
            raise InvalidProposalError("Proposal title cannot be empty")

        if len(title) > self.settings.max_title_length:
            raise InvalidProposalError(
                f"Proposal title exceeds {self.settings.max_title_length} characters"
            )

        if not isinstance(description, str):
            raise InvalidProposalError("Proposal description must be a string")

        if len(description) > self.settings.max_description_length:
            raise InvalidProposalError(
                f"Proposal description exceeds {self.settings.max_description_length} characters"
            )

        if len(actions) > self.settings.max_actions_per_proposal:
            raise InvalidProposalError(
                f"Proposal carries more than {self.settings.max_actions_per_proposal} actions"
            )

        for action in actions:
            if not isinstance(action, Action):
                raise InvalidProposalError(f"Invalid action: {action!r}")

    def create(
        self,
        proposer: str,
        title: str,
        description: str,
        actions: Sequence[Action],
        resolver: DelegationResolver,
        now: int,
    ) -> Proposal:
        """Open a new proposal for voting."""
        actions = list(actions)
        self._validate_content(title, description, actions)

        power = resolver.effective_power(proposer)
        if power < self.dao.config.proposal_threshold:
            raise InsufficientVotingPowerError(
                f"{proposer} has {power} voting power, "
                f"{self.dao.config.proposal_threshold} required to propose"
            )

        proposal = Proposal(
            proposal_id=self.dao.next_proposal_id(),
            proposer=proposer,
            title=title,
            description=description,
            start_time=now,
            end_time=now + self.dao.config.voting_period,
            state=ProposalState.ACTIVE,
            actions=actions,
        )
        self.save(proposal)
        return proposal

    def queue(self, proposal_id: int, now: int) -> Tuple[Proposal, TallyResult]:
        """Close voting and decide the outcome, once."""
        proposal = self.load(proposal_id)

        if proposal.state != ProposalState.ACTIVE:
            raise InvalidProposalStateError(
                f"Proposal {proposal_id} is {proposal.state.value}, not active"
            )

        if now <= proposal.end_time:
            raise VotingNotEndedError(
                f"Voting on proposal {proposal_id} ends at {proposal.end_time}, now {now}"
            )

        result = VoteTally.tally(
            proposal, self.dao.total_voting_power, self.dao.config.quorum_threshold
        )

        if result.passed:
            proposal.transition(ProposalState.SUCCEEDED)
            self.timelock.schedule(proposal, now)
            proposal.transition(ProposalState.QUEUED)
        else:
            proposal.transition(ProposalState.FAILED)

        self.save(proposal)
        return proposal, result

    def execute(
        self, proposal_id: int, executor: str, treasury: TreasuryVault, now: int
    ) -> Tuple[Proposal, ExecutionResult]:
        """Run a queued proposal whose timelock has expired."""
        proposal = self.load(proposal_id)
        result = ExecutionEngine(treasury, self.timelock).execute(proposal, executor, now)
        self.save(proposal)
        return proposal, result

    def veto(self, proposal_id: int, caller: str) -> Proposal:
        """Permanently block a queued proposal."""
        proposal = self.load(proposal_id)
        config = self.dao.config

        if not config.veto_enabled or config.veto_authority is None:
            raise NotAuthorizedError(f"Veto is disabled for DAO {self.dao.dao_id}")

        if caller != config.veto_authority:
            raise NotAuthorizedError(f"{caller} is not the veto authority")

        if proposal.state != ProposalState.QUEUED:
            raise InvalidProposalStateError(
                f"Proposal {proposal_id} is {proposal.state.value}, not queued"
            )

        proposal.transition(ProposalState.VETOED)
        proposal.vetoed = True
        self.save(proposal)
        return proposal
