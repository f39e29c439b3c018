"""
Vote recording and tallying.

Every proposal keeps running for/against/abstain sums next to its live vote
records. A repeat vote first subtracts the voter's previous weight from the
bucket it was counted in, then adds the new weight, so the sums always match
the live records.

Each vote records the ledger addresses whose power it counts. An address is
counted by at most one live vote per proposal: power that moved to another
delegate after being counted stays with the vote that counted it.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Set, Tuple

from ..errors.exceptions import (
    InsufficientVotingPowerError,
    InvalidProposalStateError,
    VotingEndedError,
    VotingNotStartedError,
)
from ..storage.keyvalue import StorageTransaction
from .core import BASIS_POINTS, DAO, Proposal, ProposalState, Vote, VoteSupport
from .delegation import DelegationResolver
from .strategies import VotingStrategy
from .tables import VOTES_NAMESPACE, vote_key, votes_prefix

logger = logging.getLogger(__name__)

_BUCKETS = {
    VoteSupport.FOR: "for_votes",
    VoteSupport.AGAINST: "against_votes",
    VoteSupport.ABSTAIN: "abstain_votes",
}


@dataclass(frozen=True)
class TallyResult:
    """Outcome of the quorum and majority checks."""

    for_votes: int
    against_votes: int
    abstain_votes: int
    total_votes: int
    total_voting_power: int
    quorum_threshold: int
    quorum_met: bool
    majority_reached: bool

    @property
    def passed(self) -> bool:
        return self.quorum_met and self.majority_reached

    def to_dict(self) -> Dict[str, Any]:
        """Convert result to dictionary."""
        return {
            "for_votes": self.for_votes,
            "against_votes": self.against_votes,
            "abstain_votes": self.abstain_votes,
            "total_votes": self.total_votes,
            "total_voting_power": self.total_voting_power,
            "quorum_threshold": self.quorum_threshold,
            "quorum_met": self.quorum_met,
            "majority_reached": self.majority_reached,
            "passed": self.passed,
        }


class VoteTally:
    """Votes of one DAO, viewed through a transaction."""

    def __init__(
        self,
        txn: StorageTransaction,
        dao: DAO,
        resolver: DelegationResolver,
        strategy: VotingStrategy,
    ):
        self.txn = txn
        self.dao = dao
        self.resolver = resolver
        self.strategy = strategy

    @staticmethod
    def tally(proposal: Proposal, total_voting_power: int, quorum_threshold: int) -> TallyResult:
        """Apply the quorum and strict-majority rules in integer arithmetic."""
        total_votes = proposal.total_votes()
        return TallyResult(
            for_votes=proposal.for_votes,
            against_votes=proposal.against_votes,
            abstain_votes=proposal.abstain_votes,
            total_votes=total_votes,
            total_voting_power=total_voting_power,
            quorum_threshold=quorum_threshold,
            quorum_met=total_votes * BASIS_POINTS >= total_voting_power * quorum_threshold,
            majority_reached=proposal.for_votes > proposal.against_votes,
        )

    def get_vote(self, proposal_id: int, voter: str) -> Optional[Vote]:
        data = self.txn.get(VOTES_NAMESPACE, vote_key(self.dao.dao_id, proposal_id, voter))
        return Vote.from_dict(data) if data is not None else None

    def live_votes(self, proposal_id: int) -> List[Vote]:
        """All live votes on ``proposal_id``, ordered by voter."""
        prefix = votes_prefix(self.dao.dao_id, proposal_id)
        return [Vote.from_dict(value) for _, value in self.txn.scan(VOTES_NAMESPACE, prefix)]

    def check_totals(self, proposal: Proposal) -> bool:
        """Check the running sums against the live vote records."""
        return proposal.total_votes() == sum(
            vote.voting_power for vote in self.live_votes(proposal.proposal_id)
        )

    def counted_sources(self, proposal_id: int, exclude: Optional[str] = None) -> Set[str]:
        """Addresses whose power a live vote other than ``exclude``'s already counts."""
        counted: Set[str] = set()
        for vote in self.live_votes(proposal_id):
            if vote.voter != exclude:
                counted.update(vote.sources)
        return counted

    def check_sources_disjoint(self, proposal: Proposal) -> bool:
        """Check that no address is counted by two live votes."""
        seen: Set[str] = set()
        for vote in self.live_votes(proposal.proposal_id):
            if seen.intersection(vote.sources):
                return False
            seen.update(vote.sources)
        return True

    def cast_vote(
        self, proposal: Proposal, voter: str, support: Any, now: int
    ) -> Tuple[Vote, Optional[Vote]]:
        """
        Record ``voter``'s vote on ``proposal``.

        Args:
            proposal: Proposal to vote on; its sums are updated in place
            voter: Voting address
            support: A ``VoteSupport`` member, its integer code or its name
            now: Operation timestamp

        Returns:
            The new vote and the vote it replaced, if any
        """
        if proposal.state != ProposalState.ACTIVE:
            raise InvalidProposalStateError(
                f"Proposal {proposal.proposal_id} is {proposal.state.value}, not active"
            )

        if now < proposal.start_time:
            raise VotingNotStartedError(f"Voting on proposal {proposal.proposal_id} has not started")

        if now > proposal.end_time:
            raise VotingEndedError(f"Voting on proposal {proposal.proposal_id} has ended")

        choice = VoteSupport.parse(support)

        available = self.resolver.power_sources(voter)
        if not available:
            raise InsufficientVotingPowerError(f"{voter} has no voting power")

        counted = self.counted_sources(proposal.proposal_id, exclude=voter)
        sources = {address: power for address, power in available.items() if address not in counted}
        if not sources:
            raise InsufficientVotingPowerError(
                f"Voting power of {voter} is already counted on proposal {proposal.proposal_id}"
            )

        weight = self.strategy.adjust(sum(sources.values()))

        previous = self.get_vote(proposal.proposal_id, voter)
        if previous is not None:
            bucket = _BUCKETS[previous.support]
            setattr(proposal, bucket, getattr(proposal, bucket) - previous.voting_power)

        bucket = _BUCKETS[choice]
        setattr(proposal, bucket, getattr(proposal, bucket) + weight)

        vote = Vote(
            voter=voter,
            proposal_id=proposal.proposal_id,
            support=choice,
            voting_power=weight,
            timestamp=now,
            sources=sources,
        )
        self.txn.put(
            VOTES_NAMESPACE, vote_key(self.dao.dao_id, proposal.proposal_id, voter), vote.to_dict()
        )
        return vote, previous
