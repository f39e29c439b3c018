"""
Property-based tests for governance system using Hypothesis.

This module tests governance invariants and properties using property-based
testing to ensure correctness under various conditions.
"""

import logging

logger = logging.getLogger(__name__)
import math

import pytest
from hypothesis import HealthCheck, given, settings, strategies as st
from hypothesis.stateful import RuleBasedStateMachine, invariant, precondition, rule

from daogov.governance.clock import ManualClock
from daogov.governance.core import (
    BASIS_POINTS,
    Action,
    GovernanceSettings,
    Proposal,
    ProposalState,
    VoteSupport,
)
from daogov.governance.delegation import CircularDelegationDetector
from daogov.governance.engine import GovernanceEngine
from daogov.governance.strategies import IntegerSquareRootStrategy, WeightedMultiplierStrategy
from daogov.governance.tally import VoteTally
from daogov.errors.exceptions import DaoGovError, GovernanceError

DAO_ID = "0xdao"
DAY = 86400
HOUR = 3600
VOTERS = ["alice", "bob", "carol", "dave", "erin"]

powers = st.integers(min_value=0, max_value=10 ** 12)
supports = st.sampled_from(list(VoteSupport))


def fresh_engine(**settings_overrides):
    clock = ManualClock(0)
    engine = GovernanceEngine(clock=clock, settings=GovernanceSettings(**settings_overrides))
    capability = engine.initialize_dao(
        DAO_ID, "Property DAO", DAY, HOUR, 2500, 0,
        veto_enabled=True, veto_authority="0xguardian",
    )
    return engine, clock, capability


class TestTallyProperties:
    """Properties of the quorum and majority decision."""

    @given(
        st.integers(min_value=0, max_value=10 ** 9),
        st.integers(min_value=0, max_value=10 ** 9),
        st.integers(min_value=0, max_value=10 ** 9),
        st.integers(min_value=0, max_value=3 * 10 ** 9),
        st.integers(min_value=0, max_value=BASIS_POINTS),
    )
    def test_decision_matches_exact_arithmetic(self, for_votes, against, abstain, tvp, quorum):
        """Test the integer decision against rational arithmetic."""
        proposal = Proposal(
            1, "p", "t", "", 0, 1,
            for_votes=for_votes, against_votes=against, abstain_votes=abstain,
        )
        result = VoteTally.tally(proposal, tvp, quorum)

        total = for_votes + against + abstain
        assert result.total_votes == total
        assert result.quorum_met == (total * BASIS_POINTS >= tvp * quorum)
        assert result.majority_reached == (for_votes > against)
        assert result.passed == (result.quorum_met and result.majority_reached)

    @given(st.integers(min_value=0, max_value=10 ** 9), st.integers(min_value=1, max_value=BASIS_POINTS))
    def test_zero_votes_never_pass(self, tvp, quorum):
        """Test that an empty tally never passes."""
        result = VoteTally.tally(Proposal(1, "p", "t", "", 0, 1), tvp, quorum)
        assert result.passed is False


class TestStrategyProperties:
    """Properties of the corrected strategies."""

    @given(powers)
    def test_square_root_bounds(self, power):
        """Test isqrt(p)^2 <= p < (isqrt(p) + 1)^2."""
        root = IntegerSquareRootStrategy().adjust(power)
        assert root * root <= power < (root + 1) * (root + 1)
        assert root == math.isqrt(power)

    @given(powers, powers)
    def test_square_root_monotonic(self, first, second):
        """Test that more power never means less weight."""
        strategy = IntegerSquareRootStrategy()
        low, high = sorted((first, second))
        assert strategy.adjust(low) <= strategy.adjust(high)

    @given(powers, st.integers(min_value=0, max_value=5 * BASIS_POINTS))
    def test_weighted_multiplier(self, power, weight_bps):
        """Test floor division by basis points."""
        assert WeightedMultiplierStrategy(weight_bps).adjust(power) == power * weight_bps // BASIS_POINTS


class TestLedgerProperties:
    """Properties of the voting power ledger."""

    @settings(max_examples=40, deadline=None)
    @given(st.lists(st.tuples(st.sampled_from(VOTERS), st.integers(min_value=0, max_value=10 ** 6)), max_size=30))
    def test_total_tracks_entries(self, assignments):
        """Test that the cached total equals the sum of entries after any writes."""
        engine, _, capability = fresh_engine()
        expected = {}
        for voter, power in assignments:
            assert engine.set_voting_power(DAO_ID, capability, voter, power) == expected.get(voter, 0)
            expected[voter] = power

        assert engine.get_total_voting_power(DAO_ID) == sum(expected.values())
        assert engine.check_invariants(DAO_ID)["total_voting_power"] is True


class TestDelegationProperties:
    """Properties of delegation."""

    @settings(max_examples=40, deadline=None)
    @given(
        st.dictionaries(st.sampled_from(VOTERS), st.integers(min_value=1, max_value=1000), min_size=1),
        st.lists(st.tuples(st.sampled_from(VOTERS), st.sampled_from(VOTERS)), max_size=15),
    )
    def test_effective_power_conserved(self, balances, delegations):
        """Test that aggregation never creates or destroys power."""
        engine, _, capability = fresh_engine(max_delegation_depth=3)
        for voter, power in balances.items():
            engine.set_voting_power(DAO_ID, capability, voter, power)

        for delegator, delegate in delegations:
            try:
                engine.delegate_voting_power(DAO_ID, delegator, delegate)
            except GovernanceError:
                pass

        effective = sum(engine.get_effective_voting_power(DAO_ID, voter) for voter in VOTERS)
        assert effective == sum(balances.values())

    @given(st.dictionaries(st.sampled_from(VOTERS), st.sampled_from(VOTERS)))
    def test_no_cycle_after_accepted_edges(self, candidate_edges):
        """Test that edges accepted by the detector never form a cycle."""
        detector = CircularDelegationDetector()
        graph = {}
        for delegator, delegate in candidate_edges.items():
            if not detector.would_create_cycle(delegator, delegate, graph):
                graph[delegator] = delegate

        for start in graph:
            seen = set()
            current = start
            while current in graph:
                assert current not in seen
                seen.add(current)
                current = graph[current]


class GovernanceStateMachine(RuleBasedStateMachine):
    """State machine for testing governance system properties."""

    delegation_mode = "aggregating"

    def __init__(self):
        super().__init__()
        self.engine, self.clock, self.capability = fresh_engine(delegation_mode=self.delegation_mode)
        self.engine.deposit_to_treasury(DAO_ID, "funder", 1000)
        self.proposals = []
        self.deposited = 1000
        self.executed = set()
        # Proposals that were open when some power was lowered
        self.power_lowered_during = set()

    @rule(voter=st.sampled_from(VOTERS), increase=st.integers(min_value=0, max_value=1000))
    def grant_power(self, voter, increase):
        current = self.engine.get_voting_power_for_address(DAO_ID, voter)
        self.engine.set_voting_power(DAO_ID, self.capability, voter, current + increase)

    @rule(voter=st.sampled_from(VOTERS), power=st.integers(min_value=0, max_value=1000))
    def set_power(self, voter, power):
        if power < self.engine.get_voting_power_for_address(DAO_ID, voter):
            self.power_lowered_during.update(self.proposals)
        self.engine.set_voting_power(DAO_ID, self.capability, voter, power)

    @rule(delegator=st.sampled_from(VOTERS))
    def clear_delegation(self, delegator):
        self.engine.clear_delegation(DAO_ID, delegator)

    @rule(delegator=st.sampled_from(VOTERS), delegate=st.sampled_from(VOTERS))
    def delegate(self, delegator, delegate):
        try:
            self.engine.delegate_voting_power(DAO_ID, delegator, delegate)
        except GovernanceError:
            pass

    @rule(amount=st.integers(min_value=0, max_value=500))
    def deposit(self, amount):
        self.engine.deposit_to_treasury(DAO_ID, "funder", amount)
        self.deposited += amount

    @rule(proposer=st.sampled_from(VOTERS), value=st.integers(min_value=0, max_value=800))
    def create_proposal(self, proposer, value):
        proposal_id = self.engine.create_proposal(
            DAO_ID, proposer, "Proposal", "", [Action("0xgrantee", value)]
        )
        self.proposals.append(proposal_id)

    @precondition(lambda self: self.proposals)
    @rule(data=st.data(), voter=st.sampled_from(VOTERS), support=supports)
    def cast_vote(self, data, voter, support):
        proposal_id = data.draw(st.sampled_from(self.proposals))
        try:
            self.engine.cast_vote(DAO_ID, voter, proposal_id, support)
        except GovernanceError:
            pass

    @rule(seconds=st.integers(min_value=0, max_value=2 * DAY))
    def advance(self, seconds):
        self.clock.advance(seconds)

    @precondition(lambda self: self.proposals)
    @rule(data=st.data())
    def queue(self, data):
        proposal_id = data.draw(st.sampled_from(self.proposals))
        try:
            self.engine.queue_proposal(DAO_ID, proposal_id)
        except GovernanceError:
            pass

    @precondition(lambda self: self.proposals)
    @rule(data=st.data())
    def execute(self, data):
        proposal_id = data.draw(st.sampled_from(self.proposals))
        try:
            self.engine.execute_proposal(DAO_ID, proposal_id, "keeper")
        except GovernanceError:
            return
        assert proposal_id not in self.executed
        self.executed.add(proposal_id)

    @precondition(lambda self: self.proposals)
    @rule(data=st.data())
    def veto(self, data):
        proposal_id = data.draw(st.sampled_from(self.proposals))
        try:
            self.engine.veto_proposal(DAO_ID, proposal_id, "0xguardian")
        except DaoGovError:
            pass

    @invariant()
    def engine_invariants_hold(self):
        assert all(self.engine.check_invariants(DAO_ID).values())

    @invariant()
    def votes_never_exceed_voting_power(self):
        total = self.engine.get_total_voting_power(DAO_ID)
        for proposal in self.engine.list_proposals(DAO_ID, ProposalState.ACTIVE):
            if proposal.proposal_id not in self.power_lowered_during:
                assert proposal.total_votes() <= total

    @invariant()
    def treasury_conserved(self):
        paid = self.engine.get_payout(DAO_ID, "0xgrantee")
        assert self.engine.get_treasury_balance(DAO_ID) + paid == self.deposited

    @invariant()
    def executed_means_queued_first(self):
        for proposal in self.engine.list_proposals(DAO_ID):
            if proposal.state == ProposalState.EXECUTED:
                assert proposal.execution_time is not None
                assert proposal.proposal_id in self.executed
            assert proposal.state != ProposalState.SUCCEEDED

    @invariant()
    def audit_trail_verifies(self):
        assert self.engine.audit_trail.verify_integrity()


GovernanceStateMachine.TestCase.settings = settings(
    max_examples=30,
    stateful_step_count=40,
    deadline=None,
    suppress_health_check=[HealthCheck.too_slow],
)
TestGovernanceStateMachine = GovernanceStateMachine.TestCase


class InertGovernanceStateMachine(GovernanceStateMachine):
    """The same rules with delegation recorded but carrying no power."""

    delegation_mode = "inert"


InertGovernanceStateMachine.TestCase.settings = GovernanceStateMachine.TestCase.settings
TestInertGovernanceStateMachine = InertGovernanceStateMachine.TestCase
