"""
Governance engine.

``GovernanceEngine`` is the external interface of the package. Every mutating
operation on a DAO:

- holds that DAO's lock, so operations on one DAO are serialized while other
  DAOs proceed in parallel;
- reads the clock once and uses that value for every comparison;
- runs in a single store transaction, so a rejected operation leaves no trace;
- emits its event only after the transaction has committed.

Queries read committed state through a store snapshot, so a query never mixes
state from before and after a commit.
"""

import logging
import threading
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional, Sequence

from ..errors.exceptions import (
    AlreadyInitializedError,
    DaoGovError,
    NotInitializedError,
    ValidationError,
)
from ..storage.keyvalue import InMemoryStore, KeyValueStore, StorageTransaction
from .clock import GovernanceClock, SystemClock
from .core import (
    DAO,
    Action,
    DAOConfig,
    GovernanceSettings,
    Proposal,
    ProposalState,
    Vote,
    VotingStrategyKind,
)
from .delegation import DelegationResolver, create_delegation_resolver
from .execution import ExecutionResult
from .ledger import VotingPowerLedger
from .lifecycle import ProposalLifecycle
from .observability import EventType, GovernanceEvents
from .security import CapabilityIssuer, GovernorCapability
from .strategies import StrategyRegistry
from .tables import DAO_NAMESPACE, KEY_SEPARATOR
from .tally import TallyResult, VoteTally
from .treasury import TreasuryVault

logger = logging.getLogger(__name__)


class _Session:
    """Components of one DAO bound to one transaction."""

    def __init__(self, engine: "GovernanceEngine", txn: StorageTransaction, dao: DAO, now: int):
        self.engine = engine
        self.txn = txn
        self.dao = dao
        self.now = now

    def ledger(self) -> VotingPowerLedger:
        return VotingPowerLedger(self.txn, self.dao, self.engine.issuer)

    def resolver(self) -> DelegationResolver:
        return create_delegation_resolver(self.txn, self.dao, self.ledger(), self.engine.settings)

    def tally(self) -> VoteTally:
        strategy = self.engine.strategies.get(self.dao.config.voting_strategy)
        return VoteTally(self.txn, self.dao, self.resolver(), strategy)

    def treasury(self) -> TreasuryVault:
        return TreasuryVault(self.txn, self.dao)

    def lifecycle(self) -> ProposalLifecycle:
        return ProposalLifecycle(self.txn, self.dao, self.engine.settings)


class GovernanceEngine:
    """DAO governance over a keyed store."""

    def __init__(
        self,
        store: Optional[KeyValueStore] = None,
        clock: Optional[GovernanceClock] = None,
        settings: Optional[GovernanceSettings] = None,
        events: Optional[GovernanceEvents] = None,
        strategies: Optional[StrategyRegistry] = None,
    ):
        self.store = store if store is not None else InMemoryStore()
        self.clock = clock or SystemClock()
        self.settings = settings or GovernanceSettings()
        self.events = events or GovernanceEvents()
        self.strategies = strategies or StrategyRegistry.from_settings(self.settings)
        self.issuer = CapabilityIssuer()

        self._locks: Dict[str, threading.RLock] = {}
        self._locks_guard = threading.Lock()

    @property
    def audit_trail(self):
        return self.events.audit_trail

    # Internals

    def _dao_lock(
        self,
        operation: str,
        dao_id: str,
        proposal_id: Optional[int] = None,
        create: bool = False,
    ) -> threading.RLock:
        """Lock of an existing DAO; only ``initialize_dao`` creates one."""
        with self._locks_guard:
            lock = self._locks.get(dao_id) if isinstance(dao_id, str) else None
            if lock is None:
                if not create:
                    with self._rejections_logged(operation, dao_id, proposal_id):
                        with self.store.snapshot() as view:
                            self._load_dao(view, dao_id)
                lock = self._locks[dao_id] = threading.RLock()
            return lock

    @staticmethod
    def _load_dao(txn: StorageTransaction, dao_id: str) -> DAO:
        data = txn.get(DAO_NAMESPACE, dao_id) if isinstance(dao_id, str) else None
        if data is None:
            raise NotInitializedError(f"DAO {dao_id} is not initialized")
        return DAO.from_dict(data)

    @contextmanager
    def _rejections_logged(self, operation: str, dao_id: str, proposal_id: Optional[int] = None):
        try:
            yield
        except DaoGovError as e:
            e.context.component = "governance"
            e.context.operation = operation
            e.context.dao_id = dao_id
            if proposal_id is not None:
                e.context.proposal_id = proposal_id
            logger.debug(f"{operation} rejected for DAO {dao_id}: {e.error_code}: {e.message}")
            raise

    @contextmanager
    def _session(
        self, operation: str, dao_id: str, proposal_id: Optional[int] = None
    ) -> Iterator[_Session]:
        """Run one mutating operation: lock held, one clock read, one transaction."""
        with self._rejections_logged(operation, dao_id, proposal_id):
            now = self.clock.now()
            with self.store.transaction() as txn:
                dao = self._load_dao(txn, dao_id)
                session = _Session(self, txn, dao, now)
                yield session
                txn.put(DAO_NAMESPACE, dao_id, dao.to_dict())

    @contextmanager
    def _reading(self, dao_id: str) -> Iterator[_Session]:
        with self.store.snapshot() as view:
            yield _Session(self, view, self._load_dao(view, dao_id), self.clock.now())

    # Mutating operations

    def initialize_dao(
        self,
        dao_address: str,
        name: str,
        voting_period: int,
        timelock_delay: int,
        quorum_threshold_bps: int,
        proposal_threshold: int,
        voting_strategy: Any = VotingStrategyKind.SIMPLE_MAJORITY,
        veto_enabled: bool = False,
        veto_authority: Optional[str] = None,
        upgrade_authority: Optional[str] = None,
    ) -> GovernorCapability:
        """
        Create a DAO at ``dao_address``.

        Args:
            dao_address: Identifier of the new DAO
            name: Human-readable name
            voting_period: Seconds a proposal stays open for voting
            timelock_delay: Seconds between queueing and execution
            quorum_threshold_bps: Participation required, in basis points
            proposal_threshold: Voting power required to propose
            voting_strategy: Strategy kind, by member, code or name
            veto_enabled: Whether a veto authority exists
            veto_authority: Address allowed to veto queued proposals
            upgrade_authority: Administrative address, stored only

        Returns:
            The governor capability required by ``set_voting_power``
        """
        if not isinstance(dao_address, str) or not dao_address or KEY_SEPARATOR in dao_address:
            raise ValidationError(
                f"DAO address must be a non-empty string without '{KEY_SEPARATOR}'",
                field="dao_address",
                value=dao_address,
            )

        if not isinstance(name, str) or not name.strip():
            raise ValidationError("DAO name cannot be empty", field="name", value=name)

        with self._rejections_logged("initialize_dao", dao_address):
            config = DAOConfig(
                voting_period=voting_period,
                timelock_delay=timelock_delay,
                quorum_threshold=quorum_threshold_bps,
                proposal_threshold=proposal_threshold,
                voting_strategy=VotingStrategyKind.parse(voting_strategy),
                veto_enabled=bool(veto_enabled),
                veto_authority=veto_authority,
            )
            config.validate(self.settings)

        with self._dao_lock("initialize_dao", dao_address, create=True):
            with self._rejections_logged("initialize_dao", dao_address):
                now = self.clock.now()
                capability = self.issuer.issue(dao_address)
                dao = DAO(
                    dao_id=dao_address,
                    name=name,
                    config=config,
                    capability_digest=capability.digest(),
                    upgrade_authority=upgrade_authority,
                    created_at=now,
                )

                with self.store.transaction() as txn:
                    if txn.get(DAO_NAMESPACE, dao_address) is not None:
                        raise AlreadyInitializedError(f"DAO {dao_address} already exists")
                    txn.put(DAO_NAMESPACE, dao_address, dao.to_dict())

            logger.info(f"Initialized DAO {dao_address} ({name})")
            self.events.emit(
                EventType.DAO_INITIALIZED,
                dao_address,
                now,
                name=name,
                config=config.to_dict(),
                upgrade_authority=upgrade_authority,
            )
        return capability

    def create_proposal(
        self,
        dao_id: str,
        proposer: str,
        title: str,
        description: str,
        actions: Sequence[Action] = (),
    ) -> int:
        """Open a proposal and return its id."""
        with self._dao_lock("create_proposal", dao_id):
            with self._session("create_proposal", dao_id) as session:
                proposal = session.lifecycle().create(
                    proposer, title, description, actions, session.resolver(), session.now
                )

            logger.info(f"Created proposal {proposal.proposal_id} in DAO {dao_id} by {proposer}")
            self.events.emit(
                EventType.PROPOSAL_CREATED,
                dao_id,
                session.now,
                proposal_id=proposal.proposal_id,
                address=proposer,
                title=proposal.title,
                start_time=proposal.start_time,
                end_time=proposal.end_time,
                actions=[action.to_dict() for action in proposal.actions],
            )
        return proposal.proposal_id

    def cast_vote(self, dao_id: str, voter: str, proposal_id: int, support: Any) -> Vote:
        """Cast or replace ``voter``'s vote."""
        with self._dao_lock("cast_vote", dao_id, proposal_id):
            with self._session("cast_vote", dao_id, proposal_id) as session:
                lifecycle = session.lifecycle()
                proposal = lifecycle.load(proposal_id)
                vote, previous = session.tally().cast_vote(proposal, voter, support, session.now)
                lifecycle.save(proposal)

            logger.info(
                f"Vote {vote.support.name} ({vote.voting_power}) by {voter} "
                f"on proposal {proposal_id} in DAO {dao_id}"
            )
            self.events.emit(
                EventType.VOTE_CAST,
                dao_id,
                session.now,
                proposal_id=proposal_id,
                address=voter,
                support=int(vote.support),
                voting_power=vote.voting_power,
                replaced=previous.to_dict() if previous is not None else None,
                for_votes=proposal.for_votes,
                against_votes=proposal.against_votes,
                abstain_votes=proposal.abstain_votes,
            )
        return vote

    def queue_proposal(self, dao_id: str, proposal_id: int) -> Proposal:
        """Close voting; the proposal becomes QUEUED or FAILED."""
        with self._dao_lock("queue_proposal", dao_id, proposal_id):
            with self._session("queue_proposal", dao_id, proposal_id) as session:
                proposal, result = session.lifecycle().queue(proposal_id, session.now)

            if proposal.state == ProposalState.QUEUED:
                logger.info(
                    f"Queued proposal {proposal_id} in DAO {dao_id}, "
                    f"executable at {proposal.execution_time}"
                )
                event_type = EventType.PROPOSAL_QUEUED
            else:
                logger.info(f"Proposal {proposal_id} in DAO {dao_id} failed")
                event_type = EventType.PROPOSAL_FAILED

            self.events.emit(
                event_type,
                dao_id,
                session.now,
                proposal_id=proposal_id,
                execution_time=proposal.execution_time,
                tally=result.to_dict(),
            )
        return proposal

    def execute_proposal(self, dao_id: str, proposal_id: int, executor: str) -> ExecutionResult:
        """Execute a queued proposal after its timelock."""
        with self._dao_lock("execute_proposal", dao_id, proposal_id):
            with self._session("execute_proposal", dao_id, proposal_id) as session:
                _, result = session.lifecycle().execute(
                    proposal_id, executor, session.treasury(), session.now
                )

            logger.info(
                f"Executed proposal {proposal_id} in DAO {dao_id}, "
                f"disbursed {result.total_disbursed}"
            )
            self.events.emit(
                EventType.PROPOSAL_EXECUTED,
                dao_id,
                session.now,
                proposal_id=proposal_id,
                address=executor,
                transfers=result.transfers,
                treasury_balance=result.treasury_balance,
            )
        return result

    def veto_proposal(self, dao_id: str, proposal_id: int, caller: str) -> Proposal:
        """Veto a queued proposal."""
        with self._dao_lock("veto_proposal", dao_id, proposal_id):
            with self._session("veto_proposal", dao_id, proposal_id) as session:
                proposal = session.lifecycle().veto(proposal_id, caller)

            logger.info(f"Vetoed proposal {proposal_id} in DAO {dao_id}")
            self.events.emit(
                EventType.PROPOSAL_VETOED,
                dao_id,
                session.now,
                proposal_id=proposal_id,
                address=caller,
            )
        return proposal

    def delegate_voting_power(self, dao_id: str, delegator: str, delegate: str) -> Optional[str]:
        """Delegate ``delegator``'s power; returns the replaced delegate."""
        with self._dao_lock("delegate_voting_power", dao_id):
            with self._session("delegate_voting_power", dao_id) as session:
                previous = session.resolver().set_delegate(delegator, delegate)

            logger.info(f"{delegator} delegated to {delegate} in DAO {dao_id}")
            self.events.emit(
                EventType.DELEGATE_CHANGED,
                dao_id,
                session.now,
                address=delegator,
                delegate=delegate,
                previous_delegate=previous,
            )
        return previous

    def clear_delegation(self, dao_id: str, delegator: str) -> Optional[str]:
        """Remove ``delegator``'s delegation; returns the removed delegate."""
        with self._dao_lock("clear_delegation", dao_id):
            with self._session("clear_delegation", dao_id) as session:
                previous = session.resolver().clear_delegate(delegator)

            if previous is not None:
                logger.info(f"{delegator} cleared delegation to {previous} in DAO {dao_id}")
                self.events.emit(
                    EventType.DELEGATE_CHANGED,
                    dao_id,
                    session.now,
                    address=delegator,
                    delegate=None,
                    previous_delegate=previous,
                )
        return previous

    def set_voting_power(self, dao_id: str, caller: Any, voter: str, power: int) -> int:
        """Set ``voter``'s power; ``caller`` must be the DAO's governor capability."""
        with self._dao_lock("set_voting_power", dao_id):
            with self._session("set_voting_power", dao_id) as session:
                old_power = session.ledger().set_power(caller, voter, power)
                total = session.dao.total_voting_power

            logger.info(f"Voting power of {voter} in DAO {dao_id}: {old_power} -> {power}")
            self.events.emit(
                EventType.VOTING_POWER_CHANGED,
                dao_id,
                session.now,
                address=voter,
                old_power=old_power,
                new_power=power,
                total_voting_power=total,
            )
        return old_power

    def deposit_to_treasury(self, dao_id: str, depositor: str, amount: int) -> int:
        """Deposit ``amount`` into the treasury and return the new balance."""
        with self._dao_lock("deposit_to_treasury", dao_id):
            with self._session("deposit_to_treasury", dao_id) as session:
                balance = session.treasury().deposit(amount)

            logger.info(f"{depositor} deposited {amount} into DAO {dao_id}")
            self.events.emit(
                EventType.TREASURY_DEPOSIT,
                dao_id,
                session.now,
                address=depositor,
                amount=amount,
                balance=balance,
            )
        return balance

    # Queries

    def get_dao(self, dao_id: str) -> DAO:
        with self._reading(dao_id) as session:
            return session.dao

    def get_dao_config(self, dao_id: str) -> DAOConfig:
        return self.get_dao(dao_id).config

    def get_proposal(self, dao_id: str, proposal_id: int) -> Proposal:
        with self._reading(dao_id) as session:
            return session.lifecycle().load(proposal_id)

    def list_proposals(self, dao_id: str, state: Optional[ProposalState] = None) -> List[Proposal]:
        with self._reading(dao_id) as session:
            proposals = session.lifecycle().list_proposals()
        if state is not None:
            proposals = [proposal for proposal in proposals if proposal.state == state]
        return proposals

    def get_proposal_vote(self, dao_id: str, proposal_id: int, voter: str) -> Optional[Vote]:
        with self._reading(dao_id) as session:
            session.lifecycle().load(proposal_id)
            return session.tally().get_vote(proposal_id, voter)

    def get_proposal_votes(self, dao_id: str, proposal_id: int) -> List[Vote]:
        with self._reading(dao_id) as session:
            session.lifecycle().load(proposal_id)
            return session.tally().live_votes(proposal_id)

    def get_tally(self, dao_id: str, proposal_id: int) -> TallyResult:
        """Preview the queue decision against current totals."""
        with self._reading(dao_id) as session:
            proposal = session.lifecycle().load(proposal_id)
            return VoteTally.tally(
                proposal, session.dao.total_voting_power, session.dao.config.quorum_threshold
            )

    def get_timelock_remaining(self, dao_id: str, proposal_id: int) -> Optional[int]:
        """Seconds until a queued proposal may execute; ``None`` if never queued."""
        with self._reading(dao_id) as session:
            lifecycle = session.lifecycle()
            return lifecycle.timelock.remaining(lifecycle.load(proposal_id), session.now)

    def get_treasury_balance(self, dao_id: str) -> int:
        return self.get_dao(dao_id).treasury_balance

    def get_payout(self, dao_id: str, address: str) -> int:
        with self._reading(dao_id) as session:
            return session.treasury().get_payout(address)

    def get_voting_power_for_address(self, dao_id: str, address: str) -> int:
        with self._reading(dao_id) as session:
            return session.ledger().get_power(address)

    def get_total_voting_power(self, dao_id: str) -> int:
        return self.get_dao(dao_id).total_voting_power

    def get_effective_voting_power(self, dao_id: str, address: str) -> int:
        with self._reading(dao_id) as session:
            return session.resolver().effective_power(address)

    def get_delegate(self, dao_id: str, delegator: str) -> Optional[str]:
        with self._reading(dao_id) as session:
            return session.resolver().get_delegate(delegator)

    def check_invariants(self, dao_id: str) -> Dict[str, bool]:
        """Evaluate the ledger and tally invariants of one DAO."""
        with self._reading(dao_id) as session:
            tally = session.tally()
            proposals = session.lifecycle().list_proposals()
            return {
                "total_voting_power": session.ledger().check_total(),
                "vote_totals": all(tally.check_totals(proposal) for proposal in proposals),
                "votes_counted_once": all(
                    tally.check_sources_disjoint(proposal) for proposal in proposals
                ),
                "terminal_flags": all(
                    (not proposal.executed or proposal.state == ProposalState.EXECUTED)
                    and (not proposal.vetoed or proposal.state == ProposalState.VETOED)
                    for proposal in proposals
                ),
                "treasury_non_negative": session.dao.treasury_balance >= 0,
            }
