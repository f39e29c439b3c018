"""
Command-line interface for daogov.

Runs governance operations against a SQLite database and prints JSON.
"""

import argparse
import json
import os
import sys
from typing import Any, Dict, List, Optional

from .errors.exceptions import DaoGovError, ValidationError
from .governance.clock import GovernanceClock, ManualClock, SystemClock
from .governance.core import Action, GovernanceSettings
from .governance.engine import GovernanceEngine
from .governance.security import GovernorCapability
from .logging.core import LogConfig, get_logger, setup_logging, shutdown_logging
from .storage.database import DatabaseConfig, SQLiteStore

DEFAULT_DB_PATH = "daogov.db"

logger = get_logger("cli")


def _parse_bool(value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in ("true", "1", "yes", "on"):
        return True
    if lowered in ("false", "0", "no", "off"):
        return False
    raise argparse.ArgumentTypeError(f"Invalid boolean: {value}")


def _optional_address(value: str) -> Optional[str]:
    return None if value.strip().lower() in ("", "none") else value


def parse_action(text: str) -> Action:
    """Parse ``TARGET:VALUE[:FUNCTION[:HEXARGS]]``."""
    parts = text.split(":")
    if len(parts) < 2 or len(parts) > 4:
        raise ValidationError(
            f"Invalid action {text!r}, expected TARGET:VALUE[:FUNCTION[:HEXARGS]]",
            field="action",
            value=text,
        )

    try:
        value = int(parts[1])
        arguments = bytes.fromhex(parts[3]) if len(parts) > 3 else b""
    except ValueError as e:
        raise ValidationError(f"Invalid action {text!r}: {e}", field="action", value=text, cause=e)

    return Action(
        target=parts[0],
        value=value,
        function_name=parts[2] if len(parts) > 2 else "",
        arguments=arguments,
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="daogov", description="DAO governance engine")
    parser.add_argument(
        "--db",
        default=os.getenv("DAOGOV_DB", DEFAULT_DB_PATH),
        help="SQLite database path (default: $DAOGOV_DB or daogov.db)",
    )
    parser.add_argument("--log-level", default=os.getenv("DAOGOV_LOG_LEVEL", "warning"))
    parser.add_argument("--log-format", choices=["json", "text"], default="text")
    parser.add_argument("--now", type=int, help="Operation timestamp in seconds (default: wall clock)")

    subparsers = parser.add_subparsers(dest="command", required=True)

    init = subparsers.add_parser("init-dao", help="Initialize a DAO")
    init.add_argument("address")
    init.add_argument("name")
    init.add_argument("voting_period", nargs="?", type=int, default=259200)
    init.add_argument("timelock", nargs="?", type=int, default=3600)
    init.add_argument("quorum", nargs="?", type=int, default=2500)
    init.add_argument("proposal_threshold", nargs="?", type=int, default=1)
    init.add_argument("strategy", nargs="?", default="0")
    init.add_argument("veto_enabled", nargs="?", type=_parse_bool, default=False)
    init.add_argument("veto_authority", nargs="?", type=_optional_address, default=None)
    init.add_argument("--upgrade-authority")

    propose = subparsers.add_parser("propose", help="Create a proposal")
    propose.add_argument("dao")
    propose.add_argument("proposer")
    propose.add_argument("title")
    propose.add_argument("--description", default="")
    propose.add_argument(
        "--action",
        dest="actions",
        action="append",
        default=[],
        help="TARGET:VALUE[:FUNCTION[:HEXARGS]], repeatable",
    )

    vote = subparsers.add_parser("vote", help="Cast a vote")
    vote.add_argument("dao")
    vote.add_argument("voter")
    vote.add_argument("proposal_id", type=int)
    vote.add_argument("support", help="for, against, abstain or 0/1/2")

    queue = subparsers.add_parser("queue", help="Queue a proposal after voting")
    queue.add_argument("dao")
    queue.add_argument("proposal_id", type=int)

    execute = subparsers.add_parser("execute", help="Execute a queued proposal")
    execute.add_argument("dao")
    execute.add_argument("proposal_id", type=int)
    execute.add_argument("executor")

    veto = subparsers.add_parser("veto", help="Veto a queued proposal")
    veto.add_argument("dao")
    veto.add_argument("proposal_id", type=int)
    veto.add_argument("caller")

    delegate = subparsers.add_parser("delegate", help="Delegate voting power")
    delegate.add_argument("dao")
    delegate.add_argument("delegator")
    delegate.add_argument("delegate", nargs="?")
    delegate.add_argument("--clear", action="store_true", help="Remove the delegation")

    set_power = subparsers.add_parser("set-power", help="Set an address's voting power")
    set_power.add_argument("dao")
    set_power.add_argument("voter")
    set_power.add_argument("power", type=int)
    set_power.add_argument("--capability", required=True, help="Governor capability DAO:SECRET")

    deposit = subparsers.add_parser("deposit", help="Deposit into the treasury")
    deposit.add_argument("dao")
    deposit.add_argument("depositor")
    deposit.add_argument("amount", type=int)

    show_dao = subparsers.add_parser("show-dao", help="Show DAO record")
    show_dao.add_argument("dao")

    show_proposal = subparsers.add_parser("show-proposal", help="Show a proposal and its tally")
    show_proposal.add_argument("dao")
    show_proposal.add_argument("proposal_id", type=int)

    balance = subparsers.add_parser("balance", help="Show treasury balance")
    balance.add_argument("dao")

    power = subparsers.add_parser("power", help="Show voting power of an address")
    power.add_argument("dao")
    power.add_argument("address")

    return parser


def _dao_view(engine: GovernanceEngine, dao_id: str) -> Dict[str, Any]:
    data = engine.get_dao(dao_id).to_dict()
    data.pop("capability_digest")
    return data


def run_command(engine: GovernanceEngine, args: argparse.Namespace) -> Dict[str, Any]:
    """Execute the parsed command and return its JSON result."""
    command = args.command

    if command == "init-dao":
        capability = engine.initialize_dao(
            args.address,
            args.name,
            args.voting_period,
            args.timelock,
            args.quorum,
            args.proposal_threshold,
            args.strategy,
            args.veto_enabled,
            args.veto_authority,
            args.upgrade_authority,
        )
        return {"dao_id": capability.dao_id, "capability": capability.encode()}

    if command == "propose":
        actions = [parse_action(text) for text in args.actions]
        proposal_id = engine.create_proposal(
            args.dao, args.proposer, args.title, args.description, actions
        )
        return {"proposal_id": proposal_id}

    if command == "vote":
        return engine.cast_vote(args.dao, args.voter, args.proposal_id, args.support).to_dict()

    if command == "queue":
        return engine.queue_proposal(args.dao, args.proposal_id).to_dict()

    if command == "execute":
        return engine.execute_proposal(args.dao, args.proposal_id, args.executor).to_dict()

    if command == "veto":
        return engine.veto_proposal(args.dao, args.proposal_id, args.caller).to_dict()

    if command == "delegate":
        if args.clear:
            previous = engine.clear_delegation(args.dao, args.delegator)
            return {"delegator": args.delegator, "delegate": None, "previous_delegate": previous}
        if not args.delegate:
            raise ValidationError("A delegate is required unless --clear is given", field="delegate")
        previous = engine.delegate_voting_power(args.dao, args.delegator, args.delegate)
        return {"delegator": args.delegator, "delegate": args.delegate, "previous_delegate": previous}

    if command == "set-power":
        capability = GovernorCapability.decode(args.capability)
        previous = engine.set_voting_power(args.dao, capability, args.voter, args.power)
        return {
            "voter": args.voter,
            "power": args.power,
            "previous_power": previous,
            "total_voting_power": engine.get_total_voting_power(args.dao),
        }

    if command == "deposit":
        return {"treasury_balance": engine.deposit_to_treasury(args.dao, args.depositor, args.amount)}

    if command == "show-dao":
        return _dao_view(engine, args.dao)

    if command == "show-proposal":
        data = engine.get_proposal(args.dao, args.proposal_id).to_dict()
        data["tally"] = engine.get_tally(args.dao, args.proposal_id).to_dict()
        data["timelock_remaining"] = engine.get_timelock_remaining(args.dao, args.proposal_id)
        return data

    if command == "balance":
        return {"treasury_balance": engine.get_treasury_balance(args.dao)}

    if command == "power":
        return {
            "address": args.address,
            "voting_power": engine.get_voting_power_for_address(args.dao, args.address),
            "effective_voting_power": engine.get_effective_voting_power(args.dao, args.address),
            "delegate": engine.get_delegate(args.dao, args.address),
        }

    raise ValidationError(f"Unknown command: {command}", field="command", value=command)


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        setup_logging(LogConfig(level=args.log_level, format_type=args.log_format))
    except (ValueError, DaoGovError) as e:
        parser.error(str(e))

    try:
        clock: GovernanceClock = ManualClock(args.now) if args.now is not None else SystemClock()
        settings = GovernanceSettings.from_env()
        store = SQLiteStore(DatabaseConfig(database_path=args.db))
    except DaoGovError as e:
        print(json.dumps(e.to_dict(), sort_keys=True), file=sys.stderr)
        shutdown_logging()
        return 1

    try:
        engine = GovernanceEngine(store=store, clock=clock, settings=settings)
        result = run_command(engine, args)
    except DaoGovError as e:
        logger.debug(f"Command {args.command} failed: {e}")
        print(json.dumps(e.to_dict(), sort_keys=True), file=sys.stderr)
        return 1
    finally:
        store.close()
        shutdown_logging()

    print(json.dumps(result, indent=2, sort_keys=True))
    return 0


if __name__ == "__main__":
    sys.exit(main())
