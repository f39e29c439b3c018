"""Storage namespaces and key layout for governance tables."""

DAO_NAMESPACE = "dao"
PROPOSALS_NAMESPACE = "proposals"
VOTES_NAMESPACE = "votes"
DELEGATIONS_NAMESPACE = "delegations"
VOTING_POWER_NAMESPACE = "voting_power"
PAYOUTS_NAMESPACE = "payouts"

KEY_SEPARATOR = "/"


def dao_prefix(dao_id: str) -> str:
    return f"{dao_id}{KEY_SEPARATOR}"


def address_key(dao_id: str, address: str) -> str:
    """Key for per-address tables (delegations, voting power, payouts)."""
    return f"{dao_prefix(dao_id)}{address}"


def proposal_key(dao_id: str, proposal_id: int) -> str:
    # Zero-padded so key order matches id order
    return f"{dao_prefix(dao_id)}{proposal_id:020d}"


def votes_prefix(dao_id: str, proposal_id: int) -> str:
    return f"{proposal_key(dao_id, proposal_id)}{KEY_SEPARATOR}"


def vote_key(dao_id: str, proposal_id: int, voter: str) -> str:
    return f"{votes_prefix(dao_id, proposal_id)}{voter}"


def strip_prefix(key: str, prefix: str) -> str:
    return key[len(prefix):]
