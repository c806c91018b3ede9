"""
Reconciliation of local and server transaction lists

Pure functions, no I/O. Rows match by id. When one side is an optimistic
row (client-generated ``temp_`` id) ids can never match, so a heuristic
takes over: same type, amount within epsilon, timestamps within the window,
and a description that mentions the type's keyword.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Iterable, List, Sequence

from ..money import amounts_match
from .models import TYPE_KEYWORDS, WalletTransaction


@dataclass(frozen=True)
class MatchRules:
    epsilon: Decimal = Decimal("0.01")
    window: timedelta = timedelta(seconds=120)


DEFAULT_RULES = MatchRules()


def descriptions_cross_reference(a: WalletTransaction, b: WalletTransaction) -> bool:
    """Either description mentions the other row's type keyword"""
    keyword_a = TYPE_KEYWORDS.get(a.type, a.type)
    keyword_b = TYPE_KEYWORDS.get(b.type, b.type)
    return keyword_b in a.description.lower() or keyword_a in b.description.lower()


def is_duplicate(a: WalletTransaction, b: WalletTransaction, rules: MatchRules = DEFAULT_RULES) -> bool:
    """Heuristic equality for rows whose ids cannot be compared"""
    return (
        a.type == b.type
        and amounts_match(a.amount, b.amount, rules.epsilon)
        and abs(a.date - b.date) <= rules.window
        and descriptions_cross_reference(a, b)
    )


def same_transaction(a: WalletTransaction, b: WalletTransaction, rules: MatchRules = DEFAULT_RULES) -> bool:
    if a.id == b.id:
        return True
    if a.is_optimistic or b.is_optimistic:
        return is_duplicate(a, b, rules)
    return False


def sort_newest_first(transactions: Iterable[WalletTransaction]) -> List[WalletTransaction]:
    return sorted(transactions, key=lambda txn: txn.date, reverse=True)


def find_new_transactions(
    existing: Sequence[WalletTransaction],
    incoming: Sequence[WalletTransaction],
    rules: MatchRules = DEFAULT_RULES
) -> List[WalletTransaction]:
    """Incoming rows that match nothing already present (or earlier in incoming)"""
    fresh: List[WalletTransaction] = []
    for candidate in incoming:
        if any(same_transaction(candidate, known, rules) for known in existing):
            continue
        if any(same_transaction(candidate, known, rules) for known in fresh):
            continue
        fresh.append(candidate)
    return fresh


def drop_confirmed_optimistic(
    existing: Sequence[WalletTransaction],
    incoming: Sequence[WalletTransaction],
    rules: MatchRules = DEFAULT_RULES
) -> List[WalletTransaction]:
    """
    Remove optimistic rows that a server row now stands for

    Each server row confirms at most one optimistic row.
    """
    claimed = set()
    kept: List[WalletTransaction] = []
    for txn in existing:
        if txn.is_optimistic:
            match = next(
                (
                    server for server in incoming
                    if not server.is_optimistic
                    and server.id not in claimed
                    and is_duplicate(txn, server, rules)
                ),
                None
            )
            if match is not None:
                claimed.add(match.id)
                continue
        kept.append(txn)
    return kept


def merge_transactions(
    existing: Sequence[WalletTransaction],
    incoming: Sequence[WalletTransaction],
    rules: MatchRules = DEFAULT_RULES
) -> List[WalletTransaction]:
    """
    Merge server rows into the local list

    Returns the deduplicated union, newest first. Optimistic rows confirmed
    by a server row are replaced by it; genuinely new server rows are added.
    """
    kept = drop_confirmed_optimistic(existing, incoming, rules)
    # Optimistic rows still kept match no unclaimed server row
    settled = [txn for txn in kept if not txn.is_optimistic]
    fresh = find_new_transactions(settled, incoming, rules)
    return sort_newest_first(fresh + kept)


def purge_stale_optimistic(
    transactions: Sequence[WalletTransaction],
    now: datetime,
    max_age: timedelta
) -> List[WalletTransaction]:
    """Drop optimistic rows older than max_age, whatever their state"""
    return [
        txn for txn in transactions
        if not (txn.is_optimistic and now - txn.date > max_age)
    ]
