"""
Read-only helpers over client transaction lists
"""

from datetime import datetime
from decimal import Decimal
from typing import Dict, Iterable, List, Optional

from ..errors import BankingError, ErrorKind
from ..money import ZERO
from .models import OUTFLOW_TYPES, WalletTransaction, display_name


SORT_KEYS = ("date-desc", "date-asc", "amount-desc", "amount-asc", "type")


def filter_by_type(transactions: Iterable[WalletTransaction], transaction_type: str) -> List[WalletTransaction]:
    """Rows of one type; "all" returns everything"""
    if transaction_type == "all":
        return list(transactions)
    return [txn for txn in transactions if txn.type == transaction_type]


def sort_transactions(transactions: Iterable[WalletTransaction], sort_by: str = "date-desc") -> List[WalletTransaction]:
    if sort_by == "date-desc":
        return sorted(transactions, key=lambda t: t.date, reverse=True)
    if sort_by == "date-asc":
        return sorted(transactions, key=lambda t: t.date)
    if sort_by == "amount-desc":
        return sorted(transactions, key=lambda t: t.amount, reverse=True)
    if sort_by == "amount-asc":
        return sorted(transactions, key=lambda t: t.amount)
    if sort_by == "type":
        return sorted(transactions, key=lambda t: t.type)
    raise BankingError(ErrorKind.VALIDATION, f"Unknown sort order: {sort_by}",
                       {"allowed": list(SORT_KEYS)})


def search_transactions(transactions: Iterable[WalletTransaction], query: str) -> List[WalletTransaction]:
    """Case-insensitive match on description, type name or recipient"""
    needle = query.strip().lower()
    if not needle:
        return list(transactions)
    return [
        txn for txn in transactions
        if needle in txn.description.lower()
        or needle in display_name(txn.type).lower()
        or (txn.recipient and needle in txn.recipient.lower())
    ]


def in_date_range(transactions: Iterable[WalletTransaction], start: datetime,
                  end: datetime) -> List[WalletTransaction]:
    """Rows with start <= date <= end"""
    if start > end:
        raise BankingError(ErrorKind.VALIDATION, "Start date must be before end date")
    return [txn for txn in transactions if start <= txn.date <= end]


def recent(transactions: Iterable[WalletTransaction], limit: int = 5) -> List[WalletTransaction]:
    return sort_transactions(transactions, "date-desc")[:limit]


def summarize(transactions: Iterable[WalletTransaction]) -> Dict[str, object]:
    """
    Totals over a list of client rows

    Returns:
        Dictionary with total_in, total_out, net, count and a per-type
        breakdown of {count, amount}
    """
    total_in = ZERO
    total_out = ZERO
    by_type: Dict[str, Dict[str, object]] = {}
    count = 0

    for txn in transactions:
        count += 1
        if txn.type in OUTFLOW_TYPES:
            total_out += txn.amount
        else:
            total_in += txn.amount
        bucket = by_type.setdefault(txn.type, {"count": 0, "amount": ZERO})
        bucket["count"] += 1
        bucket["amount"] += txn.amount

    return {
        "total_in": total_in,
        "total_out": total_out,
        "net": total_in - total_out,
        "count": count,
        "by_type": by_type,
    }


def find_by_id(transactions: Iterable[WalletTransaction], transaction_id: str) -> Optional[WalletTransaction]:
    return next((txn for txn in transactions if txn.id == transaction_id), None)


def largest(transactions: Iterable[WalletTransaction]) -> Optional[WalletTransaction]:
    rows = list(transactions)
    if not rows:
        return None
    return max(rows, key=lambda t: t.amount)


def total_amount(transactions: Iterable[WalletTransaction]) -> Decimal:
    """Signed sum: inflows minus outflows"""
    return sum((txn.signed_amount for txn in transactions), ZERO)
