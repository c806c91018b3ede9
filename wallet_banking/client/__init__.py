"""
Wallet client: HTTP services, reconciliation and the client-side store
"""

from .models import (
    TEMP_ID_PREFIX, TransactionPage, TransactionStatus, WalletBalance,
    WalletSummary, WalletTransaction, display_name, transform_transaction_type
)
from .reconcile import (
    MatchRules, find_new_transactions, is_duplicate, merge_transactions,
    purge_stale_optimistic
)
from .services import TransactionService, WalletService
from .store import MutationState, OptimisticMutation, WalletStore

__all__ = [
    "TEMP_ID_PREFIX",
    "TransactionPage",
    "TransactionStatus",
    "WalletBalance",
    "WalletSummary",
    "WalletTransaction",
    "display_name",
    "transform_transaction_type",
    "MatchRules",
    "find_new_transactions",
    "is_duplicate",
    "merge_transactions",
    "purge_stale_optimistic",
    "TransactionService",
    "WalletService",
    "MutationState",
    "OptimisticMutation",
    "WalletStore",
]
