"""
Wallet client store

Holds the client's view of the account (balance, transaction list, paging
and loading flags) and keeps it in step with the server. Deposits and
withdrawals are applied optimistically and then confirmed or reverted;
transfers and loans go straight to the server. A periodic smart sync pulls
the authoritative balance and newest page and reconciles them with local
state.

All state is owned by one WalletStore instance and mutated on a single
asyncio event loop, so the only interleaving points are network awaits.
"""

import asyncio
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Set

from ..config import BankingConfig, get_config
from ..errors import BankingError, ErrorKind
from ..logging_config import get_logger, log_action
from ..money import ZERO, amounts_match, format_amount, to_amount
from .models import (
    TEMP_ID_PREFIX, TransactionStatus, WalletSummary, WalletTransaction
)
from .reconcile import (
    MatchRules, find_new_transactions, merge_transactions, purge_stale_optimistic
)
from .services import TransactionService, WalletService


logger = get_logger("banking.client.store")


class MutationState(Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    REVERTED = "reverted"


@dataclass
class OptimisticMutation:
    """One in-flight deposit or withdrawal"""
    kind: str
    balance_delta: Decimal
    transaction: WalletTransaction
    state: MutationState = MutationState.PENDING


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class WalletStore:
    """
    Client state for one wallet

    Args:
        wallet_service: Balance and money-movement calls
        transaction_service: History calls
        config: Client settings (sync cadence, dedup rules, page size)
        clock: Returns the current UTC time; optimistic rows are stamped
            with it and the stale purge measures age against it
    """

    def __init__(
        self,
        wallet_service: WalletService,
        transaction_service: TransactionService,
        config: Optional[BankingConfig] = None,
        clock: Optional[Callable[[], datetime]] = None
    ):
        self.wallet_service = wallet_service
        self.transaction_service = transaction_service
        self.config = config or get_config()
        self._clock = clock or _utc_now

        self.rules = MatchRules(
            epsilon=Decimal(self.config.client_amount_epsilon),
            window=timedelta(seconds=self.config.client_duplicate_window_seconds)
        )
        self.page_size = self.config.client_page_size

        self.balance: Decimal = ZERO
        self.currency: str = self.config.client_currency
        self.source: Optional[str] = None
        self.summary: Optional[WalletSummary] = None
        self.transactions: List[WalletTransaction] = []
        self.page = 0
        self.has_more = True
        self.is_loading = False
        self.is_loading_more = False
        self.error: Optional[BankingError] = None
        self.last_synced_at: Optional[datetime] = None

        self._in_flight: Dict[str, OptimisticMutation] = {}
        self._sync_task: Optional[asyncio.Task] = None
        self._pending_syncs: Set[asyncio.Task] = set()
        self._closed = False

    @classmethod
    def from_config(cls, config: Optional[BankingConfig] = None) -> "WalletStore":
        """Build a store with its own HTTP services"""
        config = config or get_config()
        options = dict(
            base_url=config.client_api_base_url,
            timeout=config.client_timeout_seconds,
            currency=config.client_currency
        )
        return cls(WalletService(**options), TransactionService(**options), config)

    # Lifecycle

    async def __aenter__(self) -> "WalletStore":
        self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.aclose()

    def start(self):
        """Launch the periodic sync loop"""
        if self._sync_task is None or self._sync_task.done():
            self._sync_task = asyncio.get_running_loop().create_task(self._sync_loop())

    async def aclose(self):
        """Stop background syncs and close the HTTP clients"""
        self._closed = True
        tasks = list(self._pending_syncs)
        if self._sync_task is not None:
            tasks.append(self._sync_task)
            self._sync_task = None
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._pending_syncs.clear()
        await self.wallet_service.aclose()
        await self.transaction_service.aclose()

    async def _sync_loop(self):
        interval = self.config.client_sync_interval_seconds
        while True:
            await asyncio.sleep(interval)
            await self._safe_sync()

    async def _safe_sync(self):
        try:
            await self.smart_sync()
        except BankingError as e:
            logger.warning(f"Background sync failed: {e.message}")

    def schedule_sync(self, delay: Optional[float] = None) -> Optional[asyncio.Task]:
        """Run a smart sync after a delay without blocking the caller"""
        if self._closed:
            return None
        if delay is None:
            delay = self.config.client_post_mutation_sync_delay_seconds

        async def delayed():
            await asyncio.sleep(delay)
            await self._safe_sync()

        task = asyncio.get_running_loop().create_task(delayed())
        self._pending_syncs.add(task)
        task.add_done_callback(self._pending_syncs.discard)
        return task

    async def drain_pending_syncs(self):
        """Wait for every scheduled sync to finish"""
        while self._pending_syncs:
            await asyncio.gather(*list(self._pending_syncs), return_exceptions=True)

    # Read views

    @property
    def formatted_balance(self) -> str:
        return format_amount(self.balance, self.currency)

    @property
    def pending_mutations(self) -> List[OptimisticMutation]:
        return list(self._in_flight.values())

    def clear_error(self):
        self.error = None

    async def fetch_wallet(self):
        """Load the balance, from the backend or the mock fixture"""
        self.is_loading = True
        try:
            wallet = await self.wallet_service.get_wallet_balance()
        except BankingError as e:
            self.error = e
            raise
        finally:
            self.is_loading = False
        self.balance = wallet.balance
        self.currency = wallet.currency
        self.source = wallet.source
        self.error = None

    async def fetch_summary(self) -> WalletSummary:
        try:
            self.summary = await self.wallet_service.get_account_summary()
        except BankingError as e:
            self.error = e
            raise
        return self.summary

    async def fetch_transactions(self):
        """Replace the list with the first page"""
        self.is_loading = True
        try:
            result = await self.transaction_service.get_transactions(1, self.page_size)
        except BankingError as e:
            self.error = e
            raise
        finally:
            self.is_loading = False
        self.transactions = result.transactions
        self.page = 1
        self.has_more = len(result.transactions) >= self.page_size
        self.source = result.source
        self.error = None

    async def load_more(self) -> int:
        """
        Append the next page

        Returns:
            Number of rows added; 0 when nothing more can be loaded or a
            load is already running
        """
        if self.is_loading_more or not self.has_more:
            return 0

        self.is_loading_more = True
        try:
            result = await self.transaction_service.get_transactions(self.page + 1, self.page_size)
        except BankingError as e:
            self.error = e
            raise
        finally:
            self.is_loading_more = False

        fresh = find_new_transactions(self.transactions, result.transactions, self.rules)
        self.transactions = self.transactions + fresh
        self.page += 1
        self.has_more = len(result.transactions) >= self.page_size
        return len(fresh)

    # Optimistic mutations

    def _begin(self, kind: str, amount: Decimal, description: str,
               balance_delta: Decimal) -> OptimisticMutation:
        if kind in self._in_flight:
            raise BankingError(ErrorKind.VALIDATION, f"A {kind} is already in progress")

        now = self._clock()
        transaction = WalletTransaction(
            id=f"{TEMP_ID_PREFIX}{int(now.timestamp() * 1000)}_{uuid.uuid4().hex[:8]}",
            type=kind,
            amount=amount,
            date=now,
            description=description,
            currency=self.currency,
            status=TransactionStatus.PENDING
        )
        mutation = OptimisticMutation(kind, balance_delta, transaction)
        self._in_flight[kind] = mutation
        self.transactions.insert(0, transaction)
        self.balance = to_amount(self.balance + balance_delta)
        return mutation

    def _settle(self, mutation: OptimisticMutation, state: MutationState):
        mutation.state = state
        self._in_flight.pop(mutation.kind, None)
        self.transactions = [t for t in self.transactions if t.id != mutation.transaction.id]

    def _confirm(self, mutation: OptimisticMutation, response: Dict[str, Any]):
        self._settle(mutation, MutationState.CONFIRMED)
        new_balance = response.get("newBalance")
        if new_balance is not None:
            # Server balance excludes mutations still in flight
            pending = sum((m.balance_delta for m in self._in_flight.values()), ZERO)
            self.balance = to_amount(to_amount(new_balance) + pending)
        self.error = None
        log_action(
            logger, "INFO", f"Optimistic {mutation.kind} confirmed",
            action="confirm", resource=mutation.kind,
            extra={"amount": str(mutation.transaction.amount)}
        )

    def _revert(self, mutation: OptimisticMutation, error: BankingError):
        self._settle(mutation, MutationState.REVERTED)
        self.balance = to_amount(self.balance - mutation.balance_delta)
        self.error = error
        log_action(
            logger, "WARNING", f"Optimistic {mutation.kind} reverted: {error.message}",
            action="revert", resource=mutation.kind,
            extra={"kind": error.kind.code}
        )

    async def _run_optimistic(self, mutation: OptimisticMutation, call) -> Dict[str, Any]:
        try:
            response = await call
        except BankingError as e:
            self._revert(mutation, e)
            self.schedule_sync()
            raise
        except asyncio.CancelledError:
            self._revert(mutation, BankingError(ErrorKind.NETWORK, "Request cancelled"))
            raise
        self._confirm(mutation, response)
        self.schedule_sync()
        return response

    async def deposit(self, amount: Any, payment_method: str) -> Dict[str, Any]:
        """Deposit with an immediate local effect"""
        value = self.wallet_service.validate_deposit(amount, payment_method)
        mutation = self._begin("deposit", value, f"Deposit via {payment_method}", value)
        return await self._run_optimistic(
            mutation, self.wallet_service.deposit(value, payment_method)
        )

    async def withdraw(self, amount: Any, withdrawal_method: str) -> Dict[str, Any]:
        """Withdraw with an immediate local effect; checks the local balance first"""
        value = self.wallet_service.validate_withdrawal(amount, withdrawal_method)
        if value > self.balance:
            raise BankingError(
                ErrorKind.INSUFFICIENT_FUNDS, "Insufficient funds",
                {"balance": str(self.balance), "requested": str(value)}
            )
        mutation = self._begin("withdrawal", value, f"Withdrawal to {withdrawal_method}", -value)
        return await self._run_optimistic(
            mutation, self.wallet_service.withdraw(value, withdrawal_method)
        )

    # Server-first mutations

    async def transfer(self, recipient: str, amount: Any) -> Dict[str, Any]:
        try:
            response = await self.wallet_service.transfer_money(recipient, amount)
        except BankingError as e:
            self.error = e
            raise
        self.error = None
        self.schedule_sync()
        return response

    async def request_loan(self, amount: Any) -> Dict[str, Any]:
        try:
            response = await self.wallet_service.request_loan(amount)
        except BankingError as e:
            self.error = e
            raise
        self.error = None
        self.schedule_sync()
        return response

    # Sync

    async def smart_sync(self):
        """
        Reconcile local state with the server

        The balance is only overwritten while no optimistic mutation is in
        flight, and only when it differs by more than epsilon. Backend
        failures leave local state as it was (no mock fallback here) but
        stale optimistic rows are purged regardless.
        """
        try:
            wallet = await self.wallet_service.get_wallet_balance(allow_fallback=False)
            if not self._in_flight and not amounts_match(wallet.balance, self.balance, self.rules.epsilon):
                logger.info(f"Balance corrected from {self.balance} to {wallet.balance}")
                self.balance = wallet.balance

            result = await self.transaction_service.get_transactions(
                1, self.page_size, allow_fallback=False
            )
            self.transactions = merge_transactions(self.transactions, result.transactions, self.rules)
            self.source = "backend"
            self.last_synced_at = self._clock()
        finally:
            self.transactions = purge_stale_optimistic(
                self.transactions,
                self._clock(),
                timedelta(seconds=self.config.client_optimistic_max_age_seconds)
            )
