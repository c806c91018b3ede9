"""
Transaction Processing Module

Applies balance mutations (deposits, withdrawals, transfers, loans) to
accounts. Every mutation updates the stored balance and appends immutable
transaction rows inside one atomic unit of work, so either both land or
neither does.
"""

from decimal import Decimal
from datetime import datetime
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Tuple
from enum import Enum
import uuid

from .accounts import Account, AccountManager, utc_now
from .errors import BankingError, ErrorKind
from .logging_config import get_logger, log_action
from .money import ZERO, AmountLike, to_amount
from .storage import StorageInterface, StorageRecord


class TransactionType(Enum):
    """Types of ledger transactions"""
    DEPOSIT = "DEPOSIT"
    WITHDRAWAL = "WITHDRAWAL"
    TRANSFER_IN = "TRANSFER_IN"
    TRANSFER_OUT = "TRANSFER_OUT"
    LOAN = "LOAN"
    INTEREST = "INTEREST"


INFLOW_TYPES = frozenset({
    TransactionType.DEPOSIT,
    TransactionType.TRANSFER_IN,
    TransactionType.LOAN,
    TransactionType.INTEREST,
})
OUTFLOW_TYPES = frozenset({TransactionType.WITHDRAWAL, TransactionType.TRANSFER_OUT})


@dataclass
class Transaction(StorageRecord):
    """
    Immutable ledger row. Amount is signed: positive for inflows,
    negative for outflows.
    """
    account_id: str
    transaction_type: TransactionType
    amount: Decimal
    description: str
    recipient: Optional[str] = None

    def __post_init__(self):
        self.amount = to_amount(self.amount)

    @property
    def is_inflow(self) -> bool:
        return self.transaction_type in INFLOW_TYPES


@dataclass(frozen=True)
class AccountSummary:
    """Aggregated totals over an account's full history"""
    total_in: Decimal
    total_out: Decimal
    interest: Decimal


@dataclass(frozen=True)
class Posting:
    """A committed single-account mutation and the balance it left behind"""
    transaction: Transaction
    new_balance: Decimal


class TransactionProcessor:
    """
    Processes balance mutations and serves transaction history
    """

    def __init__(
        self,
        storage: StorageInterface,
        account_manager: AccountManager,
        clock: Optional[Callable[[], datetime]] = None,
        loan_max_ratio: Decimal = Decimal("0.10"),
        max_page_size: int = 100
    ):
        self.storage = storage
        self.account_manager = account_manager
        self.clock = clock or utc_now
        self.loan_max_ratio = Decimal(loan_max_ratio)
        self.max_page_size = max_page_size
        self.table_name = "transactions"
        self.logger = get_logger("banking.transactions")

    def deposit(self, account_id: str, amount: AmountLike, payment_method: str) -> Posting:
        """
        Credit an account

        Args:
            account_id: Account to credit
            amount: Positive amount
            payment_method: Funding source shown in the description

        Returns:
            Posting with the DEPOSIT row and the new balance
        """
        value = self._positive_amount(amount)

        with self.storage.atomic():
            account = self.account_manager.require_account(account_id)
            account.balance = account.balance + value
            self.account_manager.save_account(account)
            transaction = self._append(
                account, TransactionType.DEPOSIT, value, f"Deposit via {payment_method}"
            )

        self._log_posting("Deposit posted", "deposit", account, value)
        return Posting(transaction, account.balance)

    def withdraw(self, account_id: str, amount: AmountLike, withdrawal_method: str) -> Posting:
        """
        Debit an account

        Raises:
            BankingError: VALIDATION for non-positive amounts, NOT_FOUND for
                unknown accounts, INSUFFICIENT_FUNDS when balance < amount
        """
        value = self._positive_amount(amount)

        with self.storage.atomic():
            account = self.account_manager.require_account(account_id)
            self._ensure_funds(account, value)
            account.balance = account.balance - value
            self.account_manager.save_account(account)
            transaction = self._append(
                account, TransactionType.WITHDRAWAL, -value, f"Withdrawal to {withdrawal_method}"
            )

        self._log_posting("Withdrawal posted", "withdraw", account, value)
        return Posting(transaction, account.balance)

    def transfer(
        self,
        from_account_id: str,
        to_username: str,
        amount: AmountLike
    ) -> Tuple[Transaction, Transaction]:
        """
        Move funds to another active account identified by username

        Both balances and both rows are written in one unit of work.

        Returns:
            (TRANSFER_OUT row on the sender, TRANSFER_IN row on the recipient)
        """
        value = self._positive_amount(amount)

        with self.storage.atomic():
            sender = self.account_manager.require_account(from_account_id)
            recipient = self.account_manager.get_account_by_username(to_username)
            if not recipient:
                raise BankingError(
                    ErrorKind.NOT_FOUND,
                    "Recipient not found",
                    {"recipient": to_username}
                )
            if recipient.id == sender.id:
                raise BankingError(ErrorKind.VALIDATION, "Cannot transfer to the same account")
            self._ensure_funds(sender, value)

            sender.balance = sender.balance - value
            recipient.balance = recipient.balance + value
            self.account_manager.save_account(sender)
            self.account_manager.save_account(recipient)

            outgoing = self._append(
                sender, TransactionType.TRANSFER_OUT, -value,
                f"Transfer to {recipient.username}", recipient=recipient.username
            )
            incoming = self._append(
                recipient, TransactionType.TRANSFER_IN, value,
                f"Transfer from {sender.username}", recipient=sender.username
            )

        log_action(
            self.logger, "info", "Transfer posted",
            account_id=sender.id, action="transfer", resource="transaction",
            extra={"amount": str(value), "recipient": recipient.username}
        )
        return outgoing, incoming

    def request_loan(self, account_id: str, amount: AmountLike) -> Posting:
        """
        Approve and credit a loan of at most ``loan_max_ratio`` of the balance

        Raises:
            BankingError: DENIED when the amount exceeds the cap
        """
        value = self._positive_amount(amount)

        with self.storage.atomic():
            account = self.account_manager.require_account(account_id)
            limit = account.balance * self.loan_max_ratio
            if value > limit:
                log_action(
                    self.logger, "warning", "Loan denied",
                    account_id=account_id, action="request_loan", resource="transaction",
                    extra={"amount": str(value), "limit": str(to_amount(limit))}
                )
                raise BankingError(
                    ErrorKind.DENIED,
                    "Loan request denied",
                    {"max_amount": str(to_amount(limit))}
                )

            account.balance = account.balance + value
            self.account_manager.save_account(account)
            transaction = self._append(account, TransactionType.LOAN, value, "Loan approved")

        self._log_posting("Loan approved", "request_loan", account, value)
        return Posting(transaction, account.balance)

    def list_transactions(self, account_id: str, page: int = 1, page_size: int = 20) -> List[Transaction]:
        """Get an account's transactions newest-first, one page at a time"""
        if page < 1:
            raise BankingError(ErrorKind.VALIDATION, "Page must be a positive number")
        if page_size < 1 or page_size > self.max_page_size:
            raise BankingError(
                ErrorKind.VALIDATION,
                f"Page size must be between 1 and {self.max_page_size}"
            )

        self.account_manager.require_account(account_id)
        rows = self.storage.find_sorted(
            self.table_name,
            {"account_id": account_id},
            order_by="created_at",
            descending=True,
            offset=(page - 1) * page_size,
            limit=page_size
        )
        return [self._transaction_from_dict(row) for row in rows]

    def get_account_summary(self, account_id: str) -> AccountSummary:
        """Aggregate in/out/interest totals from the full history"""
        self.account_manager.require_account(account_id)
        rows = self.storage.find(self.table_name, {"account_id": account_id})

        total_in = ZERO
        total_out = ZERO
        interest = ZERO
        for row in rows:
            transaction = self._transaction_from_dict(row)
            if transaction.transaction_type in INFLOW_TYPES:
                total_in += transaction.amount
            elif transaction.transaction_type in OUTFLOW_TYPES:
                total_out += abs(transaction.amount)
            if transaction.transaction_type == TransactionType.INTEREST:
                interest += transaction.amount

        return AccountSummary(total_in=total_in, total_out=total_out, interest=interest)

    def record_transaction(
        self,
        account_id: str,
        transaction_type: TransactionType,
        amount: AmountLike,
        description: str,
        recipient: Optional[str] = None,
        created_at: Optional[datetime] = None
    ) -> Transaction:
        """
        Append a historical row without touching the balance

        Used when loading existing history (seed data, imports) whose effect
        is already reflected in the opening balance.
        """
        account = self.account_manager.require_account(account_id)
        with self.storage.atomic():
            return self._append(
                account, transaction_type, to_amount(amount), description,
                recipient=recipient, created_at=created_at
            )

    def _append(
        self,
        account: Account,
        transaction_type: TransactionType,
        amount: Decimal,
        description: str,
        recipient: Optional[str] = None,
        created_at: Optional[datetime] = None
    ) -> Transaction:
        transaction = Transaction(
            id=str(uuid.uuid4()),
            created_at=created_at or self.clock(),
            account_id=account.id,
            transaction_type=transaction_type,
            amount=amount,
            description=description,
            recipient=recipient
        )
        self.storage.save(self.table_name, transaction.id, self._transaction_to_dict(transaction))
        return transaction

    def _positive_amount(self, amount: AmountLike) -> Decimal:
        try:
            value = to_amount(amount)
        except ValueError as e:
            raise BankingError(ErrorKind.VALIDATION, str(e))
        if value <= ZERO:
            raise BankingError(ErrorKind.VALIDATION, "Amount must be positive")
        return value

    def _ensure_funds(self, account: Account, amount: Decimal) -> None:
        if account.balance < amount:
            log_action(
                self.logger, "warning", "Insufficient funds",
                account_id=account.id, action="debit", resource="account",
                extra={"amount": str(amount)}
            )
            raise BankingError(
                ErrorKind.INSUFFICIENT_FUNDS,
                "Insufficient funds",
                {"balance": str(account.balance), "amount": str(amount)}
            )

    def _log_posting(self, message: str, action: str, account: Account, amount: Decimal) -> None:
        log_action(
            self.logger, "info", message,
            account_id=account.id, action=action, resource="transaction",
            extra={"amount": str(amount), "balance": str(account.balance)}
        )

    def _transaction_to_dict(self, transaction: Transaction) -> Dict:
        """Convert Transaction to dictionary for storage"""
        result = transaction.to_dict()
        result['transaction_type'] = transaction.transaction_type.value
        return result

    def _transaction_from_dict(self, data: Dict) -> Transaction:
        """Convert dictionary to Transaction"""
        return Transaction(
            id=data['id'],
            created_at=datetime.fromisoformat(data['created_at']),
            account_id=data['account_id'],
            transaction_type=TransactionType(data['transaction_type']),
            amount=Decimal(data['amount']),
            description=data['description'],
            recipient=data.get('recipient')
        )
