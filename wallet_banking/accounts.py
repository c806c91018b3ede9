"""
Account Management Module

Manages wallet accounts: creation at seed/signup time, lookup by id or
username, and closure. Closed accounts are soft-deleted; they keep their
balance and history but are invisible to every ledger operation.
"""

from decimal import Decimal
from datetime import datetime, timezone
from dataclasses import dataclass
from typing import Callable, Dict, Optional
import hmac
import uuid

from .errors import BankingError, ErrorKind
from .logging_config import get_logger, log_action
from .money import ZERO, to_amount
from .storage import StorageInterface, StorageRecord


def utc_now() -> datetime:
    """Default clock for record timestamps"""
    return datetime.now(timezone.utc)


@dataclass
class Account(StorageRecord):
    """
    Wallet account holding a single fixed-point balance
    """
    username: str
    first_name: str
    last_name: str
    balance: Decimal
    pin: str
    is_active: bool = True

    def __post_init__(self):
        self.balance = to_amount(self.balance)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    def can_transact(self) -> bool:
        """Check if account can process transactions"""
        return self.is_active


class AccountManager:
    """
    Manages account lifecycle and lookups
    """

    def __init__(
        self,
        storage: StorageInterface,
        clock: Optional[Callable[[], datetime]] = None
    ):
        self.storage = storage
        self.clock = clock or utc_now
        self.accounts_table = "accounts"
        self.logger = get_logger("banking.accounts")

    def create_account(
        self,
        username: str,
        first_name: str,
        last_name: str,
        pin: str,
        balance: Decimal = ZERO,
        account_id: Optional[str] = None
    ) -> Account:
        """
        Create a new account

        Args:
            username: Unique login/transfer handle
            first_name: Holder's first name
            last_name: Holder's last name
            pin: Secret PIN used to confirm closure
            balance: Opening balance
            account_id: Specific id (generated if not provided)

        Returns:
            Created Account object

        Raises:
            BankingError: VALIDATION if the username is taken or the opening
                balance is negative
        """
        if not username or not username.strip():
            raise BankingError(ErrorKind.VALIDATION, "Username is required")

        opening_balance = to_amount(balance)
        if opening_balance < ZERO:
            raise BankingError(ErrorKind.VALIDATION, "Opening balance cannot be negative")

        with self.storage.atomic():
            if self.storage.find(self.accounts_table, {"username": username}):
                raise BankingError(
                    ErrorKind.VALIDATION,
                    f"Username {username} is already taken",
                    {"username": username}
                )

            account = Account(
                id=account_id or str(uuid.uuid4()),
                created_at=self.clock(),
                username=username,
                first_name=first_name,
                last_name=last_name,
                balance=opening_balance,
                pin=pin
            )
            self.save_account(account)

        log_action(
            self.logger, "info", "Account created",
            account_id=account.id, action="create_account", resource="account",
            extra={"username": username}
        )
        return account

    def get_account(self, account_id: str) -> Optional[Account]:
        """Get an active account by ID"""
        account_dict = self.storage.load(self.accounts_table, account_id)
        if account_dict and account_dict.get("is_active"):
            return self._account_from_dict(account_dict)
        return None

    def get_account_by_username(self, username: str) -> Optional[Account]:
        """Get an active account by username"""
        accounts = self.storage.find(
            self.accounts_table, {"username": username, "is_active": True}
        )
        if accounts:
            return self._account_from_dict(accounts[0])
        return None

    def require_account(self, account_id: str) -> Account:
        """Get an active account or raise NOT_FOUND"""
        account = self.get_account(account_id)
        if not account:
            raise BankingError(
                ErrorKind.NOT_FOUND,
                "Account not found",
                {"account_id": account_id}
            )
        return account

    def close_account(self, account_id: str, username: str, pin: str) -> Account:
        """
        Close an account after verifying the holder's username and PIN

        Balance and transaction history are kept; the account simply stops
        being visible to ledger operations.

        Raises:
            BankingError: NOT_FOUND for unknown or closed accounts, DENIED
                when the credentials do not match
        """
        with self.storage.atomic():
            account = self.require_account(account_id)

            username_ok = hmac.compare_digest(account.username.encode(), (username or "").encode())
            pin_ok = hmac.compare_digest(account.pin.encode(), (pin or "").encode())
            if not (username_ok and pin_ok):
                log_action(
                    self.logger, "warning", "Account closure rejected",
                    account_id=account_id, action="close_account", resource="account"
                )
                raise BankingError(ErrorKind.DENIED, "Account closure failed")

            account.is_active = False
            self.save_account(account)

        log_action(
            self.logger, "info", "Account closed",
            account_id=account_id, action="close_account", resource="account"
        )
        return account

    def save_account(self, account: Account) -> None:
        """Save account to storage"""
        self.storage.save(self.accounts_table, account.id, self._account_to_dict(account))

    def _account_to_dict(self, account: Account) -> Dict:
        """Convert Account to dictionary for storage"""
        return account.to_dict()

    def _account_from_dict(self, data: Dict) -> Account:
        """Convert dictionary to Account"""
        return Account(
            id=data['id'],
            created_at=datetime.fromisoformat(data['created_at']),
            username=data['username'],
            first_name=data['first_name'],
            last_name=data['last_name'],
            balance=Decimal(data['balance']),
            pin=data['pin'],
            is_active=data['is_active']
        )
