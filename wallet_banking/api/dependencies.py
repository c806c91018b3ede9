"""
System wiring and request dependencies
"""

from decimal import Decimal
from typing import Optional

from fastapi import Depends, Request

from ..accounts import AccountManager
from ..config import BankingConfig, get_config
from ..errors import BankingError, ErrorKind
from ..storage import StorageInterface, create_storage
from ..transactions import TransactionProcessor


class BankingSystem:
    """Ledger components sharing one storage backend"""

    def __init__(
        self,
        storage: StorageInterface,
        config: Optional[BankingConfig] = None,
        clock=None
    ):
        self.config = config or get_config()
        self.storage = storage
        self.account_manager = AccountManager(self.storage, clock=clock)
        self.transaction_processor = TransactionProcessor(
            self.storage,
            self.account_manager,
            clock=clock,
            loan_max_ratio=Decimal(self.config.loan_max_ratio),
            max_page_size=self.config.max_page_size
        )

    @classmethod
    def from_config(cls, config: Optional[BankingConfig] = None) -> "BankingSystem":
        config = config or get_config()
        return cls(create_storage(config.database_url), config=config)

    def close(self) -> None:
        self.storage.close()


def get_banking_system(request: Request) -> BankingSystem:
    return request.app.state.banking_system


def get_current_account_id(system: BankingSystem = Depends(get_banking_system)) -> str:
    """Resolve the demo account served by the /api/account routes"""
    username = system.config.demo_username
    account = system.account_manager.get_account_by_username(username)
    if not account:
        raise BankingError(ErrorKind.NOT_FOUND, "Account not found", {"username": username})
    return account.id
