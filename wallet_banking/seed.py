"""Seed data for the wallet banking demo

Creates:
- the demo account (Fani Keorapetse) with a short transaction history
- a second account (testuser) to receive transfers

Seeding is skipped when any account already exists.

Run with: python -m wallet_banking.seed
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

from .logging_config import get_logger
from .transactions import TransactionType


logger = get_logger("banking.seed")


DEMO_ACCOUNT = {
    "username": "Fani",
    "first_name": "Fani",
    "last_name": "Keorapetse",
    "pin": "1111",
    "balance": Decimal("33952.59"),
}

TRANSFER_ACCOUNT = {
    "username": "testuser",
    "first_name": "Test",
    "last_name": "User",
    "pin": "2222",
    "balance": Decimal("1000.00"),
}


def demo_history(now: datetime):
    """(type, amount, description, created_at) rows for the demo account"""
    today = now.replace(hour=0, minute=0, second=0, microsecond=0)
    return [
        (TransactionType.DEPOSIT, Decimal("1000.00"), "Salary Payment", today),
        (TransactionType.WITHDRAWAL, Decimal("-2400.00"), "ATM Withdrawal", today - timedelta(hours=2)),
        (TransactionType.DEPOSIT, Decimal("2000.00"), "Transfer In", today - timedelta(hours=4)),
        (TransactionType.DEPOSIT, Decimal("10000.00"), "Investment Return", today - timedelta(hours=6)),
        (TransactionType.WITHDRAWAL, Decimal("-2500.00"), "Online Purchase", today - timedelta(hours=8)),
        (TransactionType.DEPOSIT, Decimal("1300.00"), "Bonus Payment", datetime(2020, 3, 12, tzinfo=timezone.utc)),
        (TransactionType.DEPOSIT, Decimal("79.97"), "Freelance Work", datetime(2020, 3, 8, tzinfo=timezone.utc)),
        (TransactionType.INTEREST, Decimal("479.46"), "Monthly Interest", now - timedelta(days=5)),
    ]


def seed_demo_data(system) -> bool:
    """
    Load the demo accounts into an empty store

    Args:
        system: BankingSystem whose managers receive the data

    Returns:
        True if data was written, False if the store already had accounts
    """
    account_manager = system.account_manager
    processor = system.transaction_processor

    if system.storage.count(account_manager.accounts_table) > 0:
        logger.info("Accounts already present, skipping seed")
        return False

    demo = account_manager.create_account(**DEMO_ACCOUNT)
    for transaction_type, amount, description, created_at in demo_history(datetime.now(timezone.utc)):
        processor.record_transaction(
            demo.id, transaction_type, amount, description, created_at=created_at
        )

    account_manager.create_account(**TRANSFER_ACCOUNT)

    logger.info("Seeded demo accounts")
    return True


def main():
    """Seed the configured database"""
    from .api.dependencies import BankingSystem
    from .config import get_config
    from .logging_config import setup_logging

    config = get_config()
    setup_logging(config.log_level, log_format=config.log_format)
    system = BankingSystem.from_config(config)
    try:
        if seed_demo_data(system):
            print("✅ Demo data loaded")
        else:
            print("Database already contains accounts; nothing to do")
    finally:
        system.close()


if __name__ == "__main__":
    main()
