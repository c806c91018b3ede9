"""
Test suite for transaction processing

Covers deposits, withdrawals, transfers, loans, history paging and the
account summary. Every rejected mutation must leave balances and history
untouched.
"""

import pytest
from decimal import Decimal
from datetime import datetime, timezone, timedelta

from wallet_banking.storage import InMemoryStorage, SQLiteStorage
from wallet_banking.accounts import AccountManager
from wallet_banking.errors import BankingError, ErrorKind
from wallet_banking.transactions import TransactionProcessor, TransactionType


class SteppingClock:
    """Clock that advances one second per call"""

    def __init__(self, start=None):
        self.current = start or datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self):
        self.current = self.current + timedelta(seconds=1)
        return self.current


class TestTransactionProcessor:
    """Test balance mutations"""

    def setup_method(self):
        """Set up test fixtures"""
        self.storage = InMemoryStorage()
        self.clock = SteppingClock()
        self.account_manager = AccountManager(self.storage, clock=self.clock)
        self.processor = TransactionProcessor(self.storage, self.account_manager, clock=self.clock)

        self.alice = self.account_manager.create_account(
            "alice", "Alice", "Smith", "1234", balance=Decimal("1000.00")
        )
        self.bob = self.account_manager.create_account(
            "bob", "Bob", "Jones", "5678", balance=Decimal("500.00")
        )

    def balance_of(self, account_id):
        return self.account_manager.require_account(account_id).balance

    def history_of(self, account_id):
        return self.processor.list_transactions(account_id, page=1, page_size=100)

    def test_deposit_increases_balance_and_appends_row(self):
        """Test a deposit adds exactly the amount and one DEPOSIT row"""
        posting = self.processor.deposit(self.alice.id, Decimal("250.00"), "Card")

        assert posting.new_balance == Decimal("1250.00")
        assert self.balance_of(self.alice.id) == Decimal("1250.00")

        history = self.history_of(self.alice.id)
        assert len(history) == 1
        assert history[0].transaction_type == TransactionType.DEPOSIT
        assert history[0].amount == Decimal("250.00")
        assert history[0].description == "Deposit via Card"

    def test_deposit_rounds_to_two_places(self):
        """Test amounts are quantized half-up"""
        posting = self.processor.deposit(self.alice.id, "10.005", "Card")
        assert posting.transaction.amount == Decimal("10.01")

    @pytest.mark.parametrize("amount", [Decimal("0"), Decimal("-5.00"), "abc", float("nan")])
    def test_deposit_rejects_invalid_amounts(self, amount):
        """Test non-positive or non-numeric amounts are rejected"""
        with pytest.raises(BankingError) as exc_info:
            self.processor.deposit(self.alice.id, amount, "Card")

        assert exc_info.value.kind == ErrorKind.VALIDATION
        assert self.balance_of(self.alice.id) == Decimal("1000.00")
        assert self.history_of(self.alice.id) == []

    def test_deposit_to_unknown_account(self):
        """Test unknown accounts are NOT_FOUND"""
        with pytest.raises(BankingError) as exc_info:
            self.processor.deposit("missing", Decimal("10.00"), "Card")
        assert exc_info.value.kind == ErrorKind.NOT_FOUND

    def test_withdraw_records_negative_amount(self):
        """Test withdrawals store a signed amount"""
        posting = self.processor.withdraw(self.alice.id, Decimal("100.00"), "ATM")

        assert posting.new_balance == Decimal("900.00")
        assert posting.transaction.amount == Decimal("-100.00")
        assert posting.transaction.description == "Withdrawal to ATM"

    def test_withdraw_more_than_balance_is_rejected(self):
        """Test overdraft is refused without any change"""
        with pytest.raises(BankingError) as exc_info:
            self.processor.withdraw(self.alice.id, Decimal("1000.01"), "ATM")

        assert exc_info.value.kind == ErrorKind.INSUFFICIENT_FUNDS
        assert self.balance_of(self.alice.id) == Decimal("1000.00")
        assert self.history_of(self.alice.id) == []

    def test_withdraw_entire_balance(self):
        """Test the balance may reach exactly zero"""
        posting = self.processor.withdraw(self.alice.id, Decimal("1000.00"), "ATM")
        assert posting.new_balance == Decimal("0.00")

    def test_transfer_moves_funds_atomically(self):
        """Test both balances and both rows change together"""
        account_manager = self.account_manager
        a = account_manager.create_account("carol", "Carol", "A", "1111", balance=Decimal("1000.00"))
        b = account_manager.create_account("dave", "Dave", "B", "2222", balance=Decimal("500.00"))

        outgoing, incoming = self.processor.transfer(a.id, "dave", Decimal("200.00"))

        assert self.balance_of(a.id) == Decimal("800.00")
        assert self.balance_of(b.id) == Decimal("700.00")
        assert outgoing.transaction_type == TransactionType.TRANSFER_OUT
        assert outgoing.amount == Decimal("-200.00")
        assert outgoing.recipient == "dave"
        assert outgoing.description == "Transfer to dave"
        assert incoming.transaction_type == TransactionType.TRANSFER_IN
        assert incoming.amount == Decimal("200.00")
        assert incoming.account_id == b.id
        assert incoming.description == "Transfer from carol"

    def test_transfer_to_unknown_recipient(self):
        """Test a missing recipient leaves the sender untouched"""
        with pytest.raises(BankingError) as exc_info:
            self.processor.transfer(self.alice.id, "nobody", Decimal("10.00"))

        assert exc_info.value.kind == ErrorKind.NOT_FOUND
        assert exc_info.value.details == {"recipient": "nobody"}
        assert self.balance_of(self.alice.id) == Decimal("1000.00")

    def test_transfer_to_self_is_rejected(self):
        """Test a self-transfer is a validation error"""
        with pytest.raises(BankingError) as exc_info:
            self.processor.transfer(self.alice.id, "alice", Decimal("10.00"))
        assert exc_info.value.kind == ErrorKind.VALIDATION

    def test_transfer_with_insufficient_funds(self):
        """Test neither side changes when the sender is short"""
        with pytest.raises(BankingError) as exc_info:
            self.processor.transfer(self.bob.id, "alice", Decimal("600.00"))

        assert exc_info.value.kind == ErrorKind.INSUFFICIENT_FUNDS
        assert self.balance_of(self.bob.id) == Decimal("500.00")
        assert self.balance_of(self.alice.id) == Decimal("1000.00")
        assert self.history_of(self.alice.id) == []
        assert self.history_of(self.bob.id) == []

    def test_transfer_rolls_back_when_second_write_fails(self):
        """Test a failure midway through a transfer undoes the first write"""
        original_append = self.processor._append
        calls = []

        def failing_append(account, *args, **kwargs):
            calls.append(account.id)
            if len(calls) == 2:
                raise RuntimeError("disk full")
            return original_append(account, *args, **kwargs)

        self.processor._append = failing_append

        with pytest.raises(RuntimeError):
            self.processor.transfer(self.alice.id, "bob", Decimal("100.00"))

        assert self.balance_of(self.alice.id) == Decimal("1000.00")
        assert self.balance_of(self.bob.id) == Decimal("500.00")
        assert self.storage.count("transactions") == 0

    def test_loan_within_cap_is_approved(self):
        """Test a loan up to 10% of the balance is credited"""
        posting = self.processor.request_loan(self.alice.id, Decimal("90.00"))

        assert posting.new_balance == Decimal("1090.00")
        assert posting.transaction.transaction_type == TransactionType.LOAN
        assert posting.transaction.description == "Loan approved"

    def test_loan_at_exact_cap_is_approved(self):
        """Test the cap itself is allowed"""
        posting = self.processor.request_loan(self.alice.id, Decimal("100.00"))
        assert posting.new_balance == Decimal("1100.00")

    def test_loan_above_cap_is_denied(self):
        """Test a loan over the cap is denied without change"""
        with pytest.raises(BankingError) as exc_info:
            self.processor.request_loan(self.alice.id, Decimal("150.00"))

        assert exc_info.value.kind == ErrorKind.DENIED
        assert exc_info.value.details == {"max_amount": "100.00"}
        assert self.balance_of(self.alice.id) == Decimal("1000.00")
        assert self.history_of(self.alice.id) == []

    def test_loan_on_zero_balance_is_denied(self):
        """Test an empty account cannot borrow"""
        empty = self.account_manager.create_account("erin", "Erin", "C", "0000")
        with pytest.raises(BankingError) as exc_info:
            self.processor.request_loan(empty.id, Decimal("1.00"))
        assert exc_info.value.kind == ErrorKind.DENIED

    def test_operations_on_closed_account_are_not_found(self):
        """Test closing an account makes it invisible to the ledger"""
        self.account_manager.close_account(self.alice.id, "alice", "1234")

        with pytest.raises(BankingError) as exc_info:
            self.processor.deposit(self.alice.id, Decimal("10.00"), "Card")
        assert exc_info.value.kind == ErrorKind.NOT_FOUND

        with pytest.raises(BankingError) as exc_info:
            self.processor.transfer(self.bob.id, "alice", Decimal("10.00"))
        assert exc_info.value.kind == ErrorKind.NOT_FOUND


class TestTransactionHistory:
    """Test paging and summaries"""

    def setup_method(self):
        """Set up an account with a known history"""
        self.storage = InMemoryStorage()
        self.clock = SteppingClock()
        self.account_manager = AccountManager(self.storage, clock=self.clock)
        self.processor = TransactionProcessor(self.storage, self.account_manager, clock=self.clock)
        self.account = self.account_manager.create_account(
            "alice", "Alice", "Smith", "1234", balance=Decimal("100000.00")
        )

    def test_pages_are_newest_first(self):
        """Test page 2 of size 6 holds ranks 7 to 12"""
        for i in range(15):
            self.processor.deposit(self.account.id, Decimal(i + 1), "Card")

        first = self.processor.list_transactions(self.account.id, page=1, page_size=6)
        second = self.processor.list_transactions(self.account.id, page=2, page_size=6)
        third = self.processor.list_transactions(self.account.id, page=3, page_size=6)

        assert [t.amount for t in first] == [Decimal(n) for n in range(15, 9, -1)]
        assert [t.amount for t in second] == [Decimal(n) for n in range(9, 3, -1)]
        assert [t.amount for t in third] == [Decimal(n) for n in (3, 2, 1)]

    def test_page_past_the_end_is_empty(self):
        """Test an out-of-range page returns nothing"""
        self.processor.deposit(self.account.id, Decimal("10.00"), "Card")
        assert self.processor.list_transactions(self.account.id, page=5, page_size=6) == []

    def test_rows_with_equal_timestamps_keep_latest_first(self):
        """Test ties on created_at order by insertion, newest first"""
        fixed = datetime(2026, 1, 1, tzinfo=timezone.utc)
        processor = TransactionProcessor(self.storage, self.account_manager, clock=lambda: fixed)
        for i in range(3):
            processor.deposit(self.account.id, Decimal(i + 1), "Card")

        rows = processor.list_transactions(self.account.id, page=1, page_size=10)
        assert [t.amount for t in rows] == [Decimal("3.00"), Decimal("2.00"), Decimal("1.00")]

    @pytest.mark.parametrize("page,page_size", [(0, 6), (-1, 6), (1, 0), (1, 101)])
    def test_invalid_paging(self, page, page_size):
        """Test paging bounds"""
        with pytest.raises(BankingError) as exc_info:
            self.processor.list_transactions(self.account.id, page=page, page_size=page_size)
        assert exc_info.value.kind == ErrorKind.VALIDATION

    def test_summary_totals(self):
        """Test in/out/interest aggregation"""
        self.processor.record_transaction(self.account.id, TransactionType.DEPOSIT, Decimal("1000"), "Salary")
        self.processor.record_transaction(self.account.id, TransactionType.WITHDRAWAL, Decimal("-2400"), "ATM")
        self.processor.record_transaction(self.account.id, TransactionType.LOAN, Decimal("300"), "Loan approved")
        self.processor.record_transaction(self.account.id, TransactionType.INTEREST, Decimal("50"), "Interest")

        summary = self.processor.get_account_summary(self.account.id)

        assert summary.total_in == Decimal("1350.00")
        assert summary.total_out == Decimal("2400.00")
        assert summary.interest == Decimal("50.00")

    def test_summary_of_empty_history_is_zero(self):
        """Test an account with no rows sums to zero"""
        summary = self.processor.get_account_summary(self.account.id)
        assert summary.total_in == summary.total_out == summary.interest == Decimal("0")

    def test_record_transaction_keeps_balance(self):
        """Test historical rows do not move the balance"""
        self.processor.record_transaction(
            self.account.id, TransactionType.DEPOSIT, Decimal("500"), "Imported"
        )
        assert self.account_manager.require_account(self.account.id).balance == Decimal("100000.00")


class TestTransactionsOnSQLite:
    """Run the core flows against SQLite"""

    def setup_method(self):
        self.storage = SQLiteStorage(":memory:")
        self.clock = SteppingClock()
        self.account_manager = AccountManager(self.storage, clock=self.clock)
        self.processor = TransactionProcessor(self.storage, self.account_manager, clock=self.clock)
        self.alice = self.account_manager.create_account(
            "alice", "Alice", "Smith", "1234", balance=Decimal("1000.00")
        )
        self.bob = self.account_manager.create_account(
            "bob", "Bob", "Jones", "5678", balance=Decimal("500.00")
        )

    def teardown_method(self):
        self.storage.close()

    def test_transfer_and_history(self):
        """Test a transfer is visible on both sides"""
        self.processor.transfer(self.alice.id, "bob", Decimal("200.00"))

        assert self.account_manager.require_account(self.alice.id).balance == Decimal("800.00")
        assert self.account_manager.require_account(self.bob.id).balance == Decimal("700.00")

        bob_rows = self.processor.list_transactions(self.bob.id)
        assert len(bob_rows) == 1
        assert bob_rows[0].transaction_type == TransactionType.TRANSFER_IN

    def test_failed_withdrawal_leaves_no_row(self):
        """Test SQL rollback on rejection"""
        with pytest.raises(BankingError):
            self.processor.withdraw(self.bob.id, Decimal("501.00"), "ATM")

        assert self.processor.list_transactions(self.bob.id) == []
        assert self.account_manager.require_account(self.bob.id).balance == Decimal("500.00")

    def test_paging_matches_in_memory_order(self):
        """Test SQL ordering is newest first"""
        for i in range(8):
            self.processor.deposit(self.alice.id, Decimal(i + 1), "Card")

        second = self.processor.list_transactions(self.alice.id, page=2, page_size=6)
        assert [t.amount for t in second] == [Decimal("2.00"), Decimal("1.00")]
