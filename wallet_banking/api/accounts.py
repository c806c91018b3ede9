"""
Account endpoints

All routes act on the configured demo account.
"""

from decimal import Decimal

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from .dependencies import BankingSystem, get_banking_system, get_current_account_id
from .schemas import (
    AccountResponse, SummaryResponse, MessageResponse,
    DepositRequest, DepositResponse, WithdrawRequest, WithdrawResponse,
    TransferRequest, LoanRequest, CloseAccountRequest,
)
from ..errors import BankingError, ErrorKind
from ..money import to_amount


router = APIRouter()


@router.get("", response_model=AccountResponse)
async def get_account(
    account_id: str = Depends(get_current_account_id),
    system: BankingSystem = Depends(get_banking_system)
):
    """Get account details"""
    account = system.account_manager.require_account(account_id)
    return AccountResponse.from_account(account)


@router.get("/summary", response_model=SummaryResponse)
async def get_account_summary(
    account_id: str = Depends(get_current_account_id),
    system: BankingSystem = Depends(get_banking_system)
):
    """Get in/out/interest totals"""
    summary = system.transaction_processor.get_account_summary(account_id)
    return SummaryResponse.from_summary(summary)


@router.post("/deposit", response_model=DepositResponse)
async def deposit(
    request: DepositRequest,
    account_id: str = Depends(get_current_account_id),
    system: BankingSystem = Depends(get_banking_system)
):
    """Make a deposit"""
    minimum = Decimal(system.config.deposit_min_amount)
    maximum = Decimal(system.config.deposit_max_amount)
    # Bounds apply to the amount as it will be stored
    amount = to_amount(request.amount)
    if amount < minimum:
        raise BankingError(ErrorKind.VALIDATION, f"Minimum deposit amount is R{minimum:,.0f}")
    if amount > maximum:
        raise BankingError(ErrorKind.VALIDATION, f"Maximum deposit amount is R{maximum:,.0f}")

    posting = system.transaction_processor.deposit(account_id, amount, request.payment_method)

    return DepositResponse(
        message="Deposit completed successfully",
        amount=posting.transaction.amount,
        payment_method=request.payment_method,
        new_balance=posting.new_balance
    )


@router.post("/withdraw", response_model=WithdrawResponse)
async def withdraw(
    request: WithdrawRequest,
    account_id: str = Depends(get_current_account_id),
    system: BankingSystem = Depends(get_banking_system)
):
    """Make a withdrawal"""
    minimum = Decimal(system.config.withdrawal_min_amount)
    amount = to_amount(request.amount)
    if amount <= 0:
        raise BankingError(ErrorKind.VALIDATION, "Amount must be positive")
    if amount < minimum:
        raise BankingError(ErrorKind.VALIDATION, f"Minimum withdrawal amount is R{minimum:,.0f}")

    posting = system.transaction_processor.withdraw(account_id, amount, request.withdrawal_method)

    return WithdrawResponse(
        message="Withdrawal completed successfully",
        amount=abs(posting.transaction.amount),
        withdrawal_method=request.withdrawal_method,
        new_balance=posting.new_balance
    )


@router.post("/transfer", response_model=MessageResponse)
async def transfer(
    request: TransferRequest,
    account_id: str = Depends(get_current_account_id),
    system: BankingSystem = Depends(get_banking_system)
):
    """Transfer money to another account by username"""
    try:
        system.transaction_processor.transfer(account_id, request.recipient, request.amount)
    except BankingError as e:
        # An unknown recipient is a bad request, not a missing resource
        if e.kind is ErrorKind.NOT_FOUND:
            return JSONResponse(status_code=400, content=e.to_dict())
        raise

    return MessageResponse(message="Transfer completed successfully")


@router.post("/loan", response_model=MessageResponse)
async def request_loan(
    request: LoanRequest,
    account_id: str = Depends(get_current_account_id),
    system: BankingSystem = Depends(get_banking_system)
):
    """Request a loan of up to 10% of the balance"""
    system.transaction_processor.request_loan(account_id, request.amount)
    return MessageResponse(message="Loan approved")


@router.post("/close", response_model=MessageResponse)
async def close_account(
    request: CloseAccountRequest,
    account_id: str = Depends(get_current_account_id),
    system: BankingSystem = Depends(get_banking_system)
):
    """Close the account after confirming username and PIN"""
    system.account_manager.close_account(account_id, request.username, request.pin)
    return MessageResponse(message="Account closed successfully")
