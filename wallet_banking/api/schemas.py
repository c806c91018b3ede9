"""
Pydantic schemas for API requests and responses

Payloads use camelCase keys; incoming keys are matched case-insensitively.
Amounts are Decimal and serialise as strings.
"""

from decimal import Decimal
from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from ..accounts import Account
from ..transactions import AccountSummary, Transaction


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    @model_validator(mode="before")
    @classmethod
    def _match_keys_case_insensitively(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        lookup = {}
        for name, field in cls.model_fields.items():
            alias = field.alias or name
            lookup[name.lower()] = alias
            lookup[alias.lower()] = alias
        return {lookup.get(str(key).lower(), key): value for key, value in data.items()}


# Requests
class DepositRequest(CamelModel):
    amount: Decimal
    payment_method: str = Field(..., min_length=1)


class WithdrawRequest(CamelModel):
    amount: Decimal
    withdrawal_method: str = Field(..., min_length=1)


class TransferRequest(CamelModel):
    recipient: str = Field(..., min_length=1)
    amount: Decimal


class LoanRequest(CamelModel):
    amount: Decimal


class CloseAccountRequest(CamelModel):
    username: str
    pin: str


# Responses
class AccountResponse(CamelModel):
    id: str
    username: str
    first_name: str
    last_name: str
    balance: Decimal
    created_at: datetime

    @classmethod
    def from_account(cls, account: Account) -> "AccountResponse":
        return cls(
            id=account.id,
            username=account.username,
            first_name=account.first_name,
            last_name=account.last_name,
            balance=account.balance,
            created_at=account.created_at
        )


class SummaryResponse(CamelModel):
    total_in: Decimal
    total_out: Decimal
    interest: Decimal

    @classmethod
    def from_summary(cls, summary: AccountSummary) -> "SummaryResponse":
        return cls(total_in=summary.total_in, total_out=summary.total_out, interest=summary.interest)


class TransactionResponse(CamelModel):
    id: str
    type: str
    amount: Decimal
    description: str
    recipient: Optional[str] = None
    created_at: datetime

    @classmethod
    def from_transaction(cls, transaction: Transaction) -> "TransactionResponse":
        return cls(
            id=transaction.id,
            type=transaction.transaction_type.value,
            amount=transaction.amount,
            description=transaction.description,
            recipient=transaction.recipient,
            created_at=transaction.created_at
        )


class MessageResponse(CamelModel):
    message: str


class DepositResponse(MessageResponse):
    amount: Decimal
    payment_method: str
    new_balance: Decimal


class WithdrawResponse(MessageResponse):
    amount: Decimal
    withdrawal_method: str
    new_balance: Decimal
