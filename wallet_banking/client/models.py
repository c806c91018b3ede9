"""
Client-side transaction and wallet records

The client spells transaction types in lower case without separators
("transferin") and keeps amounts unsigned; direction comes from the type.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional

from ..money import ZERO, to_amount


TEMP_ID_PREFIX = "temp_"


class TransactionStatus(Enum):
    PENDING = "pending"
    SUCCESS = "success"
    FAILED = "failed"
    CANCELLED = "cancelled"


BACKEND_TYPE_MAP = {
    "DEPOSIT": "deposit",
    "WITHDRAWAL": "withdrawal",
    "TRANSFER_IN": "transferin",
    "TRANSFER_OUT": "transferout",
    "LOAN": "loan",
    "INTEREST": "interest",
}

DISPLAY_NAMES = {
    "deposit": "Deposit",
    "withdrawal": "Withdrawal",
    "transferin": "Transfer In",
    "transferout": "Transfer Out",
    "loan": "Loan",
    "interest": "Interest",
}

# Word each type's description is expected to contain
TYPE_KEYWORDS = {
    "deposit": "deposit",
    "withdrawal": "withdraw",
    "transferin": "transfer",
    "transferout": "transfer",
    "loan": "loan",
    "interest": "interest",
}

OUTFLOW_TYPES = frozenset({"withdrawal", "transferout"})


def transform_transaction_type(backend_type: str) -> str:
    """Map a backend type name (TRANSFER_IN) to the client spelling (transferin)"""
    if not isinstance(backend_type, str):
        return "unknown"
    return BACKEND_TYPE_MAP.get(backend_type.upper(), backend_type.lower().replace("_", ""))


def display_name(transaction_type: str) -> str:
    return DISPLAY_NAMES.get(transaction_type, transaction_type)


def parse_timestamp(value: Any) -> datetime:
    """Parse an ISO timestamp; naive values are taken as UTC"""
    if isinstance(value, datetime):
        parsed = value
    else:
        text = str(value)
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass
class WalletTransaction:
    """A transaction as the client shows it"""
    id: str
    type: str
    amount: Decimal
    date: datetime
    description: str
    currency: str = "ZAR"
    status: TransactionStatus = TransactionStatus.SUCCESS
    recipient: Optional[str] = None

    def __post_init__(self):
        self.amount = to_amount(self.amount)

    @property
    def is_optimistic(self) -> bool:
        """Locally created and not yet confirmed by the server"""
        return self.id.startswith(TEMP_ID_PREFIX)

    @property
    def signed_amount(self) -> Decimal:
        return -self.amount if self.type in OUTFLOW_TYPES else self.amount

    @classmethod
    def from_backend(cls, data: Dict[str, Any], currency: str = "ZAR") -> "WalletTransaction":
        """Build from an /api/transactions row"""
        return cls(
            id=str(data["id"]),
            type=transform_transaction_type(data["type"]),
            amount=abs(to_amount(data["amount"])),
            date=parse_timestamp(data["createdAt"]),
            description=data.get("description") or "",
            currency=currency,
            status=TransactionStatus.SUCCESS,
            recipient=data.get("recipient")
        )

    @classmethod
    def from_fixture(cls, data: Dict[str, Any]) -> "WalletTransaction":
        """Build from a bundled mock row (already in client shape)"""
        return cls(
            id=str(data["id"]),
            type=data["type"],
            amount=abs(to_amount(data["amount"])),
            date=parse_timestamp(data["date"]),
            description=data.get("description") or "",
            currency=data.get("currency", "ZAR"),
            status=TransactionStatus(data.get("status", "success")),
            recipient=data.get("recipient")
        )


@dataclass(frozen=True)
class WalletBalance:
    balance: Decimal
    currency: str
    source: str  # "backend" or "mock"


@dataclass(frozen=True)
class WalletSummary:
    total_in: Decimal = ZERO
    total_out: Decimal = ZERO
    interest: Decimal = ZERO


@dataclass
class TransactionPage:
    transactions: List[WalletTransaction] = field(default_factory=list)
    source: str = "backend"
