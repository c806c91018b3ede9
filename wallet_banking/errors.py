"""
Error kinds shared by the ledger, the HTTP layer and the client.

Every failure is a BankingError tagged with an ErrorKind instead of a
subclass per failure type. The HTTP layer maps kinds to status codes and the
client maps status codes back to kinds.
"""

from enum import Enum
from typing import Any, Dict, Optional


class ErrorKind(Enum):
    """Failure categories"""
    VALIDATION = ("validation", 400)
    NOT_FOUND = ("not_found", 404)
    INSUFFICIENT_FUNDS = ("insufficient_funds", 400)
    DENIED = ("denied", 400)
    NETWORK = ("network", 503)
    SERVICE = ("service", 500)

    def __init__(self, code: str, http_status: int):
        self.code = code
        self.http_status = http_status

    @classmethod
    def from_code(cls, code: str) -> "ErrorKind":
        for kind in cls:
            if kind.code == code:
                return kind
        raise ValueError(f"Unknown error kind: {code}")


class BankingError(Exception):
    """Error raised by ledger operations and client services"""

    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.details = details

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {"message": self.message, "kind": self.kind.code}
        if self.details:
            result["details"] = self.details
        return result

    def __repr__(self) -> str:
        return f"BankingError({self.kind.name}, {self.message!r})"
