"""
HTTP services for the wallet client

Async httpx clients for the account and transaction endpoints. Reads fall
back to bundled mock fixtures when the backend cannot be reached; writes
never fall back. Failures surface as BankingError tagged with an ErrorKind.
"""

import json
from decimal import Decimal
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import httpx

from ..errors import BankingError, ErrorKind
from ..logging_config import get_logger
from ..money import ZERO, decimal_from_string, to_amount
from .models import TransactionPage, WalletBalance, WalletSummary, WalletTransaction


logger = get_logger("banking.client")

FIXTURES_DIR = Path(__file__).parent / "fixtures"

MAX_TRANSACTION_AMOUNT = Decimal("1000000")
DEPOSIT_MIN_AMOUNT = Decimal("10")
DEPOSIT_MAX_AMOUNT = Decimal("50000")
WITHDRAWAL_MIN_AMOUNT = Decimal("50")
MAX_PAGE_SIZE = 100

SERVER_ERROR_MESSAGE = "Server error occurred. Please try again later."


def _validation(message: str) -> BankingError:
    return BankingError(ErrorKind.VALIDATION, message)


def _require_amount(amount: Any) -> Decimal:
    """Common amount rules: a positive number no larger than 1,000,000"""
    try:
        if isinstance(amount, str):
            # Typed input such as "R 1,250.50"
            amount = decimal_from_string(amount)
        value = to_amount(amount)
    except ValueError:
        raise _validation("Amount must be a number")
    if value <= ZERO:
        raise _validation("Amount must be greater than 0")
    if value > MAX_TRANSACTION_AMOUNT:
        raise _validation("Amount cannot exceed R1,000,000")
    return value


def _require_method(method: Optional[str], label: str) -> str:
    if not method or not str(method).strip():
        raise _validation(f"{label} is required")
    return str(method).strip()


class BaseService:
    """Shared HTTP plumbing: base URL, client lifetime, error mapping"""

    def __init__(
        self,
        base_url: str = "http://localhost:8090/api",
        timeout: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
        currency: str = "ZAR",
        fixtures_dir: Union[str, Path, None] = None
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.currency = currency
        self.fixtures_dir = Path(fixtures_dir) if fixtures_dir else FIXTURES_DIR
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            timeout=timeout,
            headers={"Content-Type": "application/json"}
        )

    def set_base_url(self, url: str):
        self.base_url = url.rstrip("/")

    def get_base_url(self) -> str:
        return self.base_url

    async def health_check(self) -> bool:
        """Check if the backend answers its health endpoint"""
        try:
            response = await self._client.get(f"{self.base_url}/health")
            return response.status_code == 200
        except httpx.HTTPError as e:
            logger.debug(f"Health check failed: {e}")
            return False

    async def aclose(self):
        """Close the HTTP client if this service created it"""
        if self._owns_client:
            await self._client.aclose()

    async def _get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        try:
            response = await self._client.get(f"{self.base_url}{path}", params=params)
        except httpx.HTTPError as e:
            raise BankingError(ErrorKind.NETWORK, f"Could not reach server: {e}")
        return self._handle_response(response, "Request failed", "Account not found")

    async def _post(self, path: str, payload: Dict[str, Any], failure_message: str,
                    not_found_message: str = "Account not found") -> Dict[str, Any]:
        try:
            response = await self._client.post(f"{self.base_url}{path}", json=payload)
        except httpx.HTTPError as e:
            logger.warning(f"POST {path} failed to connect: {e}")
            raise BankingError(
                ErrorKind.NETWORK,
                "Network error: Unable to connect to server. Please check your connection."
            )
        return self._handle_response(response, failure_message, not_found_message)

    def _handle_response(self, response: httpx.Response, failure_message: str,
                         not_found_message: str) -> Any:
        if response.is_success:
            return response.json(parse_float=Decimal)
        raise self._map_error(response, failure_message, not_found_message)

    @staticmethod
    def _map_error(response: httpx.Response, failure_message: str,
                   not_found_message: str) -> BankingError:
        """Turn a non-2xx response into a tagged error"""
        try:
            body = response.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}

        message = body.get("message") or failure_message
        details = body.get("details")
        status = response.status_code

        if status >= 500:
            return BankingError(ErrorKind.SERVICE, SERVER_ERROR_MESSAGE, details)

        kind_code = body.get("kind")
        if kind_code:
            try:
                return BankingError(ErrorKind.from_code(kind_code), message, details)
            except ValueError:
                logger.debug(f"Unrecognised error kind from server: {kind_code}")

        if status == 400:
            if "insufficient" in message.lower():
                return BankingError(ErrorKind.INSUFFICIENT_FUNDS, message, details)
            return BankingError(ErrorKind.VALIDATION, message, details)
        if status == 404:
            return BankingError(ErrorKind.NOT_FOUND, body.get("message") or not_found_message, details)
        return BankingError(ErrorKind.SERVICE, message, details)

    def _load_fixture(self, name: str) -> Any:
        path = self.fixtures_dir / name
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f, parse_float=Decimal)


class WalletService(BaseService):
    """Balance, summary and money movement"""

    async def get_wallet_balance(self, allow_fallback: bool = True) -> WalletBalance:
        """
        Current balance, from the backend or the bundled mock

        Raises:
            BankingError: NETWORK when neither source is available
        """
        try:
            data = await self._get("/account")
            return WalletBalance(to_amount(data["balance"]), self.currency, "backend")
        except BankingError as e:
            if not allow_fallback:
                raise
            logger.warning(f"Backend balance unavailable, using mock data: {e.message}")

        try:
            data = self._load_fixture("wallet.json")
        except (OSError, ValueError) as e:
            raise BankingError(
                ErrorKind.NETWORK,
                "Failed to fetch wallet balance from both backend and mock APIs",
                {"reason": str(e)}
            )
        return WalletBalance(to_amount(data["balance"]), data.get("currency", self.currency), "mock")

    async def get_account_summary(self) -> WalletSummary:
        data = await self._get("/account/summary")
        return WalletSummary(
            total_in=to_amount(data["totalIn"]),
            total_out=to_amount(data["totalOut"]),
            interest=to_amount(data["interest"])
        )

    def validate_deposit(self, amount: Any, payment_method: Optional[str]) -> Decimal:
        value = _require_amount(amount)
        if value < DEPOSIT_MIN_AMOUNT:
            raise _validation("Minimum deposit amount is R10")
        if value > DEPOSIT_MAX_AMOUNT:
            raise _validation("Maximum deposit amount is R50,000")
        _require_method(payment_method, "Payment method")
        return value

    def validate_withdrawal(self, amount: Any, withdrawal_method: Optional[str]) -> Decimal:
        value = _require_amount(amount)
        if value < WITHDRAWAL_MIN_AMOUNT:
            raise _validation("Minimum withdrawal amount is R50")
        _require_method(withdrawal_method, "Withdrawal method")
        return value

    def validate_transfer(self, recipient: Optional[str], amount: Any) -> Decimal:
        _require_method(recipient, "Recipient")
        return _require_amount(amount)

    async def deposit(self, amount: Any, payment_method: str) -> Dict[str, Any]:
        value = self.validate_deposit(amount, payment_method)
        return await self._post(
            "/account/deposit",
            {"amount": str(value), "paymentMethod": payment_method},
            "Deposit failed"
        )

    async def withdraw(self, amount: Any, withdrawal_method: str) -> Dict[str, Any]:
        value = self.validate_withdrawal(amount, withdrawal_method)
        return await self._post(
            "/account/withdraw",
            {"amount": str(value), "withdrawalMethod": withdrawal_method},
            "Withdrawal failed"
        )

    async def transfer_money(self, recipient: str, amount: Any) -> Dict[str, Any]:
        value = self.validate_transfer(recipient, amount)
        return await self._post(
            "/account/transfer",
            {"recipient": recipient.strip(), "amount": str(value)},
            "Transfer failed",
            not_found_message="Recipient not found"
        )

    async def request_loan(self, amount: Any) -> Dict[str, Any]:
        value = _require_amount(amount)
        return await self._post("/account/loan", {"amount": str(value)}, "Loan request failed")

    async def close_account(self, username: str, pin: str) -> Dict[str, Any]:
        if not username or not pin:
            raise _validation("Username and PIN are required")
        return await self._post(
            "/account/close", {"username": username, "pin": pin}, "Account closure failed"
        )


class TransactionService(BaseService):
    """Transaction history with mock fallback"""

    @staticmethod
    def validate_pagination(page: int, page_size: int):
        if page < 1:
            raise _validation("Page must be greater than 0")
        if page_size < 1 or page_size > MAX_PAGE_SIZE:
            raise _validation(f"Page size must be between 1 and {MAX_PAGE_SIZE}")

    async def get_transactions(self, page: int = 1, page_size: int = 6,
                               allow_fallback: bool = True) -> TransactionPage:
        """
        One page of history, newest first

        Args:
            page: 1-based page number
            page_size: Rows per page (1..100)
            allow_fallback: Serve the bundled mock history when the backend
                is unreachable

        Raises:
            BankingError: VALIDATION for bad paging; NETWORK when neither
                source is available; backend errors when fallback is off
        """
        self.validate_pagination(page, page_size)

        try:
            rows = await self._get("/transactions", params={"page": page, "pageSize": page_size})
            return TransactionPage(
                [WalletTransaction.from_backend(row, self.currency) for row in rows],
                "backend"
            )
        except BankingError as e:
            if not allow_fallback or e.kind is ErrorKind.VALIDATION:
                raise
            logger.warning(f"Backend transactions unavailable, using mock data: {e.message}")

        try:
            rows: List[Dict[str, Any]] = self._load_fixture("transactions.json")
        except (OSError, ValueError) as e:
            raise BankingError(
                ErrorKind.NETWORK,
                "Failed to fetch transactions from both backend and mock APIs",
                {"reason": str(e)}
            )
        start = (page - 1) * page_size
        return TransactionPage(
            [WalletTransaction.from_fixture(row) for row in rows[start:start + page_size]],
            "mock"
        )
