"""
Transaction history endpoints
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from .dependencies import BankingSystem, get_banking_system, get_current_account_id
from .schemas import TransactionResponse


router = APIRouter()


@router.get("", response_model=List[TransactionResponse])
async def get_transactions(
    page: int = Query(1),
    page_size: Optional[int] = Query(None, alias="pageSize"),
    account_id: str = Depends(get_current_account_id),
    system: BankingSystem = Depends(get_banking_system)
):
    """Get transaction history newest-first"""
    if page_size is None:
        page_size = system.config.default_page_size

    transactions = system.transaction_processor.list_transactions(
        account_id=account_id,
        page=page,
        page_size=page_size
    )
    return [TransactionResponse.from_transaction(txn) for txn in transactions]
