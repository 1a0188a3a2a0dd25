"""
Transactions API Endpoints

Paginated transaction listing with optional filters, and single lookups.
"""
from fastapi import APIRouter, Depends, Query
from typing import Dict, Any, Optional
import logging

from ..exceptions import NotFoundError
from ..models.transactions import TransactionFilter, TransactionStatus
from ..services.transaction_store import TransactionStore
from .dependencies import get_store

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("")
async def list_transactions_endpoint(
    page: int = Query(1, description="Page number, starting at 1"),
    limit: int = Query(10, description="Page size (1-100)"),
    status: Optional[TransactionStatus] = Query(None, description="Filter by status"),
    email: Optional[str] = Query(None, description="Filter by payer email"),
    store: TransactionStore = Depends(get_store)
) -> Dict[str, Any]:
    """
    List transactions, most recent first.

    Query Parameters:
        page: Page number (default 1)
        limit: Page size (default 10, max 100)
        status: pending | completed | failed | expired
        email: Exact payer email

    Returns:
        {
            "success": true,
            "data": {
                "transactions": List[Transaction],
                "pagination": {page, limit, total, totalPages, hasNext, hasPrev}
            }
        }

    Example:
        GET /api/transactions?page=2&limit=10&status=completed
    """
    result = await store.list(TransactionFilter(status=status, email=email), page, limit)
    pagination = result.pagination

    logger.info(
        f"Transactions retrieved: page={page}, limit={limit}, total={result.total}, "
        f"filters=(status={status.value if status else None}, email={'set' if email else None})"
    )

    return {
        "success": True,
        "data": {
            "transactions": [t.model_dump(mode="json") for t in result.transactions],
            "pagination": pagination.model_dump(by_alias=True),
        }
    }


@router.get("/{transaction_id}")
async def get_transaction_endpoint(
    transaction_id: str,
    store: TransactionStore = Depends(get_store)
) -> Dict[str, Any]:
    """
    Get transaction details.

    Path Parameters:
        transaction_id: Transaction identifier

    Example:
        GET /api/transactions/0d6f5c4e-8f0a-4c55-9a53-3a4d8f1b2c71
    """
    transaction = await store.get_by_id(transaction_id)

    if not transaction:
        raise NotFoundError("Transaction not found")

    logger.debug(f"Transaction retrieved: {transaction_id}")

    return {
        "success": True,
        "data": transaction.model_dump(mode="json")
    }
