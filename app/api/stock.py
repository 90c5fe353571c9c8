from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from app.api.dependencies import get_admin_user, get_current_user_id, get_stock_service
from app.models.checkout import User
from app.models.stock import (
    LedgerVerification,
    StockTransaction,
    StockTransactionCreate,
    StockTransactionType,
)
from app.services.stock_ledger_service import StockLedgerService

router = APIRouter(prefix="/admin/stock", tags=["库存管理"])


@router.post("/transactions", status_code=201, response_model=StockTransaction)
async def record_stock_transaction(
    body: StockTransactionCreate,
    user_id: int = Depends(get_current_user_id),
    service: StockLedgerService = Depends(get_stock_service)
):
    """入库/出库/盘点调整"""
    return await service.record_stock_transaction(
        body.product_id, body.type, body.quantity, body.notes, actor_id=user_id
    )


@router.get("/transactions", response_model=List[StockTransaction])
async def list_stock_transactions(
    product_id: Optional[int] = None,
    type: Optional[StockTransactionType] = None,
    keyword: Optional[str] = None,
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    admin: User = Depends(get_admin_user),
    service: StockLedgerService = Depends(get_stock_service)
):
    return await service.list_transactions(
        product_id=product_id,
        transaction_type=type,
        keyword=keyword,
        limit=limit,
        offset=offset
    )


@router.get("/transactions/{transaction_id}", response_model=StockTransaction)
async def get_stock_transaction(
    transaction_id: int,
    admin: User = Depends(get_admin_user),
    service: StockLedgerService = Depends(get_stock_service)
):
    return await service.get_transaction(transaction_id)


@router.get("/products/{product_id}/history", response_model=List[StockTransaction])
async def get_product_stock_history(
    product_id: int,
    admin: User = Depends(get_admin_user),
    service: StockLedgerService = Depends(get_stock_service)
):
    """商品的全部库存流水"""
    return await service.get_product_history(product_id)


@router.get("/products/{product_id}/verify", response_model=LedgerVerification)
async def verify_product_ledger(
    product_id: int,
    admin: User = Depends(get_admin_user),
    service: StockLedgerService = Depends(get_stock_service)
):
    """校验库存与流水是否一致"""
    return await service.verify_product_ledger(product_id)
