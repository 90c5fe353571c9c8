"""
库存流水服务
库存的唯一写入方：每次库存变动都先校验，再在同一事务中更新商品库存并追加一条流水
"""

import logging
from typing import List, Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.exceptions import (
    InsufficientStockError,
    InvalidAdjustmentError,
    NotFoundError,
    ValidationError,
)
from app.core.unit_of_work import UnitOfWork
from app.models.stock import LedgerVerification, StockTransaction, StockTransactionType
from app.repositories.checkout_repository import UserRepository
from app.repositories.stock_repository import ProductRepository, StockTransactionRepository
from app.services.collaborators import require_admin

logger = logging.getLogger(__name__)


class StockLedger:
    """
    绑定到调用方会话的库存账本

    不自行提交，流水与库存更新随调用方的工作单元一起提交或回滚。
    """

    def __init__(self, db: AsyncSession):
        self.product_repo = ProductRepository(db)
        self.transaction_repo = StockTransactionRepository(db)

    async def record_transaction(
        self,
        product_id: int,
        transaction_type: StockTransactionType,
        quantity: int,
        notes: Optional[str] = None,
        actor_id: Optional[int] = None
    ) -> StockTransaction:
        """
        记录一次库存变动

        IN/OUT 的 quantity 为正数，OUT 存储为负数增量；ADJUSTMENT 为非零的带符号增量。
        所有校验在任何写入之前完成。
        """
        transaction_type = StockTransactionType(transaction_type)

        if transaction_type in (StockTransactionType.IN, StockTransactionType.OUT) and quantity <= 0:
            raise ValidationError(
                f"{transaction_type.value.upper()} quantity must be positive",
                details={"product_id": product_id, "quantity": quantity}
            )
        if transaction_type == StockTransactionType.ADJUSTMENT and quantity == 0:
            raise ValidationError(
                "ADJUSTMENT quantity must be non-zero",
                details={"product_id": product_id}
            )

        db_product = await self.product_repo.get_by_id(product_id, for_update=True)
        if not db_product:
            raise NotFoundError("Product", product_id)

        stock_before = db_product.stock
        version = db_product.stock_version

        if transaction_type == StockTransactionType.IN:
            delta = quantity
        elif transaction_type == StockTransactionType.OUT:
            if stock_before < quantity:
                raise InsufficientStockError(db_product.id, db_product.name, quantity, stock_before)
            delta = -quantity
        else:
            delta = quantity
            if stock_before + delta < 0:
                raise InvalidAdjustmentError(
                    f"Adjustment of {delta} would make stock of product {product_id} negative",
                    details={"product_id": product_id, "stock": stock_before, "quantity": delta}
                )

        stock_after = stock_before + delta

        await self.product_repo.write_stock(db_product, version, stock_after)
        db_transaction = await self.transaction_repo.add(
            product_id=product_id,
            transaction_type=transaction_type,
            quantity=delta,
            stock_before=stock_before,
            stock_after=stock_after,
            notes=notes,
            created_by=actor_id
        )

        logger.info(
            f"库存流水 product={product_id} type={transaction_type.value} "
            f"{stock_before} -> {stock_after}"
        )
        return self.transaction_repo.to_model(db_transaction)


class StockLedgerService:
    """库存管理服务（管理端独立操作与查询）"""

    def __init__(self, session_maker: async_sessionmaker):
        self.session_maker = session_maker

    async def record_stock_transaction(
        self,
        product_id: int,
        transaction_type: StockTransactionType,
        quantity: int,
        notes: Optional[str],
        actor_id: int
    ) -> StockTransaction:
        """管理员手动入库/出库/盘点，独立的工作单元"""
        async with UnitOfWork(self.session_maker) as uow:
            await require_admin(UserRepository(uow.session), actor_id)
            transaction = await StockLedger(uow.session).record_transaction(
                product_id, transaction_type, quantity, notes, actor_id
            )
        return transaction

    async def get_transaction(self, transaction_id: int) -> StockTransaction:
        async with self.session_maker() as session:
            repo = StockTransactionRepository(session)
            db_transaction = await repo.get_by_id(transaction_id)
            if not db_transaction:
                raise NotFoundError("StockTransaction", transaction_id)
            return repo.to_model(db_transaction)

    async def list_transactions(
        self,
        product_id: Optional[int] = None,
        transaction_type: Optional[StockTransactionType] = None,
        keyword: Optional[str] = None,
        limit: int = 20,
        offset: int = 0
    ) -> List[StockTransaction]:
        """检索库存流水，按时间倒序"""
        async with self.session_maker() as session:
            repo = StockTransactionRepository(session)
            db_transactions = await repo.search(
                product_id=product_id,
                transaction_type=transaction_type,
                keyword=keyword,
                limit=limit,
                offset=offset
            )
            return [repo.to_model(t) for t in db_transactions]

    async def get_product_history(self, product_id: int) -> List[StockTransaction]:
        async with self.session_maker() as session:
            repo = StockTransactionRepository(session)
            return [repo.to_model(t) for t in await repo.get_product_history(product_id)]

    async def verify_product_ledger(self, product_id: int) -> LedgerVerification:
        """
        校验商品流水链

        每条流水满足 stock_after = stock_before + quantity 且不为负，
        相邻流水首尾相接，最后一条的 stock_after 等于当前库存。
        """
        async with self.session_maker() as session:
            db_product = await ProductRepository(session).get_by_id(product_id)
            if not db_product:
                raise NotFoundError("Product", product_id)
            history = await StockTransactionRepository(session).get_product_history(product_id)

        problems = []
        previous_after = None
        for entry in history:
            if entry.stock_after != entry.stock_before + entry.quantity:
                problems.append(f"transaction {entry.id}: stock_after != stock_before + quantity")
            if entry.stock_after < 0:
                problems.append(f"transaction {entry.id}: negative stock")
            if previous_after is not None and entry.stock_before != previous_after:
                problems.append(f"transaction {entry.id}: chain broken (expected before={previous_after})")
            previous_after = entry.stock_after

        if previous_after is not None and previous_after != db_product.stock:
            problems.append(
                f"current stock {db_product.stock} differs from last ledger entry {previous_after}"
            )

        return LedgerVerification(
            product_id=product_id,
            current_stock=db_product.stock,
            entries=len(history),
            is_consistent=not problems,
            problems=problems
        )
