"""
商品与库存流水数据库操作层
"""

from typing import List, Optional, Sequence

from sqlalchemy import select, update, and_, desc, or_
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.attributes import set_committed_value

from app.core.exceptions import ConcurrencyConflictError
from app.models.stock import StockTransaction, StockTransactionType
from app.models.database.product_db import ProductDB, StockTransactionDB


class ProductRepository:
    """商品数据库操作层"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_by_id(self, product_id: int, for_update: bool = False) -> Optional[ProductDB]:
        """获取商品；for_update=True时对该行加锁直到事务结束"""
        query = select(ProductDB).where(
            and_(ProductDB.id == product_id, ProductDB.deleted_at.is_(None))
        )
        if for_update:
            # 加锁读取必须拿到数据库中的最新值，而不是会话缓存中的旧对象
            query = query.with_for_update().execution_options(populate_existing=True)
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def get_many(self, product_ids: Sequence[int]) -> List[ProductDB]:
        """批量获取商品"""
        if not product_ids:
            return []
        result = await self.db.execute(
            select(ProductDB).where(
                and_(ProductDB.id.in_(list(product_ids)), ProductDB.deleted_at.is_(None))
            )
        )
        return list(result.scalars().all())

    async def write_stock(self, db_product: ProductDB, expected_version: int, new_stock: int) -> None:
        """
        乐观锁写入库存
        版本号不匹配说明期间有其他事务修改了库存，抛出ConcurrencyConflictError
        """
        result = await self.db.execute(
            update(ProductDB)
            .where(
                and_(
                    ProductDB.id == db_product.id,
                    ProductDB.stock_version == expected_version
                )
            )
            .values(stock=new_stock, stock_version=expected_version + 1)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise ConcurrencyConflictError(
                f"Stock of product {db_product.id} was modified concurrently",
                details={"product_id": db_product.id}
            )
        # 已由上面的UPDATE写入，只同步会话中的对象状态
        set_committed_value(db_product, "stock", new_stock)
        set_committed_value(db_product, "stock_version", expected_version + 1)


class StockTransactionRepository:
    """库存流水数据库操作层（只追加）"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def add(
        self,
        product_id: int,
        transaction_type: StockTransactionType,
        quantity: int,
        stock_before: int,
        stock_after: int,
        notes: Optional[str],
        created_by: Optional[int]
    ) -> StockTransactionDB:
        """写入一条流水"""
        db_transaction = StockTransactionDB(
            product_id=product_id,
            type=transaction_type.value,
            quantity=quantity,
            stock_before=stock_before,
            stock_after=stock_after,
            notes=notes,
            created_by=created_by
        )
        self.db.add(db_transaction)
        await self.db.flush()
        return db_transaction

    async def get_by_id(self, transaction_id: int) -> Optional[StockTransactionDB]:
        result = await self.db.execute(
            select(StockTransactionDB).where(StockTransactionDB.id == transaction_id)
        )
        return result.scalar_one_or_none()

    async def search(
        self,
        product_id: Optional[int] = None,
        transaction_type: Optional[StockTransactionType] = None,
        keyword: Optional[str] = None,
        limit: int = 20,
        offset: int = 0
    ) -> List[StockTransactionDB]:
        """按商品/类型/备注关键字检索流水"""
        conditions = []
        if product_id is not None:
            conditions.append(StockTransactionDB.product_id == product_id)
        if transaction_type is not None:
            conditions.append(StockTransactionDB.type == transaction_type.value)

        query = select(StockTransactionDB)
        if keyword:
            pattern = f"%{keyword}%"
            query = query.join(ProductDB, ProductDB.id == StockTransactionDB.product_id)
            conditions.append(
                or_(StockTransactionDB.notes.ilike(pattern), ProductDB.name.ilike(pattern))
            )
        if conditions:
            query = query.where(and_(*conditions))

        query = query.order_by(desc(StockTransactionDB.id)).limit(limit).offset(offset)
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def get_product_history(self, product_id: int) -> List[StockTransactionDB]:
        """按写入顺序返回商品的全部流水"""
        result = await self.db.execute(
            select(StockTransactionDB)
            .where(StockTransactionDB.product_id == product_id)
            .order_by(StockTransactionDB.id)
        )
        return list(result.scalars().all())

    def to_model(self, db_transaction: StockTransactionDB) -> StockTransaction:
        return StockTransaction.model_validate(db_transaction)
