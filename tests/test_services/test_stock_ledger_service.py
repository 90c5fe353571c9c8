"""
库存流水服务测试 - 使用测试数据库
"""

import pytest
from sqlalchemy import select

from app.core.exceptions import (
    InsufficientStockError,
    InvalidAdjustmentError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from app.core.unit_of_work import UnitOfWork
from app.models.database.product_db import ProductDB, StockTransactionDB
from app.models.stock import StockTransactionType
from app.services.stock_ledger_service import StockLedger, StockLedgerService


async def get_stock(session_maker, product_id: int) -> int:
    async with session_maker() as session:
        result = await session.execute(select(ProductDB.stock).where(ProductDB.id == product_id))
        return result.scalar_one()


async def count_transactions(session_maker, product_id: int) -> int:
    async with session_maker() as session:
        result = await session.execute(
            select(StockTransactionDB).where(StockTransactionDB.product_id == product_id)
        )
        return len(result.scalars().all())


@pytest.mark.asyncio
class TestStockLedger:
    """库存账本测试类"""

    @pytest.fixture
    def stock_service(self, session_maker, seed_data):
        """创建StockLedgerService实例"""
        return StockLedgerService(session_maker)

    async def test_stock_in(self, stock_service, session_maker, seed_data):
        """测试入库"""
        # 调用方法
        transaction = await stock_service.record_stock_transaction(
            seed_data["widget_id"], StockTransactionType.IN, 5, "Restock", actor_id=seed_data["admin_id"]
        )

        # 验证结果
        assert transaction.type == StockTransactionType.IN
        assert transaction.quantity == 5
        assert transaction.stock_before == 10
        assert transaction.stock_after == 15
        assert transaction.created_by == seed_data["admin_id"]
        assert await get_stock(session_maker, seed_data["widget_id"]) == 15

    async def test_stock_out_stored_as_negative_delta(self, stock_service, session_maker, seed_data):
        """测试出库以负数记录"""
        transaction = await stock_service.record_stock_transaction(
            seed_data["widget_id"], StockTransactionType.OUT, 3, None, actor_id=seed_data["admin_id"]
        )

        assert transaction.quantity == -3
        assert transaction.stock_before == 10
        assert transaction.stock_after == 7
        assert await get_stock(session_maker, seed_data["widget_id"]) == 7

    async def test_adjustment_signed(self, stock_service, session_maker, seed_data):
        """测试盘点调整（可正可负）"""
        down = await stock_service.record_stock_transaction(
            seed_data["gizmo_id"], StockTransactionType.ADJUSTMENT, -4, "Stock count", actor_id=seed_data["admin_id"]
        )
        up = await stock_service.record_stock_transaction(
            seed_data["gizmo_id"], StockTransactionType.ADJUSTMENT, 1, "Found one", actor_id=seed_data["admin_id"]
        )

        assert (down.stock_before, down.stock_after) == (20, 16)
        assert (up.stock_before, up.stock_after) == (16, 17)
        assert await get_stock(session_maker, seed_data["gizmo_id"]) == 17

    async def test_insufficient_stock(self, stock_service, session_maker, seed_data):
        """测试出库数量超过库存"""
        with pytest.raises(InsufficientStockError) as exc_info:
            await stock_service.record_stock_transaction(
                seed_data["gadget_id"], StockTransactionType.OUT, 3, None, actor_id=seed_data["admin_id"]
            )

        assert exc_info.value.shortfall == 1
        assert exc_info.value.available == 2
        assert await get_stock(session_maker, seed_data["gadget_id"]) == 2
        assert await count_transactions(session_maker, seed_data["gadget_id"]) == 0

    async def test_negative_adjustment_result(self, stock_service, session_maker, seed_data):
        """测试调整后库存为负"""
        with pytest.raises(InvalidAdjustmentError):
            await stock_service.record_stock_transaction(
                seed_data["gadget_id"], StockTransactionType.ADJUSTMENT, -3, None, actor_id=seed_data["admin_id"]
            )

        assert await get_stock(session_maker, seed_data["gadget_id"]) == 2

    @pytest.mark.parametrize("transaction_type, quantity", [
        (StockTransactionType.IN, 0),
        (StockTransactionType.IN, -1),
        (StockTransactionType.OUT, 0),
        (StockTransactionType.ADJUSTMENT, 0),
    ])
    async def test_invalid_quantity(self, stock_service, seed_data, transaction_type, quantity):
        """测试数量校验"""
        with pytest.raises(ValidationError):
            await stock_service.record_stock_transaction(
                seed_data["widget_id"], transaction_type, quantity, None, actor_id=seed_data["admin_id"]
            )

    async def test_unknown_product(self, stock_service, seed_data):
        with pytest.raises(NotFoundError):
            await stock_service.record_stock_transaction(
                999, StockTransactionType.IN, 1, None, actor_id=seed_data["admin_id"]
            )

    async def test_requires_admin(self, stock_service, session_maker, seed_data):
        """测试非管理员不能手动调整库存"""
        with pytest.raises(PermissionDeniedError):
            await stock_service.record_stock_transaction(
                seed_data["widget_id"], StockTransactionType.IN, 5, None, actor_id=seed_data["customer_id"]
            )

        assert await get_stock(session_maker, seed_data["widget_id"]) == 10

    async def test_ledger_rolls_back_with_unit_of_work(self, session_maker, seed_data):
        """测试流水随调用方事务一起回滚"""
        with pytest.raises(RuntimeError):
            async with UnitOfWork(session_maker) as uow:
                await StockLedger(uow.session).record_transaction(
                    seed_data["widget_id"], StockTransactionType.OUT, 4
                )
                raise RuntimeError("boom")

        assert await get_stock(session_maker, seed_data["widget_id"]) == 10
        assert await count_transactions(session_maker, seed_data["widget_id"]) == 0

    async def test_history_and_verification(self, stock_service, seed_data):
        """测试流水链首尾相接并与当前库存一致"""
        admin_id = seed_data["admin_id"]
        widget_id = seed_data["widget_id"]
        await stock_service.record_stock_transaction(widget_id, StockTransactionType.IN, 5, None, admin_id)
        await stock_service.record_stock_transaction(widget_id, StockTransactionType.OUT, 8, None, admin_id)
        await stock_service.record_stock_transaction(widget_id, StockTransactionType.ADJUSTMENT, -2, None, admin_id)

        history = await stock_service.get_product_history(widget_id)
        verification = await stock_service.verify_product_ledger(widget_id)

        assert [(t.stock_before, t.stock_after) for t in history] == [(10, 15), (15, 7), (7, 5)]
        assert verification.is_consistent
        assert verification.entries == 3
        assert verification.current_stock == 5
        assert verification.problems == []

    async def test_verification_detects_drift(self, stock_service, session_maker, seed_data):
        """测试绕过流水直接修改库存会被检测出来"""
        widget_id = seed_data["widget_id"]
        await stock_service.record_stock_transaction(
            widget_id, StockTransactionType.IN, 5, None, seed_data["admin_id"]
        )
        async with session_maker() as session:
            product = await session.get(ProductDB, widget_id)
            product.stock = 99
            await session.commit()

        verification = await stock_service.verify_product_ledger(widget_id)

        assert not verification.is_consistent
        assert "differs from last ledger entry" in verification.problems[0]

    async def test_list_transactions_filters(self, stock_service, seed_data):
        """测试按商品、类型、关键字检索流水"""
        admin_id = seed_data["admin_id"]
        await stock_service.record_stock_transaction(seed_data["widget_id"], StockTransactionType.IN, 5, "Supplier A", admin_id)
        await stock_service.record_stock_transaction(seed_data["gizmo_id"], StockTransactionType.OUT, 1, "Damaged", admin_id)
        await stock_service.record_stock_transaction(seed_data["gizmo_id"], StockTransactionType.IN, 2, "Supplier B", admin_id)

        by_product = await stock_service.list_transactions(product_id=seed_data["gizmo_id"])
        by_type = await stock_service.list_transactions(transaction_type=StockTransactionType.IN)
        by_keyword = await stock_service.list_transactions(keyword="damaged")

        assert len(by_product) == 2
        # 按时间倒序
        assert by_product[0].notes == "Supplier B"
        assert {t.notes for t in by_type} == {"Supplier A", "Supplier B"}
        assert [t.notes for t in by_keyword] == ["Damaged"]

    async def test_get_transaction(self, stock_service, seed_data):
        created = await stock_service.record_stock_transaction(
            seed_data["widget_id"], StockTransactionType.IN, 1, None, seed_data["admin_id"]
        )

        fetched = await stock_service.get_transaction(created.id)

        assert fetched == created
        with pytest.raises(NotFoundError):
            await stock_service.get_transaction(12345)
