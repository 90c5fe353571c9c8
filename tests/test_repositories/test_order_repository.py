"""
订单Repository数据库操作测试 - 使用测试数据库
"""

import pytest
from decimal import Decimal
from datetime import datetime

from app.models.order import OrderStatus
from app.repositories.order_repository import OrderRepository


def order_data(order_number: str, user_id: int, status: str = "pending") -> dict:
    return {
        "order_number": order_number,
        "user_id": user_id,
        "subtotal": Decimal("300000"),
        "coupon_discount": Decimal("60000"),
        "promotion_discount": Decimal("0"),
        "shipping_fee": Decimal("0"),
        "final_amount": Decimal("240000"),
        "status": status,
    }


@pytest.mark.asyncio
class TestOrderRepository:
    """订单Repository数据库操作测试类"""

    async def test_create_and_get_order(self, db_session, seed_data):
        """测试创建和获取订单"""
        # 创建Repository实例
        order_repo = OrderRepository(db_session)

        # 创建订单
        db_order = await order_repo.create_order(order_data("ORD-2024-06-01-001", seed_data["customer_id"]))
        await order_repo.add_item({
            "order_id": db_order.id,
            "product_id": seed_data["widget_id"],
            "product_name": "Widget",
            "quantity": 3,
            "price": Decimal("100000"),
            "subtotal": Decimal("300000"),
        })

        # 通过ID获取订单
        retrieved = await order_repo.get_by_id(db_order.id)
        order = await order_repo.load_model(retrieved)

        # 验证结果
        assert order.order_number == "ORD-2024-06-01-001"
        assert order.status == OrderStatus.PENDING
        assert order.final_amount == Decimal("240000")
        assert len(order.items) == 1
        assert order.items[0].units_shipped == 3

    async def test_get_nonexistent_order(self, db_session, seed_data):
        """测试获取不存在的订单"""
        order_repo = OrderRepository(db_session)

        assert await order_repo.get_by_id(404) is None

    async def test_soft_deleted_order_is_hidden(self, db_session, seed_data):
        """测试软删除的订单不再返回"""
        order_repo = OrderRepository(db_session)
        db_order = await order_repo.create_order(order_data("ORD-2024-06-01-001", seed_data["customer_id"]))

        db_order.deleted_at = datetime.now()
        await db_session.flush()

        assert await order_repo.get_by_id(db_order.id) is None
        assert await order_repo.get_user_orders(seed_data["customer_id"]) == []
        assert await order_repo.search_orders("ORD-2024") == []

    async def test_latest_order_number_by_prefix(self, db_session, seed_data):
        """测试按日期前缀获取最大的订单编号"""
        order_repo = OrderRepository(db_session)
        for number in ("ORD-2024-06-01-001", "ORD-2024-06-01-002", "ORD-2024-06-02-001"):
            await order_repo.create_order(order_data(number, seed_data["customer_id"]))

        assert await order_repo.get_latest_order_number("ORD-2024-06-01-") == "ORD-2024-06-01-002"
        assert await order_repo.get_latest_order_number("ORD-2024-06-03-") is None

    async def test_user_orders_and_status_filter(self, db_session, seed_data):
        """测试用户订单列表与状态过滤"""
        order_repo = OrderRepository(db_session)
        await order_repo.create_order(order_data("ORD-2024-06-01-001", seed_data["customer_id"]))
        await order_repo.create_order(order_data("ORD-2024-06-01-002", seed_data["customer_id"], "confirmed"))
        await order_repo.create_order(order_data("ORD-2024-06-01-003", seed_data["other_customer_id"]))

        all_orders = await order_repo.get_user_orders(seed_data["customer_id"])
        confirmed = await order_repo.get_user_orders(seed_data["customer_id"], status_filter=OrderStatus.CONFIRMED)
        admin_pending = await order_repo.list_orders(status=OrderStatus.PENDING)

        assert len(all_orders) == 2
        assert [o.order_number for o in confirmed] == ["ORD-2024-06-01-002"]
        assert {o.order_number for o in admin_pending} == {"ORD-2024-06-01-001", "ORD-2024-06-01-003"}

    async def test_status_history_in_order(self, db_session, seed_data):
        """测试状态历史按写入顺序返回"""
        order_repo = OrderRepository(db_session)
        db_order = await order_repo.create_order(order_data("ORD-2024-06-01-001", seed_data["customer_id"]))

        await order_repo.add_history(db_order.id, OrderStatus.PENDING, "Order placed", seed_data["customer_id"])
        await order_repo.add_history(db_order.id, OrderStatus.CONFIRMED, None, seed_data["admin_id"])

        history = [order_repo.history_to_model(h) for h in await order_repo.load_history_for_order(db_order.id)]
        assert [h.status for h in history] == [OrderStatus.PENDING, OrderStatus.CONFIRMED]
        assert history[1].changed_by == seed_data["admin_id"]

    async def test_search_orders(self, db_session, seed_data):
        """测试按订单编号、备注、用户姓名或邮箱搜索"""
        order_repo = OrderRepository(db_session)
        first = await order_repo.create_order(order_data("ORD-2024-06-01-001", seed_data["customer_id"]))
        second = await order_repo.create_order(
            {**order_data("ORD-2024-06-02-001", seed_data["other_customer_id"]), "notes": "Leave at the GATE"}
        )

        by_number = await order_repo.search_orders("06-01")
        by_notes = await order_repo.search_orders("gate")
        by_name = await order_repo.search_orders("alice")
        by_email = await order_repo.search_orders("BOB@EXAMPLE")
        by_prefix = await order_repo.search_orders("ORD-2024")

        assert [o.id for o in by_number] == [first.id]
        assert [o.id for o in by_notes] == [second.id]
        assert [o.id for o in by_name] == [first.id]
        assert [o.id for o in by_email] == [second.id]
        assert {o.id for o in by_prefix} == {first.id, second.id}
        assert await order_repo.search_orders("nobody") == []
