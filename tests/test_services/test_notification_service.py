"""
通知与副作用派发测试
"""

import asyncio
import pytest
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

from sqlalchemy import select

from app.models.checkout import User
from app.models.database.user_db import NotificationDB, UserDB
from app.models.order import Order, OrderStatus
from app.services.notification_service import (
    LoggingEmailSink,
    RedisNotificationSink,
    SideEffectDispatcher,
)


async def load_notifications(session_maker):
    async with session_maker() as session:
        result = await session.execute(select(NotificationDB).order_by(NotificationDB.id))
        return list(result.scalars().all())


@pytest.mark.asyncio
class TestRedisNotificationSink:
    """站内通知测试类"""

    @pytest.fixture
    def mock_redis(self):
        """模拟Redis管理器"""
        redis = MagicMock()
        redis.publish = AsyncMock(return_value=1)
        return redis

    @pytest.fixture
    def sink(self, session_maker, seed_data, mock_redis):
        return RedisNotificationSink(session_maker, redis=mock_redis, channel="test-orders")

    async def test_new_order_notifies_every_admin(self, sink, session_maker, mock_redis, seed_data):
        """测试新订单通知发送给所有管理员"""
        async with session_maker() as session:
            session.add(UserDB(id=10, full_name="Second Admin", email="ops@example.com", role="admin"))
            await session.commit()

        # 调用方法
        await sink.notify_new_order(7, "ORD-2024-06-01-001", "Alice Nguyen", Decimal("240000.00"))

        # 验证结果
        notifications = await load_notifications(session_maker)
        assert sorted(n.user_id for n in notifications) == [seed_data["admin_id"], 10]
        assert all(n.order_id == 7 for n in notifications)
        assert "ORD-2024-06-01-001" in notifications[0].message
        assert "Alice Nguyen" in notifications[0].message

        mock_redis.publish.assert_awaited_once()
        channel, payload = mock_redis.publish.await_args.args
        assert channel == "test-orders"
        assert payload["event"] == "order.created"
        assert payload["total"] == "240000.00"

    async def test_status_change_notifies_customer(self, sink, session_maker, mock_redis, seed_data):
        """测试状态变更通知发送给下单用户"""
        await sink.notify_status_change(seed_data["customer_id"], 7, OrderStatus.SHIPPED)

        notifications = await load_notifications(session_maker)
        assert len(notifications) == 1
        assert notifications[0].user_id == seed_data["customer_id"]
        assert notifications[0].message == "Your order #7 is now: Shipped"

        payload = mock_redis.publish.await_args.args[1]
        assert payload["event"] == "order.status_changed"
        assert payload["status"] == "shipped"


@pytest.mark.asyncio
class TestSideEffectDispatcher:
    """副作用派发器测试类"""

    async def test_runs_hooks(self):
        """测试派发的副作用全部执行"""
        dispatcher = SideEffectDispatcher()
        first = AsyncMock()
        second = AsyncMock()

        dispatcher.dispatch([first, second])
        await dispatcher.drain()

        first.assert_awaited_once()
        second.assert_awaited_once()
        assert dispatcher.pending == 0

    async def test_failure_is_isolated(self):
        """测试一个副作用失败不影响其他副作用"""
        dispatcher = SideEffectDispatcher()
        failing = AsyncMock(side_effect=RuntimeError("smtp down"))
        succeeding = AsyncMock()

        dispatcher.dispatch([failing, succeeding])
        await dispatcher.drain()

        failing.assert_awaited_once()
        succeeding.assert_awaited_once()

    async def test_dispatch_does_not_block(self):
        """测试派发立即返回，副作用在后台执行"""
        dispatcher = SideEffectDispatcher()
        started = asyncio.Event()
        release = asyncio.Event()

        async def slow_hook():
            started.set()
            await release.wait()

        dispatcher.dispatch([slow_hook])
        assert dispatcher.pending == 1

        await started.wait()
        release.set()
        await dispatcher.drain()
        assert dispatcher.pending == 0


@pytest.mark.asyncio
async def test_logging_email_sink():
    """测试确认邮件只记录日志"""
    user = User(id=2, full_name="Alice Nguyen", email="alice@example.com")
    order = Order(
        id=1,
        order_number="ORD-2024-06-01-001",
        user_id=2,
        subtotal=Decimal("300000"),
        final_amount=Decimal("240000")
    )

    await LoggingEmailSink().send_order_confirmation(user, order)
