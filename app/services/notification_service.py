"""
订单副作用：站内通知、确认邮件，以及提交后的异步派发
"""

import asyncio
from decimal import Decimal
from typing import Awaitable, Callable, Iterable, Optional, Set

import structlog
from sqlalchemy.ext.asyncio import async_sessionmaker

from app.core.config import settings
from app.core.redis import RedisManager, redis_manager
from app.core.unit_of_work import UnitOfWork
from app.models.checkout import User
from app.models.database.user_db import NotificationDB
from app.models.order import ORDER_STATUS_LABELS, Order, OrderStatus
from app.repositories.checkout_repository import UserRepository

logger = structlog.get_logger()

NOTIFICATION_KIND_ORDER = "order"


class RedisNotificationSink:
    """
    通知落库并发布到Redis频道

    新订单通知发送给所有管理员，状态变更通知发送给下单用户。
    """

    def __init__(
        self,
        session_maker: async_sessionmaker,
        redis: Optional[RedisManager] = None,
        channel: Optional[str] = None
    ):
        self.session_maker = session_maker
        self.redis = redis or redis_manager
        self.channel = channel or settings.notification_channel

    async def notify_new_order(
        self,
        order_id: int,
        order_number: str,
        customer_name: str,
        total: Decimal
    ) -> None:
        title = "New order"
        message = f"Customer {customer_name} placed order {order_number} with total {total}"

        async with UnitOfWork(self.session_maker) as uow:
            admin_ids = await UserRepository(uow.session).list_admin_ids()
            if not admin_ids:
                logger.warning("没有管理员可接收新订单通知", order_number=order_number)
                return
            for admin_id in admin_ids:
                uow.session.add(NotificationDB(
                    user_id=admin_id,
                    kind=NOTIFICATION_KIND_ORDER,
                    title=title,
                    message=message,
                    order_id=order_id
                ))

        await self.redis.publish(self.channel, {
            "event": "order.created",
            "order_id": order_id,
            "order_number": order_number,
            "customer_name": customer_name,
            "total": str(total),
            "recipients": admin_ids,
        })
        logger.info("新订单通知已发送", order_number=order_number, admins=len(admin_ids))

    async def notify_status_change(self, user_id: int, order_id: int, new_status: OrderStatus) -> None:
        label = ORDER_STATUS_LABELS[OrderStatus(new_status)]
        title = "Order status changed"
        message = f"Your order #{order_id} is now: {label}"

        async with UnitOfWork(self.session_maker) as uow:
            uow.session.add(NotificationDB(
                user_id=user_id,
                kind=NOTIFICATION_KIND_ORDER,
                title=title,
                message=message,
                order_id=order_id
            ))

        await self.redis.publish(self.channel, {
            "event": "order.status_changed",
            "order_id": order_id,
            "user_id": user_id,
            "status": OrderStatus(new_status).value,
            "label": label,
        })
        logger.info("订单状态通知已发送", order_id=order_id, status=OrderStatus(new_status).value)


class LoggingEmailSink:
    """邮件投递由外部服务完成，这里只记录待发送的确认邮件"""

    async def send_order_confirmation(self, user: User, order: Order) -> None:
        logger.info(
            "订单确认邮件已提交",
            to=user.email,
            order_number=order.order_number,
            final_amount=str(order.final_amount),
            items=len(order.items)
        )


SideEffect = Callable[[], Awaitable[None]]


class SideEffectDispatcher:
    """
    提交后副作用派发器

    每个副作用在独立的任务中执行，异常只记录日志，不会影响已提交的订单。
    """

    def __init__(self):
        self._tasks: Set[asyncio.Task] = set()

    def dispatch(self, hooks: Iterable[SideEffect]) -> None:
        for hook in hooks:
            task = asyncio.create_task(self._run(hook))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)

    async def _run(self, hook: SideEffect) -> None:
        try:
            await hook()
        except Exception as e:
            logger.exception("订单副作用执行失败", hook=getattr(hook, "__name__", repr(hook)), error=str(e))

    async def drain(self) -> None:
        """等待所有已派发的副作用结束（关闭应用和测试时使用）"""
        while self._tasks:
            await asyncio.gather(*list(self._tasks))

    @property
    def pending(self) -> int:
        return len(self._tasks)


# 全局派发器实例
side_effect_dispatcher = SideEffectDispatcher()
