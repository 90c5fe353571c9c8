"""
API依赖注入
当前用户通过 X-User-Id 请求头识别（认证由网关负责）
"""

from fastapi import Depends, Header
from sqlalchemy.ext.asyncio import async_sessionmaker

from app.core.database import get_session_maker
from app.models.checkout import User
from app.repositories.checkout_repository import UserRepository
from app.services.collaborators import require_admin
from app.services.coupon_service import CouponService
from app.services.notification_service import LoggingEmailSink, RedisNotificationSink
from app.services.order_service import OrderService
from app.services.promotion_service import PromotionService
from app.services.stock_ledger_service import StockLedgerService


async def get_current_user_id(x_user_id: int = Header(..., alias="X-User-Id")) -> int:
    return x_user_id


async def get_admin_user(
    user_id: int = Depends(get_current_user_id),
    session_maker: async_sessionmaker = Depends(get_session_maker)
) -> User:
    """管理端查询接口的权限校验（写操作在服务层校验）"""
    async with session_maker() as session:
        return await require_admin(UserRepository(session), user_id)


def get_order_service(session_maker: async_sessionmaker = Depends(get_session_maker)) -> OrderService:
    return OrderService(
        session_maker,
        notification_sink=RedisNotificationSink(session_maker),
        email_sink=LoggingEmailSink()
    )


def get_stock_service(session_maker: async_sessionmaker = Depends(get_session_maker)) -> StockLedgerService:
    return StockLedgerService(session_maker)


def get_coupon_service(session_maker: async_sessionmaker = Depends(get_session_maker)) -> CouponService:
    return CouponService(session_maker)


def get_promotion_service(session_maker: async_sessionmaker = Depends(get_session_maker)) -> PromotionService:
    return PromotionService(session_maker)
