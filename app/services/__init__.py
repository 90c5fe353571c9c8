"""
服务包初始化文件
"""

from .coupon_service import CouponService
from .notification_service import (
    LoggingEmailSink,
    RedisNotificationSink,
    SideEffectDispatcher,
    side_effect_dispatcher
)
from .order_service import OrderService
from .promotion_service import PromotionService
from .stock_ledger_service import StockLedger, StockLedgerService

__all__ = [
    "CouponService",
    "LoggingEmailSink",
    "RedisNotificationSink",
    "SideEffectDispatcher",
    "side_effect_dispatcher",
    "OrderService",
    "PromotionService",
    "StockLedger",
    "StockLedgerService"
]
