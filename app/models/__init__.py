"""
数据模型包初始化文件
"""

from .order import (
    Order,
    OrderItem,
    OrderStatus,
    OrderStatusHistory,
    PaymentStatus,
)
from .coupon import Coupon, CouponResult, CouponValidation, DiscountType
from .promotion import Promotion, PromotionMatch, PromotionScope, PromotionType
from .stock import StockTransaction, StockTransactionType

__all__ = [
    "Order",
    "OrderItem",
    "OrderStatus",
    "OrderStatusHistory",
    "PaymentStatus",
    "Coupon",
    "CouponResult",
    "CouponValidation",
    "DiscountType",
    "Promotion",
    "PromotionMatch",
    "PromotionScope",
    "PromotionType",
    "StockTransaction",
    "StockTransactionType"
]
