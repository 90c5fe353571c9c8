"""
仓库包初始化文件 - 数据库访问层
"""

from .checkout_repository import (
    UserRepository,
    CartRepository,
    AddressRepository,
    PaymentMethodRepository
)
from .coupon_repository import CouponRepository
from .order_repository import OrderRepository
from .promotion_repository import PromotionRepository
from .stock_repository import ProductRepository, StockTransactionRepository

__all__ = [
    "UserRepository",
    "CartRepository",
    "AddressRepository",
    "PaymentMethodRepository",
    "CouponRepository",
    "OrderRepository",
    "PromotionRepository",
    "ProductRepository",
    "StockTransactionRepository"
]
