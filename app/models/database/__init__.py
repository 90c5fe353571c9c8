"""
数据库模型包初始化文件
"""

from .product_db import ProductDB, StockTransactionDB
from .coupon_db import CouponDB
from .promotion_db import PromotionDB, promotion_products
from .order_db import OrderDB, OrderItemDB, OrderStatusHistoryDB
from .user_db import UserDB, UserAddressDB, PaymentMethodDB, CartItemDB, NotificationDB

__all__ = [
    "ProductDB",
    "StockTransactionDB",
    "CouponDB",
    "PromotionDB",
    "promotion_products",
    "OrderDB",
    "OrderItemDB",
    "OrderStatusHistoryDB",
    "UserDB",
    "UserAddressDB",
    "PaymentMethodDB",
    "CartItemDB",
    "NotificationDB"
]
