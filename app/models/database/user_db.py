"""
外部协作方使用的数据库模型（用户、地址、支付方式、购物车、通知）
"""

from sqlalchemy import Column, String, Integer, Text, Boolean, DateTime, ForeignKey, UniqueConstraint
from datetime import datetime
from app.core.database import Base


class UserDB(Base):
    """用户表"""

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True, comment="用户ID")
    full_name = Column(String(100), nullable=False, comment="姓名")
    email = Column(String(200), nullable=False, unique=True, comment="邮箱")
    role = Column(String(20), nullable=False, default="customer", comment="角色 customer/admin")
    created_at = Column(DateTime, default=datetime.now, comment="创建时间")
    deleted_at = Column(DateTime, comment="软删除时间")


class UserAddressDB(Base):
    """收货地址表"""

    __tablename__ = "user_addresses"

    id = Column(Integer, primary_key=True, autoincrement=True, comment="地址ID")
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True, comment="所属用户ID")
    recipient_name = Column(String(100), nullable=False, comment="收件人")
    phone = Column(String(30), comment="电话")
    address_line = Column(Text, nullable=False, comment="详细地址")
    deleted_at = Column(DateTime, comment="软删除时间")


class PaymentMethodDB(Base):
    """支付方式表"""

    __tablename__ = "payment_methods"

    id = Column(Integer, primary_key=True, autoincrement=True, comment="支付方式ID")
    name = Column(String(100), nullable=False, comment="名称")
    code = Column(String(50), nullable=False, unique=True, comment="代码")
    is_active = Column(Boolean, nullable=False, default=True, comment="是否启用")
    deleted_at = Column(DateTime, comment="软删除时间")


class CartItemDB(Base):
    """购物车项目表"""

    __tablename__ = "cart_items"

    id = Column(Integer, primary_key=True, autoincrement=True, comment="购物车项ID")
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True, comment="用户ID")
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False, comment="商品ID")
    quantity = Column(Integer, nullable=False, comment="数量")
    created_at = Column(DateTime, default=datetime.now, comment="加入时间")

    __table_args__ = (
        UniqueConstraint("user_id", "product_id", name="uq_cart_user_product"),
    )


class NotificationDB(Base):
    """站内通知表"""

    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, autoincrement=True, comment="通知ID")
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True, comment="接收用户ID")
    kind = Column(String(30), nullable=False, comment="通知类型")
    title = Column(String(200), nullable=False, comment="标题")
    message = Column(Text, nullable=False, comment="内容")
    order_id = Column(Integer, comment="关联订单ID")
    is_read = Column(Boolean, nullable=False, default=False, comment="是否已读")
    created_at = Column(DateTime, default=datetime.now, comment="创建时间")
