"""
订单相关数据库模型
"""

from sqlalchemy import Column, String, Integer, Numeric, Text, DateTime, ForeignKey
from datetime import datetime
from app.core.database import Base


class OrderDB(Base):
    """订单数据库表"""

    __tablename__ = "orders"

    # 主键和用户信息
    id = Column(Integer, primary_key=True, autoincrement=True, comment="订单ID")
    order_number = Column(String(30), nullable=False, unique=True, index=True, comment="订单编号")
    user_id = Column(Integer, nullable=False, index=True, comment="用户ID")

    # 金额信息
    subtotal = Column(Numeric(12, 2), nullable=False, comment="商品小计")
    coupon_discount = Column(Numeric(12, 2), nullable=False, default=0, comment="优惠券折扣")
    promotion_discount = Column(Numeric(12, 2), nullable=False, default=0, comment="促销折扣")
    shipping_fee = Column(Numeric(12, 2), nullable=False, default=0, comment="运费")
    final_amount = Column(Numeric(12, 2), nullable=False, comment="最终金额")

    # 应用的优惠信息
    coupon_id = Column(Integer, ForeignKey("coupons.id"), comment="使用的优惠券ID")
    promotion_id = Column(Integer, ForeignKey("promotions.id"), comment="订单级促销ID")

    # 收货与支付
    shipping_address_id = Column(Integer, comment="收货地址ID")
    payment_method_id = Column(Integer, comment="支付方式ID")

    # 订单状态
    status = Column(String(20), nullable=False, default="pending", index=True, comment="订单状态")
    payment_status = Column(String(20), nullable=False, default="pending", index=True, comment="支付状态")

    # 备注
    notes = Column(Text, comment="订单备注")

    # 时间戳
    created_at = Column(DateTime, default=datetime.now, index=True, comment="创建时间")
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now, comment="更新时间")
    deleted_at = Column(DateTime, comment="软删除时间")

    __table_args__ = (
        {'comment': '订单主表'}
    )


class OrderItemDB(Base):
    """订单项目数据库表"""

    __tablename__ = "order_items"

    # 主键和关联信息
    id = Column(Integer, primary_key=True, autoincrement=True, comment="订单项ID")
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False, index=True, comment="订单ID")
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False, comment="商品ID")
    product_name = Column(String(200), nullable=False, comment="下单时商品名称")

    # 价格信息（下单时快照）
    quantity = Column(Integer, nullable=False, comment="购买数量")
    price = Column(Numeric(12, 2), nullable=False, comment="下单时单价")
    subtotal = Column(Numeric(12, 2), nullable=False, comment="小计")

    # 促销信息
    promotion_id = Column(Integer, ForeignKey("promotions.id"), comment="应用的促销ID")
    promotion_discount = Column(Numeric(12, 2), nullable=False, default=0, comment="促销折扣金额")
    promotion_free_quantity = Column(Integer, nullable=False, default=0, comment="赠送数量")

    __table_args__ = (
        {'comment': '订单项目表'}
    )


class OrderStatusHistoryDB(Base):
    """订单状态历史表（只追加）"""

    __tablename__ = "order_status_history"

    id = Column(Integer, primary_key=True, autoincrement=True, comment="记录ID")
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False, index=True, comment="订单ID")
    status = Column(String(20), nullable=False, comment="变更后的状态")
    notes = Column(Text, comment="备注")
    changed_by = Column(Integer, comment="操作人ID")
    created_at = Column(DateTime, default=datetime.now, comment="变更时间")

    __table_args__ = (
        {'comment': '订单状态历史表'}
    )
