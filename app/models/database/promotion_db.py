"""
促销活动数据库模型
"""

from sqlalchemy import Column, String, Integer, Numeric, Text, Boolean, DateTime, ForeignKey, Table
from datetime import datetime
from app.core.database import Base


# 商品范围促销与商品的关联表
promotion_products = Table(
    "promotion_products",
    Base.metadata,
    Column("promotion_id", Integer, ForeignKey("promotions.id"), primary_key=True),
    Column("product_id", Integer, ForeignKey("products.id"), primary_key=True),
    comment="促销适用商品表",
)


class PromotionDB(Base):
    """促销活动表"""

    __tablename__ = "promotions"

    id = Column(Integer, primary_key=True, autoincrement=True, comment="促销ID")
    name = Column(String(200), nullable=False, comment="促销名称")
    description = Column(Text, comment="促销描述")
    type = Column(String(20), nullable=False, comment="促销类型")
    scope = Column(String(20), nullable=False, index=True, comment="适用范围")

    # 数量类促销参数
    buy_quantity = Column(Integer, comment="购买数量")
    get_quantity = Column(Integer, comment="赠送数量")
    pay_quantity = Column(Integer, comment="付费数量")

    # 折扣类促销参数
    discount_type = Column(String(20), comment="折扣类型")
    discount_value = Column(Numeric(12, 2), comment="折扣值")
    min_purchase = Column(Numeric(12, 2), comment="最低消费金额")
    max_discount = Column(Numeric(12, 2), comment="最大折扣金额")

    # 分类范围
    category_id = Column(Integer, index=True, comment="适用分类ID")

    # 有效期与使用限制
    valid_from = Column(DateTime, nullable=False, comment="有效开始时间")
    valid_until = Column(DateTime, nullable=False, comment="有效结束时间")
    usage_limit = Column(Integer, comment="总使用次数限制")
    used_count = Column(Integer, nullable=False, default=0, comment="已使用次数")
    is_active = Column(Boolean, nullable=False, default=True, comment="是否启用")

    # 时间戳
    created_at = Column(DateTime, default=datetime.now, comment="创建时间")
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now, comment="更新时间")
    deleted_at = Column(DateTime, comment="软删除时间")

    __table_args__ = (
        {'comment': '促销活动表'}
    )
