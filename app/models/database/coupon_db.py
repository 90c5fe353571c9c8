"""
优惠券数据库模型
"""

from sqlalchemy import Column, String, Integer, Numeric, Text, Boolean, DateTime
from datetime import datetime
from app.core.database import Base


class CouponDB(Base):
    """优惠券数据库表"""

    __tablename__ = "coupons"

    # 主键和基本信息
    id = Column(Integer, primary_key=True, autoincrement=True, comment="优惠券ID")
    code = Column(String(50), nullable=False, unique=True, index=True, comment="优惠券代码")
    description = Column(Text, comment="优惠券描述")

    # 折扣信息
    discount_type = Column(String(20), nullable=False, comment="折扣类型")
    discount_value = Column(Numeric(12, 2), nullable=False, comment="折扣值")
    min_purchase = Column(Numeric(12, 2), comment="最低消费金额")
    max_discount = Column(Numeric(12, 2), comment="最大折扣金额（仅百分比）")

    # 有效期
    valid_from = Column(DateTime, nullable=False, index=True, comment="有效开始时间")
    valid_until = Column(DateTime, nullable=False, index=True, comment="有效结束时间")

    # 使用限制
    usage_limit = Column(Integer, comment="总使用次数限制")
    used_count = Column(Integer, nullable=False, default=0, comment="已使用次数")
    is_active = Column(Boolean, nullable=False, default=True, index=True, comment="是否启用")

    # 时间戳
    created_at = Column(DateTime, default=datetime.now, comment="创建时间")
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now, comment="更新时间")
    deleted_at = Column(DateTime, comment="软删除时间")

    __table_args__ = (
        {'comment': '优惠券信息表'}
    )
