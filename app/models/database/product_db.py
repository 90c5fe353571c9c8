"""
商品与库存流水数据库模型
"""

from sqlalchemy import Column, String, Integer, Numeric, Text, DateTime, ForeignKey
from datetime import datetime
from app.core.database import Base


class ProductDB(Base):
    """商品表（库存字段只允许库存流水写入）"""

    __tablename__ = "products"

    id = Column(Integer, primary_key=True, autoincrement=True, comment="商品ID")
    name = Column(String(200), nullable=False, comment="商品名称")
    price = Column(Numeric(12, 2), nullable=False, comment="当前售价")
    category_id = Column(Integer, index=True, comment="分类ID")

    # 库存信息
    stock = Column(Integer, nullable=False, default=0, comment="当前库存")
    stock_version = Column(Integer, nullable=False, default=0, comment="库存乐观锁版本号")

    # 时间戳
    created_at = Column(DateTime, default=datetime.now, comment="创建时间")
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now, comment="更新时间")
    deleted_at = Column(DateTime, comment="软删除时间")

    __table_args__ = (
        {'comment': '商品表'}
    )


class StockTransactionDB(Base):
    """库存流水表（只追加，不更新不删除）"""

    __tablename__ = "stock_transactions"

    id = Column(Integer, primary_key=True, autoincrement=True, comment="流水ID")
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False, index=True, comment="商品ID")

    # 变动信息
    type = Column(String(20), nullable=False, index=True, comment="流水类型 in/out/adjustment")
    quantity = Column(Integer, nullable=False, comment="带符号的变动数量")
    stock_before = Column(Integer, nullable=False, comment="变动前库存")
    stock_after = Column(Integer, nullable=False, comment="变动后库存")

    notes = Column(Text, comment="备注")
    created_by = Column(Integer, comment="操作人ID")
    created_at = Column(DateTime, default=datetime.now, index=True, comment="创建时间")

    __table_args__ = (
        {'comment': '库存流水表'}
    )
