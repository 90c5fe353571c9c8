"""
库存流水相关数据模型
"""

from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field
from enum import Enum


class StockTransactionType(str, Enum):
    """库存流水类型"""
    IN = "in"  # 入库
    OUT = "out"  # 出库
    ADJUSTMENT = "adjustment"  # 盘点调整


class StockTransaction(BaseModel):
    """库存流水（不可变）"""

    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: int
    product_id: int
    type: StockTransactionType
    quantity: int = Field(..., description="带符号的变动数量")
    stock_before: int = Field(..., ge=0)
    stock_after: int = Field(..., ge=0)
    notes: Optional[str] = None
    created_by: Optional[int] = None
    created_at: Optional[datetime] = None


class StockTransactionCreate(BaseModel):
    """创建库存流水请求"""

    product_id: int
    type: StockTransactionType
    quantity: int = Field(..., description="IN/OUT为正数，ADJUSTMENT可正可负")
    notes: Optional[str] = Field(None, max_length=1000)


class LedgerVerification(BaseModel):
    """库存流水一致性校验结果"""

    product_id: int
    current_stock: int
    entries: int
    is_consistent: bool
    problems: List[str] = Field(default_factory=list)
