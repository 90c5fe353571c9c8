"""
优惠券相关数据模型
"""

from decimal import Decimal
from datetime import datetime
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator
from enum import Enum


class DiscountType(str, Enum):
    """折扣类型枚举（优惠券与折扣类促销共用）"""
    PERCENTAGE = "percentage"  # 百分比折扣
    FIXED_AMOUNT = "fixed_amount"  # 固定金额折扣


class Coupon(BaseModel):
    """优惠券基础模型"""

    model_config = ConfigDict(from_attributes=True)

    id: Optional[int] = Field(None, description="优惠券ID")
    code: str = Field(..., min_length=1, max_length=50, description="优惠券代码")
    description: Optional[str] = Field(None, description="优惠券描述")
    discount_type: DiscountType = Field(..., description="折扣类型")
    discount_value: Decimal = Field(..., gt=0, description="折扣值，百分比为0-100")
    min_purchase: Optional[Decimal] = Field(None, ge=0, description="最低消费金额")
    max_discount: Optional[Decimal] = Field(None, ge=0, description="最大折扣金额")
    valid_from: datetime = Field(..., description="有效开始时间")
    valid_until: datetime = Field(..., description="有效结束时间")
    usage_limit: Optional[int] = Field(None, ge=1, description="总使用次数限制")
    used_count: int = Field(default=0, ge=0, description="已使用次数")
    is_active: bool = Field(default=True, description="是否启用")
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def is_valid(self, now: Optional[datetime] = None) -> bool:
        """检查优惠券当前是否可用"""
        now = now or datetime.now()
        return (
            self.is_active and
            self.valid_from < now < self.valid_until and
            (self.usage_limit is None or self.used_count < self.usage_limit)
        )


class CouponCreate(BaseModel):
    """创建优惠券模型"""

    code: str = Field(..., min_length=1, max_length=50)
    description: Optional[str] = None
    discount_type: DiscountType
    discount_value: Decimal = Field(..., gt=0)
    min_purchase: Optional[Decimal] = Field(None, ge=0)
    max_discount: Optional[Decimal] = Field(None, ge=0)
    valid_from: datetime
    valid_until: datetime
    usage_limit: Optional[int] = Field(None, ge=1)
    is_active: bool = True

    @field_validator("code")
    @classmethod
    def normalize_code(cls, v):
        """优惠券代码统一大写"""
        return v.strip().upper()

    @field_validator("valid_until")
    @classmethod
    def validate_validity_period(cls, v, info):
        """验证有效期"""
        if "valid_from" in info.data and v <= info.data["valid_from"]:
            raise ValueError("valid_until must be after valid_from")
        return v

    @field_validator("discount_value")
    @classmethod
    def validate_discount_value(cls, v, info):
        """百分比折扣不能超过100"""
        if info.data.get("discount_type") == DiscountType.PERCENTAGE and v > Decimal("100"):
            raise ValueError("percentage discount cannot exceed 100")
        return v


class CouponUpdate(BaseModel):
    """更新优惠券模型"""

    description: Optional[str] = None
    discount_value: Optional[Decimal] = Field(None, gt=0)
    min_purchase: Optional[Decimal] = Field(None, ge=0)
    max_discount: Optional[Decimal] = Field(None, ge=0)
    valid_from: Optional[datetime] = None
    valid_until: Optional[datetime] = None
    usage_limit: Optional[int] = Field(None, ge=1)
    is_active: Optional[bool] = None


class CouponResult(BaseModel):
    """优惠券计算结果"""

    discount_amount: Decimal = Field(default=Decimal("0"), ge=0)
    is_valid: bool
    reason: Optional[str] = None


class CouponValidation(BaseModel):
    """优惠券校验预览结果"""

    is_valid: bool = Field(..., description="是否有效")
    message: str = Field(..., description="提示信息")
    discount_amount: Decimal = Field(default=Decimal("0"), ge=0, description="折扣金额")
    final_amount: Decimal = Field(..., ge=0, description="折后金额")
    coupon: Optional[Coupon] = Field(None, description="优惠券信息")


class ValidateCouponRequest(BaseModel):
    """优惠券校验请求"""

    code: str = Field(..., min_length=1, max_length=50, description="优惠券代码")
    order_total: Decimal = Field(..., ge=0, description="订单金额")
