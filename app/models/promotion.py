"""
促销活动相关数据模型
"""

from decimal import Decimal
from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field
from enum import Enum

from app.models.coupon import DiscountType


class PromotionType(str, Enum):
    """促销类型枚举"""
    DISCOUNT = "discount"  # 直接折扣
    BOGO = "bogo"  # 买一送一
    BUY_X_GET_Y = "buy_x_get_y"  # 买X送Y
    BUY_X_PAY_Y = "buy_x_pay_y"  # 买X付Y


class PromotionScope(str, Enum):
    """促销适用范围"""
    ORDER = "order"
    PRODUCT = "product"
    CATEGORY = "category"


class Promotion(BaseModel):
    """促销活动模型"""

    model_config = ConfigDict(from_attributes=True)

    id: Optional[int] = None
    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    type: PromotionType
    scope: PromotionScope
    buy_quantity: Optional[int] = None
    get_quantity: Optional[int] = None
    pay_quantity: Optional[int] = None
    discount_type: Optional[DiscountType] = None
    discount_value: Optional[Decimal] = None
    min_purchase: Optional[Decimal] = None
    max_discount: Optional[Decimal] = None
    product_ids: List[int] = Field(default_factory=list)
    category_id: Optional[int] = None
    valid_from: datetime
    valid_until: datetime
    usage_limit: Optional[int] = Field(None, ge=1)
    used_count: int = Field(default=0, ge=0)
    is_active: bool = True
    created_at: Optional[datetime] = None

    def is_valid(self, now: Optional[datetime] = None) -> bool:
        """检查促销当前是否可用"""
        now = now or datetime.now()
        return (
            self.is_active and
            self.valid_from < now < self.valid_until and
            (self.usage_limit is None or self.used_count < self.usage_limit)
        )


class PromotionCreate(BaseModel):
    """创建促销模型"""

    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    type: PromotionType
    scope: PromotionScope
    buy_quantity: Optional[int] = None
    get_quantity: Optional[int] = None
    pay_quantity: Optional[int] = None
    discount_type: Optional[DiscountType] = None
    discount_value: Optional[Decimal] = None
    min_purchase: Optional[Decimal] = None
    max_discount: Optional[Decimal] = None
    product_ids: List[int] = Field(default_factory=list)
    category_id: Optional[int] = None
    valid_from: datetime
    valid_until: datetime
    usage_limit: Optional[int] = Field(None, ge=1)
    is_active: bool = True


class PromotionUpdate(BaseModel):
    """更新促销模型"""

    name: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    buy_quantity: Optional[int] = None
    get_quantity: Optional[int] = None
    pay_quantity: Optional[int] = None
    discount_value: Optional[Decimal] = None
    min_purchase: Optional[Decimal] = None
    max_discount: Optional[Decimal] = None
    product_ids: Optional[List[int]] = None
    category_id: Optional[int] = None
    valid_from: Optional[datetime] = None
    valid_until: Optional[datetime] = None
    usage_limit: Optional[int] = Field(None, ge=1)
    is_active: Optional[bool] = None


class PromotionMatch(BaseModel):
    """单行促销匹配结果"""

    promotion_id: int
    promotion_name: str
    promotion_type: PromotionType
    scope: PromotionScope
    free_quantity: int = Field(default=0, ge=0)
    discount_amount: Decimal = Field(default=Decimal("0"), ge=0)


class ItemPromotionPreview(BaseModel):
    """购物车行促销预览"""

    product_id: int
    product_name: str
    quantity: int
    unit_price: Decimal
    subtotal: Decimal
    match: Optional[PromotionMatch] = None


class CartPromotionPreview(BaseModel):
    """购物车促销预览"""

    original_total: Decimal
    promotion_discount: Decimal
    shipping_fee: Decimal
    free_shipping_threshold: Decimal
    final_total: Decimal
    items: List[ItemPromotionPreview] = Field(default_factory=list)
