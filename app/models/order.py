"""
订单相关数据模型
"""

from decimal import Decimal
from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator
from enum import Enum


class OrderStatus(str, Enum):
    """订单状态枚举"""
    PENDING = "pending"  # 待处理
    CONFIRMED = "confirmed"  # 已确认
    SHIPPED = "shipped"  # 配送中
    DELIVERED = "delivered"  # 已送达
    CANCELLED = "cancelled"  # 已取消


class PaymentStatus(str, Enum):
    """支付状态枚举（与订单状态相互独立）"""
    PENDING = "pending"  # 待支付
    PAID = "paid"  # 已支付
    FAILED = "failed"  # 支付失败
    REFUNDED = "refunded"  # 已退款


# 用于通知文案的状态标签
ORDER_STATUS_LABELS = {
    OrderStatus.PENDING: "Pending",
    OrderStatus.CONFIRMED: "Confirmed",
    OrderStatus.SHIPPED: "Shipped",
    OrderStatus.DELIVERED: "Delivered",
    OrderStatus.CANCELLED: "Cancelled",
}


class OrderItem(BaseModel):
    """订单项目模型"""

    model_config = ConfigDict(from_attributes=True)

    id: Optional[int] = Field(None, description="订单项ID")
    order_id: Optional[int] = Field(None, description="订单ID")
    product_id: int = Field(..., description="商品ID")
    product_name: str = Field(..., description="下单时商品名称")
    quantity: int = Field(..., ge=1, description="购买数量")
    price: Decimal = Field(..., ge=0, description="下单时单价")
    subtotal: Decimal = Field(..., ge=0, description="小计")
    promotion_id: Optional[int] = Field(None, description="应用的促销ID")
    promotion_discount: Decimal = Field(default=Decimal("0"), ge=0, description="促销折扣金额")
    promotion_free_quantity: int = Field(default=0, ge=0, description="赠送数量")

    @field_validator("subtotal")
    @classmethod
    def validate_subtotal(cls, v, info):
        """小计必须等于数量乘单价"""
        data = info.data
        if "quantity" in data and "price" in data and v != data["quantity"] * data["price"]:
            raise ValueError("subtotal must equal quantity * price")
        return v

    @property
    def units_shipped(self) -> int:
        """出库总数（含赠品）"""
        return self.quantity + self.promotion_free_quantity


class OrderStatusHistory(BaseModel):
    """订单状态历史"""

    model_config = ConfigDict(from_attributes=True)

    id: Optional[int] = None
    order_id: int
    status: OrderStatus
    notes: Optional[str] = None
    changed_by: Optional[int] = None
    created_at: Optional[datetime] = None


class Order(BaseModel):
    """订单基础模型"""

    model_config = ConfigDict(from_attributes=True)

    id: int = Field(..., description="订单ID")
    order_number: str = Field(..., description="订单编号")
    user_id: int = Field(..., description="用户ID")
    items: List[OrderItem] = Field(default_factory=list, description="订单项目列表")
    subtotal: Decimal = Field(..., ge=0, description="商品小计")
    coupon_discount: Decimal = Field(default=Decimal("0"), ge=0, description="优惠券折扣")
    promotion_discount: Decimal = Field(default=Decimal("0"), ge=0, description="促销折扣")
    shipping_fee: Decimal = Field(default=Decimal("0"), ge=0, description="运费")
    final_amount: Decimal = Field(..., ge=0, description="最终金额")
    coupon_id: Optional[int] = Field(None, description="使用的优惠券ID")
    promotion_id: Optional[int] = Field(None, description="订单级促销ID")
    shipping_address_id: Optional[int] = None
    payment_method_id: Optional[int] = None
    status: OrderStatus = Field(default=OrderStatus.PENDING, description="订单状态")
    payment_status: PaymentStatus = Field(default=PaymentStatus.PENDING, description="支付状态")
    notes: Optional[str] = Field(None, max_length=1000, description="订单备注")
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def total_discount(self) -> Decimal:
        """总折扣金额"""
        return self.coupon_discount + self.promotion_discount

    @property
    def total_units(self) -> int:
        """订单中的商品件数（含赠品）"""
        return sum(item.units_shipped for item in self.items)

    def is_editable(self) -> bool:
        """是否允许管理员修改订单项"""
        return self.status in (OrderStatus.PENDING, OrderStatus.CONFIRMED)


class PlaceOrderRequest(BaseModel):
    """下单请求模型"""

    shipping_address_id: int = Field(..., description="收货地址ID")
    payment_method_id: int = Field(..., description="支付方式ID")
    coupon_code: Optional[str] = Field(None, max_length=50, description="优惠券代码")
    notes: Optional[str] = Field(None, max_length=1000, description="订单备注")


class UpdateOrderStatusRequest(BaseModel):
    """更新订单状态请求"""

    status: OrderStatus
    notes: Optional[str] = Field(None, max_length=1000)


class UpdateOrderItemQuantityRequest(BaseModel):
    """修改订单项数量请求"""

    quantity: int = Field(..., ge=1)
