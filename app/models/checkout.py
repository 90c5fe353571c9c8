"""
下单所需的外部协作方数据（用户、购物车、地址、支付方式）
"""

from decimal import Decimal
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field
from enum import Enum


class UserRole(str, Enum):
    CUSTOMER = "customer"
    ADMIN = "admin"


class User(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    full_name: str
    email: str
    role: UserRole = UserRole.CUSTOMER

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN


class CartLine(BaseModel):
    product_id: int
    quantity: int = Field(..., ge=1)


class Cart(BaseModel):
    user_id: int
    lines: List[CartLine] = Field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.lines


class Address(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    owner_id: int
    recipient_name: str
    phone: Optional[str] = None
    address_line: str


class PaymentMethod(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    code: str
    is_active: bool = True


class PricedLine(BaseModel):
    """带价格的购物车行（促销匹配输入）"""

    product_id: int
    product_name: str
    category_id: Optional[int] = None
    quantity: int = Field(..., ge=1)
    unit_price: Decimal = Field(..., ge=0)

    @property
    def subtotal(self) -> Decimal:
        return self.unit_price * self.quantity
