"""
外部协作方接口
下单流程只通过这些窄接口访问购物车、地址、支付方式、用户以及通知/邮件
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional, Protocol

from app.core.exceptions import NotFoundError, PermissionDeniedError
from app.models.checkout import Address, Cart, PaymentMethod, User
from app.models.order import Order, OrderStatus


class UserProvider(Protocol):

    async def get_user(self, user_id: int) -> Optional[User]:
        ...


class CartProvider(Protocol):

    async def get_cart(self, user_id: int) -> Cart:
        ...

    async def clear(self, user_id: int) -> None:
        ...


class AddressProvider(Protocol):

    async def get_address(self, address_id: int) -> Optional[Address]:
        ...


class PaymentMethodProvider(Protocol):

    async def get_payment_method(self, payment_method_id: int) -> Optional[PaymentMethod]:
        ...


class NotificationSink(Protocol):
    """异步、尽力而为的通知投递"""

    async def notify_new_order(
        self,
        order_id: int,
        order_number: str,
        customer_name: str,
        total: Decimal
    ) -> None:
        ...

    async def notify_status_change(self, user_id: int, order_id: int, new_status: OrderStatus) -> None:
        ...


class EmailSink(Protocol):
    """异步、尽力而为的邮件投递"""

    async def send_order_confirmation(self, user: User, order: Order) -> None:
        ...


async def require_admin(users: UserProvider, actor_id: int) -> User:
    """管理操作的权限校验，返回操作人"""
    actor = await users.get_user(actor_id)
    if actor is None:
        raise NotFoundError("User", actor_id)
    if not actor.is_admin:
        raise PermissionDeniedError(
            "Only administrators can perform this operation",
            details={"user_id": actor_id}
        )
    return actor


@dataclass
class CheckoutCollaborators:
    """一个工作单元内使用的协作方集合"""

    users: UserProvider
    carts: CartProvider
    addresses: AddressProvider
    payment_methods: PaymentMethodProvider
