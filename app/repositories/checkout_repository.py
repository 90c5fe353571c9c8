"""
下单协作方的数据库实现：用户、购物车、收货地址、支付方式
"""

from typing import List, Optional

from sqlalchemy import select, delete, and_
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.checkout import Address, Cart, CartLine, PaymentMethod, User
from app.models.database.user_db import UserDB, UserAddressDB, PaymentMethodDB, CartItemDB


class UserRepository:
    """用户数据库操作层"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_user(self, user_id: int) -> Optional[User]:
        result = await self.db.execute(
            select(UserDB).where(and_(UserDB.id == user_id, UserDB.deleted_at.is_(None)))
        )
        db_user = result.scalar_one_or_none()
        return User.model_validate(db_user) if db_user else None

    async def list_admin_ids(self) -> List[int]:
        """获取全部管理员ID"""
        result = await self.db.execute(
            select(UserDB.id).where(and_(UserDB.role == "admin", UserDB.deleted_at.is_(None)))
        )
        return list(result.scalars().all())


class CartRepository:
    """购物车数据库操作层"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_cart(self, user_id: int) -> Cart:
        result = await self.db.execute(
            select(CartItemDB)
            .where(CartItemDB.user_id == user_id)
            .order_by(CartItemDB.id)
        )
        lines = [
            CartLine(product_id=item.product_id, quantity=item.quantity)
            for item in result.scalars().all()
        ]
        return Cart(user_id=user_id, lines=lines)

    async def add_line(self, user_id: int, product_id: int, quantity: int) -> None:
        """加入购物车，已存在则累加数量"""
        result = await self.db.execute(
            select(CartItemDB).where(
                and_(CartItemDB.user_id == user_id, CartItemDB.product_id == product_id)
            )
        )
        db_item = result.scalar_one_or_none()
        if db_item:
            db_item.quantity += quantity
        else:
            self.db.add(CartItemDB(user_id=user_id, product_id=product_id, quantity=quantity))
        await self.db.flush()

    async def clear(self, user_id: int) -> None:
        await self.db.execute(delete(CartItemDB).where(CartItemDB.user_id == user_id))


class AddressRepository:
    """收货地址数据库操作层"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_address(self, address_id: int) -> Optional[Address]:
        result = await self.db.execute(
            select(UserAddressDB).where(
                and_(UserAddressDB.id == address_id, UserAddressDB.deleted_at.is_(None))
            )
        )
        db_address = result.scalar_one_or_none()
        if not db_address:
            return None
        return Address(
            id=db_address.id,
            owner_id=db_address.user_id,
            recipient_name=db_address.recipient_name,
            phone=db_address.phone,
            address_line=db_address.address_line
        )


class PaymentMethodRepository:
    """支付方式数据库操作层"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_payment_method(self, payment_method_id: int) -> Optional[PaymentMethod]:
        result = await self.db.execute(
            select(PaymentMethodDB).where(
                and_(PaymentMethodDB.id == payment_method_id, PaymentMethodDB.deleted_at.is_(None))
            )
        )
        db_method = result.scalar_one_or_none()
        return PaymentMethod.model_validate(db_method) if db_method else None
