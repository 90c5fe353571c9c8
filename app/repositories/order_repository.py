"""
订单数据库操作层
"""

from typing import List, Optional, Dict, Any

from sqlalchemy import select, and_, or_, desc
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.order import Order, OrderItem, OrderStatus, OrderStatusHistory
from app.models.database.order_db import OrderDB, OrderItemDB, OrderStatusHistoryDB
from app.models.database.user_db import UserDB


class OrderRepository:
    """订单数据库操作层"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_by_id(self, order_id: int, for_update: bool = False) -> Optional[OrderDB]:
        """根据订单ID获取订单（不含订单项，订单项需显式加载）"""
        query = select(OrderDB).where(
            and_(OrderDB.id == order_id, OrderDB.deleted_at.is_(None))
        )
        if for_update:
            query = query.with_for_update().execution_options(populate_existing=True)
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def load_items_for_order(self, order_id: int) -> List[OrderItemDB]:
        """批量加载订单项"""
        result = await self.db.execute(
            select(OrderItemDB)
            .where(OrderItemDB.order_id == order_id)
            .order_by(OrderItemDB.id)
        )
        return list(result.scalars().all())

    async def load_history_for_order(self, order_id: int) -> List[OrderStatusHistoryDB]:
        """批量加载状态历史"""
        result = await self.db.execute(
            select(OrderStatusHistoryDB)
            .where(OrderStatusHistoryDB.order_id == order_id)
            .order_by(OrderStatusHistoryDB.id)
        )
        return list(result.scalars().all())

    async def get_user_orders(
        self,
        user_id: int,
        limit: int = 20,
        offset: int = 0,
        status_filter: Optional[OrderStatus] = None
    ) -> List[OrderDB]:
        """获取用户订单列表"""
        conditions = [OrderDB.user_id == user_id, OrderDB.deleted_at.is_(None)]
        if status_filter:
            conditions.append(OrderDB.status == OrderStatus(status_filter).value)

        query = select(OrderDB).where(
            and_(*conditions)
        ).order_by(desc(OrderDB.created_at), desc(OrderDB.id)).limit(limit).offset(offset)

        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def list_orders(
        self,
        status: Optional[OrderStatus] = None,
        limit: int = 20,
        offset: int = 0
    ) -> List[OrderDB]:
        """管理端订单列表"""
        conditions = [OrderDB.deleted_at.is_(None)]
        if status:
            conditions.append(OrderDB.status == OrderStatus(status).value)
        result = await self.db.execute(
            select(OrderDB)
            .where(and_(*conditions))
            .order_by(desc(OrderDB.created_at), desc(OrderDB.id))
            .limit(limit)
            .offset(offset)
        )
        return list(result.scalars().all())

    async def search_orders(self, keyword: str, limit: int = 20, offset: int = 0) -> List[OrderDB]:
        """
        管理端订单搜索
        按订单编号、备注、下单用户姓名或邮箱模糊匹配（不区分大小写）
        """
        pattern = f"%{keyword}%"
        result = await self.db.execute(
            select(OrderDB)
            .outerjoin(UserDB, UserDB.id == OrderDB.user_id)
            .where(
                and_(
                    OrderDB.deleted_at.is_(None),
                    or_(
                        OrderDB.order_number.ilike(pattern),
                        OrderDB.notes.ilike(pattern),
                        UserDB.full_name.ilike(pattern),
                        UserDB.email.ilike(pattern)
                    )
                )
            )
            .order_by(desc(OrderDB.created_at), desc(OrderDB.id))
            .limit(limit)
            .offset(offset)
        )
        return list(result.scalars().all())

    async def get_latest_order_number(self, prefix: str) -> Optional[str]:
        """获取指定前缀（当天）下最大的订单编号"""
        result = await self.db.execute(
            select(OrderDB.order_number)
            .where(OrderDB.order_number.like(f"{prefix}%"))
            .order_by(desc(OrderDB.order_number))
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def create_order(self, data: Dict[str, Any]) -> OrderDB:
        """创建订单主记录"""
        db_order = OrderDB(**data)
        self.db.add(db_order)
        await self.db.flush()  # 获取生成的ID，同时触发订单编号唯一约束
        return db_order

    async def add_item(self, data: Dict[str, Any]) -> OrderItemDB:
        db_item = OrderItemDB(**data)
        self.db.add(db_item)
        await self.db.flush()
        return db_item

    async def add_history(
        self,
        order_id: int,
        status: OrderStatus,
        notes: Optional[str],
        changed_by: Optional[int]
    ) -> OrderStatusHistoryDB:
        """追加一条状态历史"""
        db_history = OrderStatusHistoryDB(
            order_id=order_id,
            status=OrderStatus(status).value,
            notes=notes,
            changed_by=changed_by
        )
        self.db.add(db_history)
        await self.db.flush()
        return db_history

    async def save(self, db_object) -> None:
        await self.db.flush()

    def item_to_model(self, db_item: OrderItemDB) -> OrderItem:
        return OrderItem.model_validate(db_item)

    def history_to_model(self, db_history: OrderStatusHistoryDB) -> OrderStatusHistory:
        return OrderStatusHistory.model_validate(db_history)

    def to_model(self, db_order: OrderDB, items: Optional[List[OrderItemDB]] = None) -> Order:
        """转换为Pydantic模型"""
        return Order(
            id=db_order.id,
            order_number=db_order.order_number,
            user_id=db_order.user_id,
            items=[self.item_to_model(item) for item in (items or [])],
            subtotal=db_order.subtotal,
            coupon_discount=db_order.coupon_discount,
            promotion_discount=db_order.promotion_discount,
            shipping_fee=db_order.shipping_fee,
            final_amount=db_order.final_amount,
            coupon_id=db_order.coupon_id,
            promotion_id=db_order.promotion_id,
            shipping_address_id=db_order.shipping_address_id,
            payment_method_id=db_order.payment_method_id,
            status=db_order.status,
            payment_status=db_order.payment_status,
            notes=db_order.notes,
            created_at=db_order.created_at,
            updated_at=db_order.updated_at
        )

    async def load_model(self, db_order: OrderDB) -> Order:
        """加载订单项并转换"""
        items = await self.load_items_for_order(db_order.id)
        return self.to_model(db_order, items)
