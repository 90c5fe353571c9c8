"""
促销活动数据库操作层
"""

from collections import defaultdict
from typing import Dict, List, Optional, Sequence, Any
from datetime import datetime

from sqlalchemy import select, update, delete, insert, and_, or_, desc
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.promotion import Promotion, PromotionScope
from app.models.database.promotion_db import PromotionDB, promotion_products


class PromotionRepository:
    """促销活动数据库操作层"""

    def __init__(self, db: AsyncSession):
        self.db = db

    def _active_conditions(self, now: datetime) -> list:
        """当前可用：启用、未删除、在有效期内、仍有使用次数"""
        return [
            PromotionDB.deleted_at.is_(None),
            PromotionDB.is_active.is_(True),
            PromotionDB.valid_from < now,
            PromotionDB.valid_until > now,
            or_(
                PromotionDB.usage_limit.is_(None),
                PromotionDB.used_count < PromotionDB.usage_limit
            )
        ]

    async def get_by_id(self, promotion_id: int) -> Optional[PromotionDB]:
        result = await self.db.execute(
            select(PromotionDB).where(
                and_(PromotionDB.id == promotion_id, PromotionDB.deleted_at.is_(None))
            )
        )
        return result.scalar_one_or_none()

    async def list_promotions(self, limit: int = 50, offset: int = 0) -> List[PromotionDB]:
        result = await self.db.execute(
            select(PromotionDB)
            .where(PromotionDB.deleted_at.is_(None))
            .order_by(desc(PromotionDB.created_at), desc(PromotionDB.id))
            .limit(limit)
            .offset(offset)
        )
        return list(result.scalars().all())

    async def find_active(self, now: datetime) -> List[PromotionDB]:
        """当前可用的全部促销（新创建的在前）"""
        result = await self.db.execute(
            select(PromotionDB)
            .where(and_(*self._active_conditions(now)))
            .order_by(desc(PromotionDB.created_at), desc(PromotionDB.id))
        )
        return list(result.scalars().all())

    async def find_active_for_product(self, product_id: int, now: datetime) -> List[PromotionDB]:
        """商品范围内当前可用的促销"""
        result = await self.db.execute(
            select(PromotionDB)
            .join(promotion_products, promotion_products.c.promotion_id == PromotionDB.id)
            .where(
                and_(
                    promotion_products.c.product_id == product_id,
                    PromotionDB.scope == PromotionScope.PRODUCT.value,
                    *self._active_conditions(now)
                )
            )
        )
        return list(result.scalars().all())

    async def find_active_for_category(self, category_id: int, now: datetime) -> List[PromotionDB]:
        """分类范围内当前可用的促销"""
        result = await self.db.execute(
            select(PromotionDB).where(
                and_(
                    PromotionDB.category_id == category_id,
                    PromotionDB.scope == PromotionScope.CATEGORY.value,
                    *self._active_conditions(now)
                )
            )
        )
        return list(result.scalars().all())

    async def find_active_for_order(self, now: datetime) -> List[PromotionDB]:
        """订单范围内当前可用的促销"""
        result = await self.db.execute(
            select(PromotionDB).where(
                and_(
                    PromotionDB.scope == PromotionScope.ORDER.value,
                    *self._active_conditions(now)
                )
            )
        )
        return list(result.scalars().all())

    async def find_candidates(
        self,
        product_ids: Sequence[int],
        category_ids: Sequence[int],
        now: datetime
    ) -> List[Promotion]:
        """
        一次性取出一张订单可能用到的全部促销
        包括商品范围、分类范围和订单范围
        """
        promotions: Dict[int, PromotionDB] = {}
        for product_id in set(product_ids):
            for db_promotion in await self.find_active_for_product(product_id, now):
                promotions[db_promotion.id] = db_promotion
        for category_id in set(c for c in category_ids if c is not None):
            for db_promotion in await self.find_active_for_category(category_id, now):
                promotions[db_promotion.id] = db_promotion
        for db_promotion in await self.find_active_for_order(now):
            promotions[db_promotion.id] = db_promotion

        return await self.to_models(list(promotions.values()))

    async def load_product_ids(self, promotion_ids: Sequence[int]) -> Dict[int, List[int]]:
        """批量加载促销适用的商品ID"""
        mapping: Dict[int, List[int]] = defaultdict(list)
        if not promotion_ids:
            return mapping
        result = await self.db.execute(
            select(promotion_products.c.promotion_id, promotion_products.c.product_id)
            .where(promotion_products.c.promotion_id.in_(list(promotion_ids)))
            .order_by(promotion_products.c.product_id)
        )
        for promotion_id, product_id in result.all():
            mapping[promotion_id].append(product_id)
        return mapping

    async def create(self, data: Dict[str, Any], product_ids: Sequence[int]) -> PromotionDB:
        db_promotion = PromotionDB(**data)
        self.db.add(db_promotion)
        await self.db.flush()
        await self.replace_products(db_promotion.id, product_ids)
        return db_promotion

    async def update(self, db_promotion: PromotionDB, data: Dict[str, Any]) -> PromotionDB:
        for field, value in data.items():
            setattr(db_promotion, field, value)
        await self.db.flush()
        return db_promotion

    async def replace_products(self, promotion_id: int, product_ids: Sequence[int]) -> None:
        await self.db.execute(
            delete(promotion_products).where(promotion_products.c.promotion_id == promotion_id)
        )
        unique_ids = sorted(set(product_ids))
        if unique_ids:
            await self.db.execute(
                insert(promotion_products),
                [{"promotion_id": promotion_id, "product_id": product_id} for product_id in unique_ids]
            )

    async def soft_delete(self, db_promotion: PromotionDB) -> None:
        db_promotion.deleted_at = datetime.now()
        db_promotion.is_active = False
        await self.db.flush()

    async def increment_usage(self, promotion_id: int) -> bool:
        """使用次数+1，达到上限时返回False"""
        result = await self.db.execute(
            update(PromotionDB)
            .where(
                and_(
                    PromotionDB.id == promotion_id,
                    or_(
                        PromotionDB.usage_limit.is_(None),
                        PromotionDB.used_count < PromotionDB.usage_limit
                    )
                )
            )
            .values(used_count=PromotionDB.used_count + 1)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    def to_model(self, db_promotion: PromotionDB, product_ids: Optional[List[int]] = None) -> Promotion:
        """转换为Pydantic模型"""
        return Promotion(
            id=db_promotion.id,
            name=db_promotion.name,
            description=db_promotion.description,
            type=db_promotion.type,
            scope=db_promotion.scope,
            buy_quantity=db_promotion.buy_quantity,
            get_quantity=db_promotion.get_quantity,
            pay_quantity=db_promotion.pay_quantity,
            discount_type=db_promotion.discount_type,
            discount_value=db_promotion.discount_value,
            min_purchase=db_promotion.min_purchase,
            max_discount=db_promotion.max_discount,
            product_ids=product_ids or [],
            category_id=db_promotion.category_id,
            valid_from=db_promotion.valid_from,
            valid_until=db_promotion.valid_until,
            usage_limit=db_promotion.usage_limit,
            used_count=db_promotion.used_count or 0,
            is_active=db_promotion.is_active,
            created_at=db_promotion.created_at
        )

    async def to_models(self, db_promotions: List[PromotionDB]) -> List[Promotion]:
        product_map = await self.load_product_ids([p.id for p in db_promotions])
        return [self.to_model(p, product_map.get(p.id, [])) for p in db_promotions]
