"""
促销业务服务层
管理端的促销增删改查，以及购物车促销预览
"""

import logging
from typing import List, Optional
from datetime import datetime

from sqlalchemy.ext.asyncio import async_sessionmaker

from app.core.config import settings
from app.core.exceptions import NotFoundError
from app.core.unit_of_work import UnitOfWork
from app.models.promotion import (
    CartPromotionPreview,
    ItemPromotionPreview,
    Promotion,
    PromotionCreate,
    PromotionUpdate,
)
from app.models.checkout import PricedLine
from app.repositories.checkout_repository import CartRepository, UserRepository
from app.repositories.promotion_repository import PromotionRepository
from app.repositories.stock_repository import ProductRepository
from app.services.collaborators import require_admin
from app.services.common_cache import promotion_cache
from app.services.discount_calculator import ZERO, calculate_shipping_fee, to_money
from app.services.promotion_matcher import match_line, validate_promotion_config

logger = logging.getLogger(__name__)


def _to_columns(data: dict) -> dict:
    """枚举字段转换为数据库中存储的字符串"""
    for field in ("type", "scope", "discount_type"):
        value = data.get(field)
        if value is not None:
            data[field] = getattr(value, "value", value)
    return data


class PromotionService:
    """促销业务服务"""

    def __init__(self, session_maker: async_sessionmaker):
        self.session_maker = session_maker
        self.cache = promotion_cache
        self.cache_prefix = "promotion"
        self.cache_ttl = 600  # 10分钟缓存

    async def get_promotion(self, promotion_id: int) -> Promotion:
        async with self.session_maker() as session:
            promotion_repo = PromotionRepository(session)
            db_promotion = await promotion_repo.get_by_id(promotion_id)
            if not db_promotion:
                raise NotFoundError("Promotion", promotion_id)
            return (await promotion_repo.to_models([db_promotion]))[0]

    async def list_promotions(self, limit: int = 50, offset: int = 0, use_cache: bool = True) -> List[Promotion]:
        """促销列表"""
        cache_key = f"{self.cache_prefix}:list:{limit}:{offset}"

        if use_cache:
            cached = await self.cache.get(cache_key)
            if cached:
                return [Promotion(**data) for data in cached]

        async with self.session_maker() as session:
            promotion_repo = PromotionRepository(session)
            db_promotions = await promotion_repo.list_promotions(limit=limit, offset=offset)
            promotions = await promotion_repo.to_models(db_promotions)

        if use_cache:
            await self.cache.set(
                cache_key, [p.model_dump(mode="json") for p in promotions], ttl=self.cache_ttl
            )
        return promotions

    async def get_active_promotions(self, now: Optional[datetime] = None) -> List[Promotion]:
        """当前可用的促销（启用、在有效期内、仍有使用次数）"""
        now = now or datetime.now()
        async with self.session_maker() as session:
            promotion_repo = PromotionRepository(session)
            return await promotion_repo.to_models(await promotion_repo.find_active(now))

    async def create_promotion(self, promotion_data: PromotionCreate, actor_id: int) -> Promotion:
        """创建促销，配置与类型/范围不一致时抛出InvalidPromotionConfigError"""
        validate_promotion_config(Promotion(**promotion_data.model_dump()))

        async with UnitOfWork(self.session_maker) as uow:
            await require_admin(UserRepository(uow.session), actor_id)
            promotion_repo = PromotionRepository(uow.session)

            data = _to_columns(promotion_data.model_dump(exclude={"product_ids"}))
            db_promotion = await promotion_repo.create(data, promotion_data.product_ids)
            promotion = promotion_repo.to_model(db_promotion, sorted(set(promotion_data.product_ids)))

        await self._clear_promotion_caches()
        logger.info(f"促销创建成功: {promotion.id} {promotion.name} ({promotion.type.value}/{promotion.scope.value})")
        return promotion

    async def update_promotion(self, promotion_id: int, promotion_data: PromotionUpdate, actor_id: int) -> Promotion:
        """更新促销，合并后的配置重新校验"""
        changes = promotion_data.model_dump(exclude_unset=True)
        product_ids = changes.pop("product_ids", None)

        async with UnitOfWork(self.session_maker) as uow:
            await require_admin(UserRepository(uow.session), actor_id)
            promotion_repo = PromotionRepository(uow.session)

            db_promotion = await promotion_repo.get_by_id(promotion_id)
            if not db_promotion:
                raise NotFoundError("Promotion", promotion_id)

            current = (await promotion_repo.to_models([db_promotion]))[0]
            merged = current.model_copy(update=changes)
            if product_ids is not None:
                merged = merged.model_copy(update={"product_ids": sorted(set(product_ids))})
            validate_promotion_config(merged)

            db_promotion = await promotion_repo.update(db_promotion, _to_columns(changes))
            if product_ids is not None:
                await promotion_repo.replace_products(promotion_id, product_ids)
            promotion = promotion_repo.to_model(db_promotion, merged.product_ids)

        await self._clear_promotion_caches()
        logger.info(f"促销更新成功: {promotion_id}")
        return promotion

    async def delete_promotion(self, promotion_id: int, actor_id: int) -> None:
        """软删除促销"""
        async with UnitOfWork(self.session_maker) as uow:
            await require_admin(UserRepository(uow.session), actor_id)
            promotion_repo = PromotionRepository(uow.session)

            db_promotion = await promotion_repo.get_by_id(promotion_id)
            if not db_promotion:
                raise NotFoundError("Promotion", promotion_id)
            await promotion_repo.soft_delete(db_promotion)

        await self._clear_promotion_caches()
        logger.info(f"促销已删除: {promotion_id}")

    async def preview_cart(self, user_id: int, now: Optional[datetime] = None) -> CartPromotionPreview:
        """
        购物车促销预览

        与下单使用同一套匹配规则，只读，不检查库存也不占用使用次数。
        """
        now = now or datetime.now()
        async with self.session_maker() as session:
            if not await UserRepository(session).get_user(user_id):
                raise NotFoundError("User", user_id)

            cart = await CartRepository(session).get_cart(user_id)
            products = {
                p.id: p for p in await ProductRepository(session).get_many(
                    [line.product_id for line in cart.lines]
                )
            }
            lines = []
            for cart_line in cart.lines:
                product = products.get(cart_line.product_id)
                if not product:
                    continue
                lines.append(PricedLine(
                    product_id=product.id,
                    product_name=product.name,
                    category_id=product.category_id,
                    quantity=cart_line.quantity,
                    unit_price=product.price
                ))
            promotions = await PromotionRepository(session).find_candidates(
                [line.product_id for line in lines],
                [line.category_id for line in lines],
                now
            )

        items = []
        original_total = ZERO
        promotion_discount = ZERO
        for line in lines:
            match = match_line(line, promotions, now)
            original_total += line.subtotal
            if match:
                promotion_discount += match.discount_amount
            items.append(ItemPromotionPreview(
                product_id=line.product_id,
                product_name=line.product_name,
                quantity=line.quantity,
                unit_price=line.unit_price,
                subtotal=to_money(line.subtotal),
                match=match
            ))

        goods_total = max(original_total - promotion_discount, ZERO)
        shipping_fee = calculate_shipping_fee(goods_total)

        return CartPromotionPreview(
            original_total=to_money(original_total),
            promotion_discount=to_money(promotion_discount),
            shipping_fee=shipping_fee,
            free_shipping_threshold=to_money(settings.free_shipping_threshold),
            final_total=to_money(goods_total + shipping_fee),
            items=items
        )

    async def _clear_promotion_caches(self):
        await self.cache.delete_pattern(f"{self.cache_prefix}:list:*")
