"""
优惠券业务服务层
提供优惠券校验预览和管理端的增删改查
"""

import logging
from typing import List, Optional
from decimal import Decimal
from datetime import datetime

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import async_sessionmaker

from app.core.config import settings
from app.core.exceptions import NotFoundError, ValidationError
from app.core.unit_of_work import UnitOfWork
from app.models.coupon import Coupon, CouponCreate, CouponUpdate, CouponValidation, DiscountType
from app.repositories.checkout_repository import UserRepository
from app.repositories.coupon_repository import CouponRepository
from app.services.collaborators import require_admin
from app.services.common_cache import coupon_cache
from app.services.discount_calculator import (
    REASON_DISABLED,
    REASON_EXPIRED,
    REASON_LIMIT_REACHED,
    REASON_NOT_YET_ACTIVE,
    apply_coupon,
    to_money,
)

logger = logging.getLogger(__name__)

_REASON_MESSAGES = {
    REASON_DISABLED: "Coupon has been disabled",
    REASON_NOT_YET_ACTIVE: "Coupon is not active yet",
    REASON_EXPIRED: "Coupon has expired",
    REASON_LIMIT_REACHED: "Coupon usage limit has been reached",
}


class CouponService:
    """优惠券业务服务"""

    def __init__(self, session_maker: async_sessionmaker):
        self.session_maker = session_maker
        self.cache = coupon_cache
        self.cache_prefix = "coupon"
        self.cache_ttl = settings.coupon_cache_ttl

    async def get_coupon_by_code(self, coupon_code: str, use_cache: bool = True) -> Coupon:
        """根据优惠券代码获取优惠券"""
        code = coupon_code.strip().upper()
        cache_key = f"{self.cache_prefix}:code:{code}"

        if use_cache:
            cached_coupon = await self.cache.get(cache_key)
            if cached_coupon:
                return Coupon(**cached_coupon)

        async with self.session_maker() as session:
            coupon_repo = CouponRepository(session)
            db_coupon = await coupon_repo.get_by_code(code)
            if not db_coupon:
                raise NotFoundError("Coupon", code)
            coupon = coupon_repo.to_model(db_coupon)

        if use_cache:
            await self.cache.set(cache_key, coupon.model_dump(mode="json"), ttl=self.cache_ttl)

        return coupon

    async def get_valid_coupons(self) -> List[Coupon]:
        """获取当前有效的优惠券"""
        async with self.session_maker() as session:
            coupon_repo = CouponRepository(session)
            db_coupons = await coupon_repo.get_valid_coupons()
            return [coupon_repo.to_model(db_coupon) for db_coupon in db_coupons]

    async def validate_coupon(
        self,
        coupon_code: str,
        order_total: Decimal,
        now: Optional[datetime] = None
    ) -> CouponValidation:
        """
        校验优惠券并预览折扣（只读，不占用使用次数）

        优惠券验证不使用缓存，确保实时性。
        """
        async with self.session_maker() as session:
            coupon_repo = CouponRepository(session)
            db_coupon = await coupon_repo.get_by_code(coupon_code)
            if not db_coupon:
                raise NotFoundError("Coupon", coupon_code.strip().upper())
            coupon = coupon_repo.to_model(db_coupon)

        order_total = to_money(order_total)
        result = apply_coupon(coupon, order_total, now)
        if not result.is_valid:
            return CouponValidation(
                is_valid=False,
                message=_REASON_MESSAGES.get(result.reason, result.reason),
                discount_amount=Decimal("0"),
                final_amount=order_total,
                coupon=coupon
            )

        return CouponValidation(
            is_valid=True,
            message="Coupon is valid",
            discount_amount=result.discount_amount,
            final_amount=to_money(order_total - result.discount_amount),
            coupon=coupon
        )

    async def create_coupon(self, coupon_data: CouponCreate, actor_id: int) -> Coupon:
        """创建优惠券"""
        async with UnitOfWork(self.session_maker) as uow:
            await require_admin(UserRepository(uow.session), actor_id)
            coupon_repo = CouponRepository(uow.session)

            if await coupon_repo.get_by_code(coupon_data.code, include_deleted=True):
                raise ValidationError(
                    f"Coupon code {coupon_data.code} already exists",
                    details={"code": coupon_data.code}
                )

            data = coupon_data.model_dump()
            data["discount_type"] = coupon_data.discount_type.value
            try:
                db_coupon = await coupon_repo.create(data)
            except IntegrityError as e:
                # 并发创建了相同代码
                raise ValidationError(
                    f"Coupon code {coupon_data.code} already exists",
                    details={"code": coupon_data.code}
                ) from e
            coupon = coupon_repo.to_model(db_coupon)

        logger.info(f"优惠券创建成功: {coupon.code}")
        return coupon

    async def update_coupon(self, coupon_id: int, coupon_data: CouponUpdate, actor_id: int) -> Coupon:
        """更新优惠券"""
        changes = coupon_data.model_dump(exclude_unset=True)

        async with UnitOfWork(self.session_maker) as uow:
            await require_admin(UserRepository(uow.session), actor_id)
            coupon_repo = CouponRepository(uow.session)

            db_coupon = await coupon_repo.get_by_id(coupon_id)
            if not db_coupon:
                raise NotFoundError("Coupon", coupon_id)

            discount_value = changes.get("discount_value", db_coupon.discount_value)
            if db_coupon.discount_type == DiscountType.PERCENTAGE.value and discount_value > Decimal("100"):
                raise ValidationError("Percentage discount cannot exceed 100")

            valid_from = changes.get("valid_from", db_coupon.valid_from)
            valid_until = changes.get("valid_until", db_coupon.valid_until)
            if valid_until <= valid_from:
                raise ValidationError("valid_until must be after valid_from")

            db_coupon = await coupon_repo.update(db_coupon, changes)
            coupon = coupon_repo.to_model(db_coupon)

        await self._clear_coupon_caches(coupon.code)
        logger.info(f"优惠券更新成功: {coupon.code}")
        return coupon

    async def delete_coupon(self, coupon_id: int, actor_id: int) -> None:
        """软删除优惠券"""
        async with UnitOfWork(self.session_maker) as uow:
            await require_admin(UserRepository(uow.session), actor_id)
            coupon_repo = CouponRepository(uow.session)

            db_coupon = await coupon_repo.get_by_id(coupon_id)
            if not db_coupon:
                raise NotFoundError("Coupon", coupon_id)
            code = db_coupon.code
            await coupon_repo.soft_delete(db_coupon)

        await self._clear_coupon_caches(code)
        logger.info(f"优惠券已删除: {code}")

    async def _clear_coupon_caches(self, coupon_code: str):
        """清除优惠券相关缓存"""
        await self.cache.delete(f"{self.cache_prefix}:code:{coupon_code}")
