"""
优惠券数据库操作层
"""

from typing import List, Optional, Dict, Any
from datetime import datetime

from sqlalchemy import select, update, and_, or_, desc
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.coupon import Coupon
from app.models.database.coupon_db import CouponDB


class CouponRepository:
    """优惠券数据库操作类"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_by_code(self, code: str, include_deleted: bool = False) -> Optional[CouponDB]:
        """
        根据优惠券代码获取优惠券（不区分大小写）
        代码全局唯一，已删除的优惠券仍占用代码，查重时需include_deleted=True
        """
        conditions = [CouponDB.code == code.strip().upper()]
        if not include_deleted:
            conditions.append(CouponDB.deleted_at.is_(None))
        result = await self.db.execute(select(CouponDB).where(and_(*conditions)))
        return result.scalar_one_or_none()

    async def get_by_id(self, coupon_id: int) -> Optional[CouponDB]:
        """根据优惠券ID获取优惠券"""
        result = await self.db.execute(
            select(CouponDB).where(
                and_(CouponDB.id == coupon_id, CouponDB.deleted_at.is_(None))
            )
        )
        return result.scalar_one_or_none()

    async def get_valid_coupons(self, current_time: Optional[datetime] = None) -> List[CouponDB]:
        """获取当前有效的优惠券"""
        if current_time is None:
            current_time = datetime.now()

        query = select(CouponDB).where(
            and_(
                CouponDB.deleted_at.is_(None),
                CouponDB.is_active.is_(True),
                CouponDB.valid_from < current_time,
                CouponDB.valid_until > current_time,
                or_(
                    CouponDB.usage_limit.is_(None),
                    CouponDB.used_count < CouponDB.usage_limit
                )
            )
        ).order_by(desc(CouponDB.discount_value))

        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def create(self, data: Dict[str, Any]) -> CouponDB:
        """创建优惠券"""
        db_coupon = CouponDB(**data)
        self.db.add(db_coupon)
        await self.db.flush()
        return db_coupon

    async def update(self, db_coupon: CouponDB, data: Dict[str, Any]) -> CouponDB:
        """更新优惠券字段"""
        for field, value in data.items():
            setattr(db_coupon, field, value)
        await self.db.flush()
        return db_coupon

    async def soft_delete(self, db_coupon: CouponDB) -> None:
        db_coupon.deleted_at = datetime.now()
        db_coupon.is_active = False
        await self.db.flush()

    async def increment_usage(self, coupon_id: int) -> bool:
        """
        使用次数+1
        带上限条件的原子更新，达到上限时返回False
        """
        result = await self.db.execute(
            update(CouponDB)
            .where(
                and_(
                    CouponDB.id == coupon_id,
                    or_(
                        CouponDB.usage_limit.is_(None),
                        CouponDB.used_count < CouponDB.usage_limit
                    )
                )
            )
            .values(used_count=CouponDB.used_count + 1)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    def to_model(self, db_coupon: CouponDB) -> Coupon:
        """转换为Pydantic模型"""
        return Coupon(
            id=db_coupon.id,
            code=db_coupon.code,
            description=db_coupon.description,
            discount_type=db_coupon.discount_type,
            discount_value=db_coupon.discount_value,
            min_purchase=db_coupon.min_purchase,
            max_discount=db_coupon.max_discount,
            valid_from=db_coupon.valid_from,
            valid_until=db_coupon.valid_until,
            usage_limit=db_coupon.usage_limit,
            used_count=db_coupon.used_count or 0,
            is_active=db_coupon.is_active,
            created_at=db_coupon.created_at,
            updated_at=db_coupon.updated_at
        )
