"""
优惠券Repository数据库操作测试 - 使用测试数据库
"""

import pytest
from decimal import Decimal
from datetime import datetime, timedelta

from app.repositories.coupon_repository import CouponRepository


@pytest.mark.asyncio
class TestCouponRepository:
    """优惠券Repository数据库操作测试类"""

    async def test_get_by_code_case_insensitive(self, db_session, seed_data):
        """测试优惠券代码不区分大小写"""
        coupon_repo = CouponRepository(db_session)

        db_coupon = await coupon_repo.get_by_code(" sale20 ")

        assert db_coupon is not None
        assert db_coupon.id == seed_data["coupon_id"]
        assert coupon_repo.to_model(db_coupon).discount_value == Decimal("20")

    async def test_increment_usage_respects_limit(self, db_session, seed_data):
        """测试使用次数达到上限后不再递增"""
        coupon_repo = CouponRepository(db_session)
        db_coupon = await coupon_repo.get_by_id(seed_data["coupon_id"])
        await coupon_repo.update(db_coupon, {"usage_limit": 2})

        assert await coupon_repo.increment_usage(seed_data["coupon_id"]) is True
        assert await coupon_repo.increment_usage(seed_data["coupon_id"]) is True
        assert await coupon_repo.increment_usage(seed_data["coupon_id"]) is False

        await db_session.refresh(db_coupon)
        assert db_coupon.used_count == 2

    async def test_valid_coupons_exclude_expired_and_deleted(self, db_session, seed_data):
        """测试有效优惠券查询"""
        coupon_repo = CouponRepository(db_session)
        now = datetime.now()
        await coupon_repo.create({
            "code": "OLD",
            "discount_type": "fixed_amount",
            "discount_value": Decimal("10000"),
            "valid_from": now - timedelta(days=30),
            "valid_until": now - timedelta(days=1),
        })
        deleted = await coupon_repo.create({
            "code": "GONE",
            "discount_type": "fixed_amount",
            "discount_value": Decimal("10000"),
            "valid_from": now - timedelta(days=1),
            "valid_until": now + timedelta(days=1),
        })
        await coupon_repo.soft_delete(deleted)

        coupons = await coupon_repo.get_valid_coupons()

        assert [c.code for c in coupons] == ["SALE20"]
        assert await coupon_repo.get_by_code("GONE") is None
        assert (await coupon_repo.get_by_code("gone", include_deleted=True)).id == deleted.id
