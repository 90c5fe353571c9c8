"""
促销Repository数据库操作测试 - 使用测试数据库
"""

import pytest
from datetime import datetime, timedelta

from app.models.promotion import PromotionScope
from app.repositories.promotion_repository import PromotionRepository


@pytest.mark.asyncio
class TestPromotionRepository:
    """促销Repository数据库操作测试类"""

    async def test_find_candidates_by_scope(self, session_maker, db_session, seed_data, make_promotion):
        """测试按商品、分类、订单范围取出候选促销"""
        product_promotion = await make_promotion(
            product_ids=[seed_data["widget_id"]], name="Widget BOGO", type="bogo", scope="product"
        )
        category_promotion = await make_promotion(
            name="Category 2+1", type="buy_x_get_y", scope="category",
            category_id=10, buy_quantity=2, get_quantity=1
        )
        order_promotion = await make_promotion(
            name="Order 3 for 2", type="buy_x_pay_y", scope="order", buy_quantity=3, pay_quantity=2
        )
        await make_promotion(
            product_ids=[seed_data["gadget_id"]], name="Gadget BOGO", type="bogo", scope="product"
        )

        promotion_repo = PromotionRepository(db_session)
        candidates = await promotion_repo.find_candidates([seed_data["widget_id"]], [10], datetime.now())

        by_id = {p.id: p for p in candidates}
        assert set(by_id) == {product_promotion, category_promotion, order_promotion}
        assert by_id[product_promotion].product_ids == [seed_data["widget_id"]]
        assert by_id[category_promotion].scope == PromotionScope.CATEGORY

    async def test_inactive_and_exhausted_are_excluded(self, db_session, seed_data, make_promotion):
        """测试停用、过期、用完的促销不参与匹配"""
        now = datetime.now()
        await make_promotion(
            product_ids=[seed_data["widget_id"]], type="bogo", scope="product", is_active=False
        )
        await make_promotion(
            product_ids=[seed_data["widget_id"]], type="bogo", scope="product",
            valid_until=now - timedelta(minutes=1)
        )
        await make_promotion(
            product_ids=[seed_data["widget_id"]], type="bogo", scope="product",
            usage_limit=1, used_count=1
        )

        promotion_repo = PromotionRepository(db_session)

        assert await promotion_repo.find_active_for_product(seed_data["widget_id"], now) == []

    async def test_find_active_newest_first(self, db_session, seed_data, make_promotion):
        now = datetime.now()
        older = await make_promotion(
            name="Order 3 for 2", type="buy_x_pay_y", scope="order", buy_quantity=3, pay_quantity=2,
            created_at=now - timedelta(hours=1)
        )
        newer = await make_promotion(
            product_ids=[seed_data["gizmo_id"]], type="bogo", scope="product", created_at=now
        )
        await make_promotion(type="bogo", scope="order", is_active=False)

        active = await PromotionRepository(db_session).find_active(now + timedelta(seconds=1))

        assert [p.id for p in active] == [newer, older]

    async def test_increment_usage(self, db_session, seed_data, make_promotion):
        promotion_id = await make_promotion(
            product_ids=[seed_data["widget_id"]], type="bogo", scope="product", usage_limit=1
        )
        promotion_repo = PromotionRepository(db_session)

        assert await promotion_repo.increment_usage(promotion_id) is True
        assert await promotion_repo.increment_usage(promotion_id) is False

    async def test_replace_products(self, db_session, seed_data, make_promotion):
        """测试替换适用商品"""
        promotion_id = await make_promotion(
            product_ids=[seed_data["widget_id"]], type="bogo", scope="product"
        )
        promotion_repo = PromotionRepository(db_session)

        await promotion_repo.replace_products(promotion_id, [seed_data["gizmo_id"], seed_data["gadget_id"]])

        mapping = await promotion_repo.load_product_ids([promotion_id])
        assert mapping[promotion_id] == [seed_data["gadget_id"], seed_data["gizmo_id"]]
