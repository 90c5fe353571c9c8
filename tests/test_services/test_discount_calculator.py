"""
折扣计算测试
"""

import pytest
from decimal import Decimal
from datetime import datetime, timedelta

from app.models.coupon import Coupon, DiscountType
from app.models.promotion import Promotion, PromotionScope, PromotionType
from app.services.discount_calculator import (
    apply_coupon,
    calculate_final_amount,
    calculate_promotion_discount,
    calculate_shipping_fee,
    coupon_invalid_reason,
    to_money,
)

NOW = datetime(2024, 6, 1, 12, 0, 0)


def make_coupon(**overrides) -> Coupon:
    data = {
        "id": 1,
        "code": "SALE20",
        "discount_type": DiscountType.PERCENTAGE,
        "discount_value": Decimal("20"),
        "min_purchase": Decimal("200000"),
        "max_discount": Decimal("100000"),
        "valid_from": NOW - timedelta(days=1),
        "valid_until": NOW + timedelta(days=30),
        "usage_limit": 100,
        "used_count": 0,
        "is_active": True,
    }
    data.update(overrides)
    return Coupon(**data)


class TestApplyCoupon:
    """优惠券折扣计算"""

    def test_percentage_discount(self):
        """测试百分比折扣"""
        result = apply_coupon(make_coupon(), Decimal("300000"), NOW)

        assert result.is_valid
        assert result.discount_amount == Decimal("60000.00")
        assert result.reason is None

    def test_percentage_discount_capped_by_max_discount(self):
        """测试百分比折扣受最大折扣限制"""
        result = apply_coupon(make_coupon(), Decimal("1000000"), NOW)

        assert result.is_valid
        assert result.discount_amount == Decimal("100000.00")

    def test_fixed_amount_never_exceeds_subtotal(self):
        """测试固定金额折扣不超过订单金额"""
        coupon = make_coupon(
            discount_type=DiscountType.FIXED_AMOUNT,
            discount_value=Decimal("50000"),
            min_purchase=None,
            max_discount=None
        )
        result = apply_coupon(coupon, Decimal("30000"), NOW)

        assert result.is_valid
        assert result.discount_amount == Decimal("30000.00")

    def test_below_min_purchase(self):
        """测试未达到最低消费"""
        result = apply_coupon(make_coupon(), Decimal("150000"), NOW)

        assert not result.is_valid
        assert result.discount_amount == Decimal("0")
        assert "200000" in result.reason

    @pytest.mark.parametrize("overrides, reason", [
        ({"is_active": False}, "disabled"),
        ({"valid_from": NOW + timedelta(hours=1)}, "not yet active"),
        ({"valid_until": NOW - timedelta(hours=1)}, "expired"),
        ({"usage_limit": 5, "used_count": 5}, "limit reached"),
    ])
    def test_invalid_reasons(self, overrides, reason):
        """测试不可用原因"""
        result = apply_coupon(make_coupon(**overrides), Decimal("300000"), NOW)

        assert not result.is_valid
        assert result.reason == reason
        assert result.discount_amount == Decimal("0")

    def test_validity_window_is_exclusive(self):
        """测试有效期两端都不包含"""
        coupon = make_coupon(valid_from=NOW, valid_until=NOW + timedelta(days=1))
        assert coupon_invalid_reason(coupon, NOW) == "not yet active"

        coupon = make_coupon(valid_from=NOW - timedelta(days=1), valid_until=NOW)
        assert coupon_invalid_reason(coupon, NOW) == "expired"

    def test_disabled_checked_before_expiry(self):
        """测试原因检查顺序：先检查启用状态"""
        coupon = make_coupon(is_active=False, valid_until=NOW - timedelta(days=1))

        assert coupon_invalid_reason(coupon, NOW) == "disabled"

    def test_unlimited_usage(self):
        """测试无使用次数限制"""
        coupon = make_coupon(usage_limit=None, used_count=100000)

        assert apply_coupon(coupon, Decimal("300000"), NOW).is_valid


class TestPromotionDiscount:
    """折扣类促销"""

    def make_promotion(self, **overrides) -> Promotion:
        data = {
            "id": 1,
            "name": "10% off widgets",
            "type": PromotionType.DISCOUNT,
            "scope": PromotionScope.PRODUCT,
            "discount_type": DiscountType.PERCENTAGE,
            "discount_value": Decimal("10"),
            "product_ids": [1],
            "valid_from": NOW - timedelta(days=1),
            "valid_until": NOW + timedelta(days=1),
        }
        data.update(overrides)
        return Promotion(**data)

    def test_percentage(self):
        assert calculate_promotion_discount(self.make_promotion(), Decimal("250000")) == Decimal("25000.00")

    def test_min_purchase_not_met(self):
        promotion = self.make_promotion(min_purchase=Decimal("500000"))

        assert calculate_promotion_discount(promotion, Decimal("250000")) == Decimal("0")

    def test_fixed_amount_bounded(self):
        promotion = self.make_promotion(
            discount_type=DiscountType.FIXED_AMOUNT, discount_value=Decimal("80000")
        )

        assert calculate_promotion_discount(promotion, Decimal("50000")) == Decimal("50000.00")


class TestTotals:
    """运费与应付金额"""

    def test_free_shipping_at_threshold(self):
        """测试达到包邮门槛免运费"""
        assert calculate_shipping_fee(Decimal("200000")) == Decimal("0")

    def test_flat_shipping_below_threshold(self):
        """测试未达包邮门槛收取固定运费"""
        assert calculate_shipping_fee(Decimal("199999.99")) == Decimal("30000.00")

    def test_shipping_with_explicit_configuration(self):
        fee = calculate_shipping_fee(
            Decimal("100"), flat_fee=Decimal("15"), free_threshold=Decimal("100")
        )
        assert fee == Decimal("0")

    def test_final_amount(self):
        """测试应付金额计算"""
        final = calculate_final_amount(
            Decimal("300000"), Decimal("60000"), Decimal("0"), Decimal("30000")
        )
        assert final == Decimal("270000.00")

    def test_final_amount_never_negative_before_shipping(self):
        """测试折扣超过小计时商品金额为0，仍收运费"""
        final = calculate_final_amount(
            Decimal("100000"), Decimal("80000"), Decimal("50000"), Decimal("30000")
        )
        assert final == Decimal("30000.00")

    def test_to_money_rounds_half_up(self):
        assert to_money(Decimal("10.005")) == Decimal("10.01")
        assert to_money(Decimal("10.004")) == Decimal("10.00")
