"""
折扣计算
纯函数，不做任何持久化；优惠券使用次数由下单流程在同一事务内递增
"""

from decimal import Decimal, ROUND_HALF_UP
from datetime import datetime
from typing import Optional

from app.core.config import settings
from app.models.coupon import Coupon, CouponResult, DiscountType
from app.models.promotion import Promotion

ZERO = Decimal("0")
CENT = Decimal("0.01")

REASON_DISABLED = "disabled"
REASON_NOT_YET_ACTIVE = "not yet active"
REASON_EXPIRED = "expired"
REASON_LIMIT_REACHED = "limit reached"


def to_money(value: Decimal) -> Decimal:
    """金额统一保留两位小数（四舍五入）"""
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def coupon_invalid_reason(coupon: Coupon, now: Optional[datetime] = None) -> Optional[str]:
    """按固定顺序检查优惠券状态，返回第一个不可用原因"""
    now = now or datetime.now()
    if not coupon.is_active:
        return REASON_DISABLED
    if now <= coupon.valid_from:
        return REASON_NOT_YET_ACTIVE
    if now >= coupon.valid_until:
        return REASON_EXPIRED
    if coupon.usage_limit is not None and coupon.used_count >= coupon.usage_limit:
        return REASON_LIMIT_REACHED
    return None


def _bounded_discount(
    discount_type: DiscountType,
    discount_value: Decimal,
    max_discount: Optional[Decimal],
    amount: Decimal
) -> Decimal:
    if discount_type == DiscountType.PERCENTAGE:
        discount = amount * discount_value / Decimal("100")
        if max_discount is not None and discount > max_discount:
            discount = max_discount
    else:
        discount = discount_value

    # 折扣不能超过订单金额，也不能为负
    discount = min(discount, amount)
    return to_money(max(discount, ZERO))


def apply_coupon(coupon: Coupon, order_subtotal: Decimal, now: Optional[datetime] = None) -> CouponResult:
    """
    计算优惠券折扣

    返回 (discount_amount, is_valid, reason)；无效时折扣为0。
    保证 0 <= discount_amount <= order_subtotal。
    """
    reason = coupon_invalid_reason(coupon, now)
    if reason:
        return CouponResult(discount_amount=ZERO, is_valid=False, reason=reason)

    if coupon.min_purchase is not None and order_subtotal < coupon.min_purchase:
        return CouponResult(
            discount_amount=ZERO,
            is_valid=False,
            reason=f"order subtotal must be at least {coupon.min_purchase} to use this coupon"
        )

    discount = _bounded_discount(
        coupon.discount_type, coupon.discount_value, coupon.max_discount, order_subtotal
    )
    return CouponResult(discount_amount=discount, is_valid=True, reason=None)


def calculate_promotion_discount(promotion: Promotion, amount: Decimal) -> Decimal:
    """折扣类促销的金额计算，规则与优惠券一致"""
    if promotion.discount_type is None or promotion.discount_value is None:
        return ZERO
    if promotion.min_purchase is not None and amount < promotion.min_purchase:
        return ZERO
    return _bounded_discount(
        promotion.discount_type, promotion.discount_value, promotion.max_discount, amount
    )


def calculate_shipping_fee(
    amount_after_discounts: Decimal,
    flat_fee: Optional[Decimal] = None,
    free_threshold: Optional[Decimal] = None
) -> Decimal:
    """折后金额达到包邮门槛免运费，否则收取固定运费"""
    flat_fee = settings.shipping_fee if flat_fee is None else flat_fee
    free_threshold = settings.free_shipping_threshold if free_threshold is None else free_threshold
    if amount_after_discounts >= free_threshold:
        return ZERO
    return to_money(flat_fee)


def calculate_final_amount(
    subtotal: Decimal,
    coupon_discount: Decimal,
    promotion_discount: Decimal,
    shipping_fee: Decimal
) -> Decimal:
    """final = max(subtotal - coupon - promotion, 0) + shipping"""
    goods_total = max(subtotal - coupon_discount - promotion_discount, ZERO)
    return to_money(goods_total + shipping_fee)
