"""
促销匹配
为购物车的每一行选出至多一个促销，并计算赠送数量/折扣金额

匹配顺序：商品范围 > 分类范围 > 订单范围；同一范围内按创建时间倒序、ID倒序。
"""

from decimal import Decimal
from datetime import datetime
from typing import Iterable, List, Optional

from app.core.exceptions import InvalidPromotionConfigError
from app.models.checkout import PricedLine
from app.models.coupon import DiscountType
from app.models.promotion import Promotion, PromotionMatch, PromotionScope, PromotionType
from app.services.discount_calculator import ZERO, calculate_promotion_discount, to_money

_SCOPE_PRIORITY = {
    PromotionScope.PRODUCT: 0,
    PromotionScope.CATEGORY: 1,
    PromotionScope.ORDER: 2,
}


def free_quantity_for(promotion: Promotion, quantity: int) -> int:
    """数量类促销的赠送数量"""
    if promotion.type == PromotionType.BOGO:
        # 每买一件送一件
        return quantity
    if promotion.type == PromotionType.BUY_X_GET_Y:
        sets = quantity // (promotion.buy_quantity + promotion.get_quantity)
        return sets * promotion.get_quantity
    if promotion.type == PromotionType.BUY_X_PAY_Y:
        sets = quantity // promotion.buy_quantity
        paid_quantity = sets * promotion.pay_quantity
        return quantity - paid_quantity
    return 0


def is_in_scope(promotion: Promotion, line: PricedLine) -> bool:
    if promotion.scope == PromotionScope.PRODUCT:
        return line.product_id in promotion.product_ids
    if promotion.scope == PromotionScope.CATEGORY:
        return line.category_id is not None and promotion.category_id == line.category_id
    # 订单范围的促销对每一行开放
    return promotion.scope == PromotionScope.ORDER


def rank_promotions(promotions: Iterable[Promotion]) -> List[Promotion]:
    """确定性排序"""
    def sort_key(promotion: Promotion):
        created = promotion.created_at.timestamp() if promotion.created_at else 0.0
        return (_SCOPE_PRIORITY[promotion.scope], -created, -(promotion.id or 0))

    return sorted(promotions, key=sort_key)


def evaluate(promotion: Promotion, line: PricedLine) -> Optional[PromotionMatch]:
    """计算单个促销在该行上的效果，没有效果则返回None"""
    if promotion.type == PromotionType.DISCOUNT:
        discount = calculate_promotion_discount(promotion, line.subtotal)
        free_quantity = 0
    else:
        free_quantity = free_quantity_for(promotion, line.quantity)
        discount = to_money(line.unit_price * free_quantity)

    if free_quantity <= 0 and discount <= ZERO:
        return None

    return PromotionMatch(
        promotion_id=promotion.id,
        promotion_name=promotion.name,
        promotion_type=promotion.type,
        scope=promotion.scope,
        free_quantity=free_quantity,
        discount_amount=discount
    )


def match_line(
    line: PricedLine,
    promotions: Iterable[Promotion],
    now: Optional[datetime] = None
) -> Optional[PromotionMatch]:
    """返回该行适用的第一个促销（按确定性顺序）"""
    now = now or datetime.now()
    candidates = [
        promotion for promotion in promotions
        if promotion.is_valid(now) and is_in_scope(promotion, line)
    ]
    for promotion in rank_promotions(candidates):
        match = evaluate(promotion, line)
        if match:
            return match
    return None


def validate_promotion_config(promotion: Promotion) -> None:
    """校验促销配置与类型/范围一致，不一致抛出InvalidPromotionConfigError"""
    if promotion.valid_until <= promotion.valid_from:
        raise InvalidPromotionConfigError("valid_until must be after valid_from")

    if promotion.scope == PromotionScope.ORDER and promotion.type == PromotionType.DISCOUNT:
        raise InvalidPromotionConfigError(
            "order-wide money discounts must be issued as coupons, not promotions"
        )
    if promotion.scope == PromotionScope.PRODUCT and not promotion.product_ids:
        raise InvalidPromotionConfigError("product scope requires at least one product")
    if promotion.scope == PromotionScope.CATEGORY and promotion.category_id is None:
        raise InvalidPromotionConfigError("category scope requires a category")

    if promotion.type == PromotionType.DISCOUNT:
        if promotion.discount_type is None or promotion.discount_value is None:
            raise InvalidPromotionConfigError("discount promotions need discount_type and discount_value")
        if promotion.discount_value <= ZERO:
            raise InvalidPromotionConfigError("discount_value must be positive")
        if promotion.discount_type == DiscountType.PERCENTAGE and promotion.discount_value > Decimal("100"):
            raise InvalidPromotionConfigError("percentage discount cannot exceed 100")
    elif promotion.type == PromotionType.BOGO:
        if promotion.buy_quantity not in (None, 1) or promotion.get_quantity not in (None, 1):
            raise InvalidPromotionConfigError("BOGO promotions are always buy 1 get 1")
    elif promotion.type == PromotionType.BUY_X_GET_Y:
        if not promotion.buy_quantity or promotion.buy_quantity <= 0:
            raise InvalidPromotionConfigError("buy_quantity must be greater than 0")
        if not promotion.get_quantity or promotion.get_quantity <= 0:
            raise InvalidPromotionConfigError("get_quantity must be greater than 0")
    elif promotion.type == PromotionType.BUY_X_PAY_Y:
        if not promotion.buy_quantity or promotion.buy_quantity <= 0:
            raise InvalidPromotionConfigError("buy_quantity must be greater than 0")
        if not promotion.pay_quantity or promotion.pay_quantity <= 0:
            raise InvalidPromotionConfigError("pay_quantity must be greater than 0")
        if promotion.pay_quantity >= promotion.buy_quantity:
            raise InvalidPromotionConfigError("pay_quantity must be less than buy_quantity")
