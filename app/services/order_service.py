"""
订单业务服务层
下单、状态流转、管理员修改订单项以及订单查询

每个写操作都是一个独立的工作单元：要么全部提交，要么全部回滚；
通知和邮件在提交成功后才派发，失败不会影响订单。
"""

import logging
from datetime import datetime
from decimal import Decimal
from functools import partial
from typing import Callable, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.config import settings
from app.core.exceptions import (
    ConcurrencyConflictError,
    InsufficientStockError,
    InvalidCouponError,
    NotFoundError,
    OwnershipError,
    ValidationError,
)
from app.core.unit_of_work import UnitOfWork
from app.models.checkout import PricedLine, User
from app.models.coupon import Coupon
from app.models.order import Order, OrderStatus, OrderStatusHistory
from app.models.promotion import PromotionMatch, PromotionScope
from app.models.stock import StockTransactionType
from app.repositories.checkout_repository import (
    AddressRepository,
    CartRepository,
    PaymentMethodRepository,
    UserRepository,
)
from app.repositories.coupon_repository import CouponRepository
from app.repositories.order_repository import OrderRepository
from app.repositories.promotion_repository import PromotionRepository
from app.repositories.stock_repository import ProductRepository
from app.services.collaborators import (
    CheckoutCollaborators,
    EmailSink,
    NotificationSink,
    require_admin,
)
from app.services.common_cache import order_cache
from app.services.discount_calculator import (
    ZERO,
    apply_coupon,
    calculate_final_amount,
    calculate_shipping_fee,
    to_money,
)
from app.services.notification_service import SideEffectDispatcher, side_effect_dispatcher
from app.services.order_state_machine import is_editable, validate_transition
from app.services.promotion_matcher import match_line
from app.services.stock_ledger_service import StockLedger

logger = logging.getLogger(__name__)

CollaboratorFactory = Callable[[AsyncSession], CheckoutCollaborators]


def default_collaborators(session: AsyncSession) -> CheckoutCollaborators:
    """数据库实现的协作方"""
    return CheckoutCollaborators(
        users=UserRepository(session),
        carts=CartRepository(session),
        addresses=AddressRepository(session),
        payment_methods=PaymentMethodRepository(session)
    )


class OrderService:
    """订单业务服务"""

    def __init__(
        self,
        session_maker: async_sessionmaker,
        notification_sink: NotificationSink,
        email_sink: EmailSink,
        dispatcher: Optional[SideEffectDispatcher] = None,
        collaborator_factory: Optional[CollaboratorFactory] = None
    ):
        self.session_maker = session_maker
        self.notification_sink = notification_sink
        self.email_sink = email_sink
        self.dispatcher = dispatcher or side_effect_dispatcher
        self.collaborator_factory = collaborator_factory or default_collaborators
        self.cache = order_cache
        self.cache_prefix = "order"
        self.cache_ttl = settings.order_cache_ttl

    # ==================== 下单 ====================

    async def place_order(
        self,
        user_id: int,
        shipping_address_id: int,
        payment_method_id: int,
        coupon_code: Optional[str] = None,
        notes: Optional[str] = None
    ) -> Order:
        """
        下单

        检测到并发冲突时在新的工作单元中整单重试（次数由配置决定，默认一次）。
        """
        attempt = 0
        while True:
            try:
                return await self._place_order_once(
                    user_id, shipping_address_id, payment_method_id, coupon_code, notes
                )
            except ConcurrencyConflictError as e:
                if attempt >= settings.placement_retry_attempts:
                    logger.error(f"用户 {user_id} 下单并发冲突，重试后仍失败: {e.message}")
                    raise
                attempt += 1
                logger.warning(f"用户 {user_id} 下单并发冲突，第{attempt}次重试: {e.message}")

    async def _place_order_once(
        self,
        user_id: int,
        shipping_address_id: int,
        payment_method_id: int,
        coupon_code: Optional[str],
        notes: Optional[str]
    ) -> Order:
        now = datetime.now()

        async with UnitOfWork(self.session_maker) as uow:
            session = uow.session
            collaborators = self.collaborator_factory(session)
            order_repo = OrderRepository(session)
            coupon_repo = CouponRepository(session)
            promotion_repo = PromotionRepository(session)

            # 1. 用户、购物车、地址、支付方式
            user = await collaborators.users.get_user(user_id)
            if not user:
                raise NotFoundError("User", user_id)

            cart = await collaborators.carts.get_cart(user_id)
            if cart.is_empty:
                raise ValidationError("Cart is empty", details={"user_id": user_id})

            address = await collaborators.addresses.get_address(shipping_address_id)
            if not address:
                raise NotFoundError("Address", shipping_address_id)
            if address.owner_id != user_id:
                raise OwnershipError(
                    "Shipping address does not belong to this user",
                    details={"address_id": shipping_address_id, "user_id": user_id}
                )

            payment_method = await collaborators.payment_methods.get_payment_method(payment_method_id)
            if not payment_method:
                raise NotFoundError("PaymentMethod", payment_method_id)
            if not payment_method.is_active:
                raise ValidationError(
                    f"Payment method '{payment_method.name}' is not available",
                    details={"payment_method_id": payment_method_id}
                )

            # 2. 优惠券（代码不区分大小写）
            coupon: Optional[Coupon] = None
            if coupon_code and coupon_code.strip():
                db_coupon = await coupon_repo.get_by_code(coupon_code)
                if not db_coupon:
                    raise InvalidCouponError(coupon_code.strip().upper(), "not found")
                coupon = coupon_repo.to_model(db_coupon)

            # 3. 库存预检查与小计
            lines = await self._price_cart_lines(ProductRepository(session), cart.lines)
            subtotal = to_money(sum((line.subtotal for line in lines), ZERO))

            coupon_discount = ZERO
            if coupon:
                result = apply_coupon(coupon, subtotal, now)
                if not result.is_valid:
                    raise InvalidCouponError(coupon.code, result.reason)
                coupon_discount = result.discount_amount

            # 4. 逐行匹配促销
            promotions = await promotion_repo.find_candidates(
                [line.product_id for line in lines],
                [line.category_id for line in lines],
                now
            )
            matches: List[Optional[PromotionMatch]] = [
                match_line(line, promotions, now) for line in lines
            ]
            promotion_discount = to_money(
                sum((m.discount_amount for m in matches if m), ZERO)
            )

            # 5. 运费与应付金额
            goods_total = max(subtotal - coupon_discount - promotion_discount, ZERO)
            shipping_fee = calculate_shipping_fee(goods_total)
            final_amount = calculate_final_amount(
                subtotal, coupon_discount, promotion_discount, shipping_fee
            )

            order_level_promotion = next(
                (m.promotion_id for m in matches if m and m.scope == PromotionScope.ORDER),
                None
            )

            # 6. 订单主记录、订单项、出库流水
            order_number = await self._generate_order_number(order_repo, now)
            try:
                db_order = await order_repo.create_order({
                    "order_number": order_number,
                    "user_id": user_id,
                    "subtotal": subtotal,
                    "coupon_discount": coupon_discount,
                    "promotion_discount": promotion_discount,
                    "shipping_fee": shipping_fee,
                    "final_amount": final_amount,
                    "coupon_id": coupon.id if coupon else None,
                    "promotion_id": order_level_promotion,
                    "shipping_address_id": shipping_address_id,
                    "payment_method_id": payment_method_id,
                    "status": OrderStatus.PENDING.value,
                    "notes": notes,
                })
            except IntegrityError as e:
                raise ConcurrencyConflictError(
                    f"Order number {order_number} was taken by a concurrent order",
                    details={"order_number": order_number}
                ) from e

            ledger = StockLedger(session)
            db_items = []
            for line, match in zip(lines, matches):
                free_quantity = match.free_quantity if match else 0
                db_items.append(await order_repo.add_item({
                    "order_id": db_order.id,
                    "product_id": line.product_id,
                    "product_name": line.product_name,
                    "quantity": line.quantity,
                    "price": line.unit_price,
                    "subtotal": to_money(line.subtotal),
                    "promotion_id": match.promotion_id if match else None,
                    "promotion_discount": match.discount_amount if match else ZERO,
                    "promotion_free_quantity": free_quantity,
                }))
                # 赠品同样出库，锁定行后再次校验库存
                await ledger.record_transaction(
                    line.product_id,
                    StockTransactionType.OUT,
                    line.quantity + free_quantity,
                    notes=f"Order {order_number}",
                    actor_id=user_id
                )

            # 7. 使用次数
            if coupon and not await coupon_repo.increment_usage(coupon.id):
                raise InvalidCouponError(coupon.code, "limit reached")
            applied_promotions = sorted({m.promotion_id for m in matches if m})
            for promotion_id in applied_promotions:
                if not await promotion_repo.increment_usage(promotion_id):
                    # 匹配后被其他订单用完，重试时会重新匹配
                    raise ConcurrencyConflictError(
                        f"Promotion {promotion_id} reached its usage limit concurrently",
                        details={"promotion_id": promotion_id}
                    )

            # 8. 清空购物车  9. 初始状态历史
            await collaborators.carts.clear(user_id)
            await order_repo.add_history(db_order.id, OrderStatus.PENDING, "Order placed", user_id)

            order = order_repo.to_model(db_order, db_items)

            # 10. 提交后的副作用
            uow.after_commit(partial(
                self.notification_sink.notify_new_order,
                order.id, order.order_number, user.full_name, order.final_amount
            ))
            uow.after_commit(partial(self.email_sink.send_order_confirmation, user, order))

        self.dispatcher.dispatch(uow.pending_hooks())
        await self._clear_user_order_caches(user_id)

        logger.info(
            f"订单创建成功 {order.order_number}: user={user_id} subtotal={order.subtotal} "
            f"coupon={order.coupon_discount} promotion={order.promotion_discount} "
            f"shipping={order.shipping_fee} final={order.final_amount}"
        )
        return order

    async def _price_cart_lines(self, product_repo: ProductRepository, cart_lines) -> List[PricedLine]:
        """读取商品价格并做库存预检查"""
        products = {
            p.id: p for p in await product_repo.get_many([line.product_id for line in cart_lines])
        }
        lines = []
        for cart_line in cart_lines:
            product = products.get(cart_line.product_id)
            if not product:
                raise NotFoundError("Product", cart_line.product_id)
            if product.stock < cart_line.quantity:
                raise InsufficientStockError(product.id, product.name, cart_line.quantity, product.stock)
            lines.append(PricedLine(
                product_id=product.id,
                product_name=product.name,
                category_id=product.category_id,
                quantity=cart_line.quantity,
                unit_price=product.price
            ))
        return lines

    async def _generate_order_number(self, order_repo: OrderRepository, now: datetime) -> str:
        """订单编号：ORD-YYYY-MM-DD-NNN，NNN为当天的流水号"""
        prefix = f"{settings.order_number_prefix}-{now.strftime('%Y-%m-%d')}-"
        latest = await order_repo.get_latest_order_number(prefix)

        sequence = 1
        if latest:
            try:
                sequence = int(latest.rsplit("-", 1)[1]) + 1
            except ValueError:
                logger.warning(f"无法解析订单编号序号: {latest}")
        return f"{prefix}{sequence:03d}"

    # ==================== 状态流转 ====================

    async def update_status(
        self,
        order_id: int,
        new_status: OrderStatus,
        notes: Optional[str],
        actor_id: int
    ) -> Order:
        """管理员修改订单状态"""
        new_status = OrderStatus(new_status)

        async with UnitOfWork(self.session_maker) as uow:
            collaborators = self.collaborator_factory(uow.session)
            order_repo = OrderRepository(uow.session)

            await require_admin(collaborators.users, actor_id)

            db_order = await order_repo.get_by_id(order_id, for_update=True)
            if not db_order:
                raise NotFoundError("Order", order_id)

            current_status = OrderStatus(db_order.status)
            validate_transition(current_status, new_status)

            db_order.status = new_status.value
            await order_repo.save(db_order)
            await order_repo.add_history(order_id, new_status, notes, actor_id)

            order = await order_repo.load_model(db_order)
            uow.after_commit(partial(
                self.notification_sink.notify_status_change,
                order.user_id, order.id, new_status
            ))

        self.dispatcher.dispatch(uow.pending_hooks())
        await self._clear_order_caches(order.id, order.user_id)

        logger.info(
            f"管理员 {actor_id} 将订单 {order.order_number} 状态从 "
            f"{current_status.value} 修改为 {new_status.value}"
        )
        return order

    # ==================== 修改订单项 ====================

    async def adjust_line_quantity(
        self,
        order_id: int,
        item_id: int,
        new_quantity: int,
        actor_id: int
    ) -> Order:
        """
        管理员修改订单项数量

        只允许待处理/已确认的订单；库存按数量差额入库或出库，
        订单金额按全部订单项重新汇总，已确定的折扣金额和运费保持不变。
        """
        if new_quantity < 1:
            raise ValidationError("Quantity must be at least 1", details={"quantity": new_quantity})

        async with UnitOfWork(self.session_maker) as uow:
            session = uow.session
            collaborators = self.collaborator_factory(session)
            order_repo = OrderRepository(session)

            await require_admin(collaborators.users, actor_id)

            db_order = await order_repo.get_by_id(order_id, for_update=True)
            if not db_order:
                raise NotFoundError("Order", order_id)
            if not is_editable(db_order.status):
                raise ValidationError(
                    "Order items can only be changed while the order is pending or confirmed",
                    details={"order_id": order_id, "status": db_order.status}
                )

            db_items = await order_repo.load_items_for_order(order_id)
            db_item = next((item for item in db_items if item.id == item_id), None)
            if not db_item:
                raise NotFoundError("OrderItem", item_id)

            difference = new_quantity - db_item.quantity
            if difference != 0:
                ledger = StockLedger(session)
                if difference > 0:
                    await ledger.record_transaction(
                        db_item.product_id, StockTransactionType.OUT, difference,
                        notes=f"Order {db_order.order_number} item quantity increased", actor_id=actor_id
                    )
                else:
                    await ledger.record_transaction(
                        db_item.product_id, StockTransactionType.IN, -difference,
                        notes=f"Order {db_order.order_number} item quantity decreased", actor_id=actor_id
                    )

            db_item.quantity = new_quantity
            db_item.subtotal = to_money(db_item.price * new_quantity)

            subtotal = to_money(sum((item.subtotal for item in db_items), ZERO))
            db_order.subtotal = subtotal
            db_order.final_amount = calculate_final_amount(
                subtotal,
                Decimal(db_order.coupon_discount),
                Decimal(db_order.promotion_discount),
                Decimal(db_order.shipping_fee)
            )
            await order_repo.save(db_order)

            await order_repo.add_history(
                order_id,
                OrderStatus(db_order.status),
                f"Quantity of '{db_item.product_name}' changed to {new_quantity}",
                actor_id
            )
            order = order_repo.to_model(db_order, db_items)

        await self._clear_order_caches(order.id, order.user_id)

        logger.info(
            f"管理员 {actor_id} 修改订单 {order.order_number} 的订单项 {item_id} 数量为 {new_quantity}"
        )
        return order

    # ==================== 查询 ====================

    async def get_order(self, order_id: int, actor_id: int, use_cache: bool = True) -> Order:
        """获取订单详情；普通用户只能查看自己的订单"""
        cache_key = f"{self.cache_prefix}:detail:{order_id}"

        order = None
        if use_cache:
            cached_order = await self.cache.get(cache_key)
            if cached_order:
                order = Order(**cached_order)

        async with self.session_maker() as session:
            collaborators = self.collaborator_factory(session)
            actor = await collaborators.users.get_user(actor_id)
            if not actor:
                raise NotFoundError("User", actor_id)

            if order is None:
                order_repo = OrderRepository(session)
                db_order = await order_repo.get_by_id(order_id)
                if not db_order:
                    raise NotFoundError("Order", order_id)
                order = await order_repo.load_model(db_order)
                if use_cache:
                    await self.cache.set(cache_key, order.model_dump(mode="json"), ttl=self.cache_ttl)

        self._ensure_can_view(actor, order)
        return order

    async def get_user_orders(
        self,
        user_id: int,
        limit: int = 20,
        offset: int = 0,
        status_filter: Optional[OrderStatus] = None,
        use_cache: bool = True
    ) -> List[Order]:
        """获取用户订单列表"""
        status_key = OrderStatus(status_filter).value if status_filter else "all"
        cache_key = f"{self.cache_prefix}:user:{user_id}:{limit}:{offset}:{status_key}"

        if use_cache:
            cached_orders = await self.cache.get(cache_key)
            if cached_orders:
                return [Order(**order_data) for order_data in cached_orders]

        async with self.session_maker() as session:
            order_repo = OrderRepository(session)
            db_orders = await order_repo.get_user_orders(
                user_id=user_id,
                limit=limit,
                offset=offset,
                status_filter=status_filter
            )
            orders = [await order_repo.load_model(db_order) for db_order in db_orders]

        if use_cache:
            await self.cache.set(
                cache_key,
                [order.model_dump(mode="json") for order in orders],
                ttl=self.cache_ttl // 2
            )

        return orders

    async def get_order_status_history(self, order_id: int, actor_id: int) -> List[OrderStatusHistory]:
        """订单状态历史（按时间顺序）"""
        async with self.session_maker() as session:
            collaborators = self.collaborator_factory(session)
            order_repo = OrderRepository(session)

            actor = await collaborators.users.get_user(actor_id)
            if not actor:
                raise NotFoundError("User", actor_id)
            db_order = await order_repo.get_by_id(order_id)
            if not db_order:
                raise NotFoundError("Order", order_id)
            self._ensure_can_view(actor, order_repo.to_model(db_order))

            history = await order_repo.load_history_for_order(order_id)
            return [order_repo.history_to_model(h) for h in history]

    async def list_orders(
        self,
        actor_id: int,
        status: Optional[OrderStatus] = None,
        limit: int = 20,
        offset: int = 0
    ) -> List[Order]:
        """管理端订单列表"""
        async with self.session_maker() as session:
            collaborators = self.collaborator_factory(session)
            await require_admin(collaborators.users, actor_id)

            order_repo = OrderRepository(session)
            db_orders = await order_repo.list_orders(status=status, limit=limit, offset=offset)
            return [await order_repo.load_model(db_order) for db_order in db_orders]

    async def search_orders(
        self,
        actor_id: int,
        keyword: str,
        limit: int = 20,
        offset: int = 0
    ) -> List[Order]:
        """管理端订单搜索（订单编号、备注、用户姓名或邮箱）"""
        keyword = (keyword or "").strip()
        if not keyword:
            raise ValidationError("Search keyword must not be empty")

        async with self.session_maker() as session:
            collaborators = self.collaborator_factory(session)
            await require_admin(collaborators.users, actor_id)

            order_repo = OrderRepository(session)
            db_orders = await order_repo.search_orders(keyword, limit=limit, offset=offset)
            return [await order_repo.load_model(db_order) for db_order in db_orders]

    def _ensure_can_view(self, actor: User, order: Order) -> None:
        if not actor.is_admin and order.user_id != actor.id:
            raise OwnershipError(
                "You do not have permission to view this order",
                details={"order_id": order.id}
            )

    # ==================== 缓存 ====================

    async def _clear_order_caches(self, order_id: int, user_id: int):
        """清除订单相关缓存"""
        patterns = [
            f"{self.cache_prefix}:detail:{order_id}",
            f"{self.cache_prefix}:user:{user_id}:*",
        ]

        for pattern in patterns:
            await self.cache.delete_pattern(pattern)

    async def _clear_user_order_caches(self, user_id: int):
        """清除用户订单列表缓存"""
        await self.cache.delete_pattern(f"{self.cache_prefix}:user:{user_id}:*")
