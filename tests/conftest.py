"""
测试配置文件 - pytest fixtures和共用配置
"""

import pytest
import pytest_asyncio
from datetime import datetime, timedelta
from decimal import Decimal
from unittest.mock import AsyncMock

from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import NullPool

from app.core.database import Base, get_session_maker
from app.models.database import (
    CartItemDB,
    CouponDB,
    PaymentMethodDB,
    ProductDB,
    UserAddressDB,
    UserDB,
)
from app.repositories.promotion_repository import PromotionRepository
from app.services.notification_service import SideEffectDispatcher, side_effect_dispatcher
from app.services.order_service import OrderService

ADMIN_ID = 1
CUSTOMER_ID = 2
OTHER_CUSTOMER_ID = 3


@pytest_asyncio.fixture(scope="function")
async def test_db_engine(tmp_path):
    """测试数据库引擎 - 每个测试使用独立的SQLite文件"""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'order_engine_test.db'}",
        echo=False,  # 设为True可以看到SQL语句
        poolclass=NullPool
    )

    # 创建表结构
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture
async def session_maker(test_db_engine):
    """测试session工厂"""
    return async_sessionmaker(
        test_db_engine,
        class_=AsyncSession,
        expire_on_commit=False
    )


@pytest_asyncio.fixture
async def db_session(session_maker) -> AsyncSession:
    """测试数据库会话"""
    async with session_maker() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


@pytest_asyncio.fixture
async def seed_data(session_maker):
    """基础数据：管理员、两个客户、地址、支付方式、商品、优惠券"""
    now = datetime.now()
    async with session_maker() as session:
        session.add_all([
            UserDB(id=ADMIN_ID, full_name="Admin User", email="admin@example.com", role="admin"),
            UserDB(id=CUSTOMER_ID, full_name="Alice Nguyen", email="alice@example.com", role="customer"),
            UserDB(id=OTHER_CUSTOMER_ID, full_name="Bob Tran", email="bob@example.com", role="customer"),
        ])
        await session.flush()

        session.add_all([
            UserAddressDB(id=1, user_id=CUSTOMER_ID, recipient_name="Alice Nguyen",
                          phone="0900000001", address_line="1 Le Loi, District 1"),
            UserAddressDB(id=2, user_id=OTHER_CUSTOMER_ID, recipient_name="Bob Tran",
                          phone="0900000002", address_line="2 Nguyen Hue, District 1"),
            PaymentMethodDB(id=1, name="Cash on delivery", code="cod", is_active=True),
            PaymentMethodDB(id=2, name="Old wallet", code="old_wallet", is_active=False),
            ProductDB(id=1, name="Widget", price=Decimal("100000"), category_id=10, stock=10),
            ProductDB(id=2, name="Gadget", price=Decimal("50000"), category_id=20, stock=2),
            ProductDB(id=3, name="Gizmo", price=Decimal("20000"), category_id=10, stock=20),
            CouponDB(
                id=1,
                code="SALE20",
                description="20% off",
                discount_type="percentage",
                discount_value=Decimal("20"),
                min_purchase=Decimal("200000"),
                max_discount=Decimal("100000"),
                valid_from=now - timedelta(days=1),
                valid_until=now + timedelta(days=30),
                usage_limit=100,
                used_count=0,
                is_active=True
            ),
        ])
        await session.commit()

    return {
        "admin_id": ADMIN_ID,
        "customer_id": CUSTOMER_ID,
        "other_customer_id": OTHER_CUSTOMER_ID,
        "address_id": 1,
        "other_address_id": 2,
        "payment_method_id": 1,
        "inactive_payment_method_id": 2,
        "widget_id": 1,
        "gadget_id": 2,
        "gizmo_id": 3,
        "coupon_id": 1,
    }


@pytest.fixture
def fill_cart(session_maker):
    """向购物车写入商品"""
    async def _fill(user_id: int, *lines):
        async with session_maker() as session:
            for product_id, quantity in lines:
                session.add(CartItemDB(user_id=user_id, product_id=product_id, quantity=quantity))
            await session.commit()
    return _fill


@pytest.fixture
def make_promotion(session_maker):
    """直接写入一条促销（默认：昨天开始、明天结束、启用）"""
    async def _make(product_ids=(), **fields):
        now = datetime.now()
        data = {
            "name": "Promotion",
            "valid_from": now - timedelta(days=1),
            "valid_until": now + timedelta(days=1),
            "is_active": True,
            "used_count": 0,
        }
        data.update(fields)
        async with session_maker() as session:
            db_promotion = await PromotionRepository(session).create(data, list(product_ids))
            await session.commit()
            return db_promotion.id
    return _make


@pytest.fixture
def notification_sink():
    """模拟通知投递"""
    sink = AsyncMock()
    sink.notify_new_order = AsyncMock()
    sink.notify_status_change = AsyncMock()
    return sink


@pytest.fixture
def email_sink():
    """模拟邮件投递"""
    sink = AsyncMock()
    sink.send_order_confirmation = AsyncMock()
    return sink


@pytest_asyncio.fixture
async def dispatcher():
    """独立的副作用派发器"""
    dispatcher = SideEffectDispatcher()
    yield dispatcher
    await dispatcher.drain()


@pytest_asyncio.fixture
async def order_service(session_maker, seed_data, notification_sink, email_sink, dispatcher):
    """使用测试数据库的OrderService"""
    return OrderService(
        session_maker,
        notification_sink=notification_sink,
        email_sink=email_sink,
        dispatcher=dispatcher
    )


@pytest_asyncio.fixture
async def api_client(session_maker, seed_data):
    """测试HTTP客户端（不触发应用生命周期，数据库指向测试库）"""
    from app.main import app

    app.dependency_overrides[get_session_maker] = lambda: session_maker
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    await side_effect_dispatcher.drain()
    app.dependency_overrides.clear()
