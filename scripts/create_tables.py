"""
订单履约数据库表创建脚本
"""

import asyncio
import sys
from datetime import datetime, timedelta
from pathlib import Path

# 添加项目根目录到Python路径
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy import text
from app.core.config import settings
from app.core.database import Base

# 导入所有数据库模型以确保表被注册
import app.models.database  # noqa: F401


async def create_database_if_not_exists():
    """创建数据库（如果不存在）"""
    # 连接到PostgreSQL服务器（不指定数据库）
    server_url = settings.database_url_computed.replace(f"/{settings.db_name}", "/postgres")

    engine = create_async_engine(server_url, isolation_level="AUTOCOMMIT")

    async with engine.connect() as conn:
        # 检查数据库是否存在
        result = await conn.execute(
            text("SELECT 1 FROM pg_database WHERE datname = :db_name"),
            {"db_name": settings.db_name}
        )

        if not result.fetchone():
            await conn.execute(text(f"CREATE DATABASE {settings.db_name}"))
            print(f"数据库 '{settings.db_name}' 创建成功")
        else:
            print(f"数据库 '{settings.db_name}' 已存在")

    await engine.dispose()


async def create_tables():
    """创建所有数据表"""
    engine = create_async_engine(settings.database_url_computed)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
        print("所有数据表创建成功")

    await engine.dispose()


async def create_indexes():
    """创建额外的索引"""
    engine = create_async_engine(settings.database_url_computed)

    indexes = [
        # 订单表索引
        "CREATE INDEX IF NOT EXISTS idx_orders_user_status ON orders(user_id, status);",
        "CREATE INDEX IF NOT EXISTS idx_orders_created ON orders(created_at);",
        "CREATE INDEX IF NOT EXISTS idx_order_items_order ON order_items(order_id);",
        "CREATE INDEX IF NOT EXISTS idx_order_history_order ON order_status_history(order_id);",

        # 库存流水索引
        "CREATE INDEX IF NOT EXISTS idx_stock_transactions_product ON stock_transactions(product_id, id);",

        # 优惠券/促销有效期索引
        "CREATE INDEX IF NOT EXISTS idx_coupons_validity ON coupons(valid_from, valid_until);",
        "CREATE INDEX IF NOT EXISTS idx_promotions_validity ON promotions(scope, valid_from, valid_until);",
    ]

    async with engine.begin() as conn:
        for index_sql in indexes:
            await conn.execute(text(index_sql))
        print("所有索引创建成功")

    await engine.dispose()


async def insert_sample_coupons():
    """插入示例优惠券数据"""
    engine = create_async_engine(settings.database_url_computed)

    now = datetime.now()
    sample_coupons = [
        {
            "code": "WELCOME50K",
            "description": "New customer coupon, 50,000 off orders from 200,000",
            "discount_type": "fixed_amount",
            "discount_value": 50000,
            "min_purchase": 200000,
            "max_discount": None,
            "valid_from": now - timedelta(days=1),
            "valid_until": now + timedelta(days=30),
            "usage_limit": 1000,
        },
        {
            "code": "SALE20",
            "description": "20% off orders from 200,000, up to 100,000",
            "discount_type": "percentage",
            "discount_value": 20,
            "min_purchase": 200000,
            "max_discount": 100000,
            "valid_from": now - timedelta(days=1),
            "valid_until": now + timedelta(days=60),
            "usage_limit": 500,
        }
    ]

    async with engine.begin() as conn:
        for coupon in sample_coupons:
            # 检查优惠券是否已存在
            result = await conn.execute(
                text("SELECT 1 FROM coupons WHERE code = :code"),
                {"code": coupon["code"]}
            )

            if not result.fetchone():
                await conn.execute(
                    text("""
                        INSERT INTO coupons (
                            code, description, discount_type, discount_value, min_purchase,
                            max_discount, valid_from, valid_until, usage_limit, used_count,
                            is_active, created_at, updated_at
                        ) VALUES (
                            :code, :description, :discount_type, :discount_value, :min_purchase,
                            :max_discount, :valid_from, :valid_until, :usage_limit, 0,
                            true, :valid_from, :valid_from
                        )
                    """),
                    coupon
                )
                print(f"插入优惠券: {coupon['code']}")
            else:
                print(f"优惠券已存在: {coupon['code']}")

    await engine.dispose()


async def main():
    """主函数"""
    print("开始创建订单履约数据库表...")

    try:
        # 1. 创建数据库
        await create_database_if_not_exists()

        # 2. 创建表结构
        await create_tables()

        # 3. 创建索引
        await create_indexes()

        # 4. 插入示例数据
        await insert_sample_coupons()

        print("订单履约数据库初始化完成！")

    except Exception as e:
        print(f"数据库初始化失败: {e}")
        import traceback
        traceback.print_exc()


if __name__ == "__main__":
    asyncio.run(main())
