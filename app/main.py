from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.exceptions import RequestValidationError
from contextlib import asynccontextmanager
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException
import uvicorn

from app.core.config import settings
from app.core.redis import redis_manager
from app.core.database import init_database, close_database
from app.api.health import router as health_router
from app.api.orders import router as orders_router, admin_router as admin_orders_router
from app.api.stock import router as stock_router
from app.api.coupons import router as coupons_router, admin_router as admin_coupons_router
from app.api.promotions import router as promotions_router, admin_router as admin_promotions_router
from app.api.exceptions import (
    validation_exception_handler,
    http_exception_handler,
    database_exception_handler,
    general_exception_handler,
    business_exception_handler,
    BusinessException
)
from app.services.common_cache import bind_caches
from app.services.notification_service import side_effect_dispatcher

# 简化日志配置
import logging

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """应用生命周期管理"""
    logger.info("正在启动订单履约服务")

    try:
        # 初始化数据库连接
        await init_database()
        logger.info("PostgreSQL数据库初始化成功")

        await redis_manager.init_redis()
        bind_caches(redis_manager.redis_pool)
        logger.info("Redis初始化成功")

        logger.info("应用启动完成")

    except Exception as e:
        logger.error(f"应用启动失败: {e}")
        raise

    yield

    logger.info("正在关闭应用")
    await side_effect_dispatcher.drain()
    bind_caches(None)
    await close_database()
    await redis_manager.close_redis()
    logger.info("应用关闭完成")


def register_routes(app: FastAPI) -> None:
    """注册路由与异常处理器"""
    app.include_router(health_router)
    app.include_router(orders_router)
    app.include_router(admin_orders_router)
    app.include_router(stock_router)
    app.include_router(coupons_router)
    app.include_router(admin_coupons_router)
    app.include_router(promotions_router)
    app.include_router(admin_promotions_router)

    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(SQLAlchemyError, database_exception_handler)
    app.add_exception_handler(BusinessException, business_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)


# 创建FastAPI应用
app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="订单履约与定价引擎 - 下单、优惠券、促销、库存流水与订单状态流转",
    debug=settings.debug,
    lifespan=lifespan
)

# CORS中间件
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_routes(app)


@app.get("/")
async def root():
    """根路径"""
    return {
        "message": f"欢迎使用 {settings.app_name}",
        "version": settings.app_version,
        "docs": "/docs",
        "health": "/health",
    }


if __name__ == "__main__":
    uvicorn.run(
        "app.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug,
        log_level=settings.log_level.lower()
    )
