from fastapi import APIRouter, HTTPException
import logging

from app.core.config import settings
from app.core.redis import redis_manager
from app.core.database import database_service
from app.services.notification_service import side_effect_dispatcher

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/health", tags=["健康检查"])


@router.get("")
async def health_check():
    """基础健康检查接口"""
    return {
        "status": "healthy",
        "app_name": settings.app_name,
        "version": settings.app_version,
        "environment": settings.environment
    }


@router.get("/database")
async def database_health():
    """数据库与Redis连接健康检查"""
    health_status = {
        "postgresql": False,
        "redis": False,
        "overall": False,
        "details": {}
    }

    try:
        # 测试PostgreSQL连接
        pg_status = await database_service.health_check()
        health_status["postgresql"] = pg_status["status"] == "healthy"
        health_status["details"]["postgresql"] = pg_status["message"]

        # 测试Redis连接
        redis_status = await redis_manager.health_check()
        health_status["redis"] = redis_status["status"] == "healthy"
        health_status["details"]["redis"] = redis_status["message"]

        # 整体状态
        health_status["overall"] = all([
            health_status["postgresql"],
            health_status["redis"]
        ])

        if not health_status["overall"]:
            logger.warning("数据库连接检查部分失败", extra=health_status)
            return health_status

        logger.info("数据库连接检查全部通过")
        return health_status

    except Exception as e:
        logger.error(f"数据库健康检查异常: {str(e)}")
        raise HTTPException(
            status_code=503,
            detail={
                "error": "数据库连接失败",
                "message": str(e),
                "status": health_status
            }
        )


@router.get("/detailed")
async def detailed_health():
    """详细健康检查，包括各组件状态"""
    status = {
        "app": {
            "name": settings.app_name,
            "version": settings.app_version,
            "environment": settings.environment,
            "debug": settings.debug
        },
        "databases": {},
        "side_effects": {"pending": side_effect_dispatcher.pending},
        "overall": True
    }

    pg_status = await database_service.health_check()
    status["databases"]["postgresql"] = pg_status
    if pg_status["status"] != "healthy":
        status["overall"] = False

    # Redis状态
    try:
        if redis_manager.redis_pool:
            info = await redis_manager.redis_pool.info()
            status["databases"]["redis"] = {
                "status": "healthy",
                "version": info.get("redis_version"),
                "connected_clients": info.get("connected_clients"),
                "used_memory": info.get("used_memory_human")
            }
        else:
            status["databases"]["redis"] = {"status": "not_initialized"}
            status["overall"] = False
    except Exception as e:
        status["databases"]["redis"] = {"status": "error", "error": str(e)}
        status["overall"] = False

    return status
