import redis.asyncio as aioredis
import json
from typing import Optional, Union
from app.core.config import settings
import structlog

"redis连接管理器：缓存与通知频道共用一个连接池"

logger = structlog.get_logger()


class RedisManager:
    """Redis连接管理器"""

    def __init__(self):
        self.redis_pool: Optional[aioredis.Redis] = None

    async def init_redis(self) -> None:
        """初始化Redis连接池"""
        try:
            self.redis_pool = await aioredis.from_url(
                settings.redis_url_computed,
                encoding="utf-8",
                decode_responses=True,
                max_connections=20,
                retry_on_timeout=True
            )
            # 测试连接
            await self.redis_pool.ping()
            logger.info("Redis连接初始化成功")
        except Exception as e:
            logger.error("Redis连接初始化失败", error=str(e))
            raise

    async def close_redis(self) -> None:
        """关闭Redis连接"""
        if self.redis_pool:
            await self.redis_pool.close()
            self.redis_pool = None
            logger.info("Redis连接已关闭")

    async def publish(self, channel: str, message: Union[str, dict, list]) -> int:
        """向频道发布消息，返回收到消息的订阅者数量"""
        if self.redis_pool is None:
            logger.warning("Redis未初始化，消息未发布", channel=channel)
            return 0
        try:
            if isinstance(message, (dict, list)):
                message = json.dumps(message, ensure_ascii=False, default=str)
            return await self.redis_pool.publish(channel, message)
        except Exception as e:
            logger.error("Redis发布消息失败", channel=channel, error=str(e))
            return 0

    async def health_check(self) -> dict:
        """Redis健康检查"""
        if self.redis_pool is None:
            return {"status": "error", "message": "Redis未初始化"}
        try:
            await self.redis_pool.ping()
            return {"status": "healthy", "message": "Redis连接正常"}
        except Exception as e:
            return {"status": "error", "message": f"Redis连接失败: {str(e)}"}


# 全局Redis管理器实例
redis_manager = RedisManager()


def get_redis_client():
    """获取Redis客户端实例"""
    return redis_manager.redis_pool
