"""
工作单元
一次下单/状态变更/库存操作对应一个UnitOfWork：在顶层调用边界提交，任何异常都回滚
"""

import logging
from typing import Awaitable, Callable, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

logger = logging.getLogger(__name__)

AfterCommitHook = Callable[[], Awaitable[None]]


class UnitOfWork:
    """显式的事务边界"""

    def __init__(self, session_maker: async_sessionmaker):
        self.session_maker = session_maker
        self.session: Optional[AsyncSession] = None
        self._after_commit: List[AfterCommitHook] = []
        self.committed = False

    async def __aenter__(self) -> "UnitOfWork":
        self.session = self.session_maker()
        self._after_commit = []
        self.committed = False
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        try:
            if exc_type is None:
                await self.session.commit()
                self.committed = True
            else:
                await self.session.rollback()
                logger.info(f"工作单元已回滚: {exc_type.__name__}")
        finally:
            await self.session.close()

    def after_commit(self, hook: AfterCommitHook) -> None:
        """注册提交成功后才执行的副作用（通知、邮件）"""
        self._after_commit.append(hook)

    def pending_hooks(self) -> List[AfterCommitHook]:
        """取出已注册的副作用，只有提交成功才返回"""
        if not self.committed:
            return []
        hooks, self._after_commit = self._after_commit, []
        return hooks
