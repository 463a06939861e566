"""
数据库连接管理
提供异步数据库连接和会话管理
"""

import logging
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import StaticPool
from sqlalchemy import event
from typing import AsyncGenerator

from .config import get_settings

logger = logging.getLogger(__name__)
settings = get_settings()


def _build_engine():
    """根据配置创建异步引擎"""
    if settings.is_sqlite:
        # SQLite（测试/本地）：内存库需共享同一连接
        sqlite_engine = create_async_engine(
            settings.db_url,
            echo=False,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )

        @event.listens_for(sqlite_engine.sync_engine, "connect")
        def _enable_sqlite_fk(dbapi_connection, connection_record):
            """SQLite 默认不启用外键约束，级联删除依赖它"""
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

        return sqlite_engine

    return create_async_engine(
        settings.db_url,
        echo=False,  # 禁用 SQL 详细输出，避免日志过多
        pool_pre_ping=True,
        pool_size=10,
        max_overflow=20,
        connect_args={"init_command": "SET time_zone = '+00:00'"},
    )


engine = _build_engine()

# 会话工厂
async_session = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False
)


class Base(DeclarativeBase):
    """模型基类"""
    pass


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """获取数据库会话（依赖注入用）"""
    async with async_session() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


async def init_db():
    """初始化数据库（创建缺失的表）"""
    # 确保所有模型已注册到 Base.metadata
    import models  # noqa: F401
    import modules.notice.notice_models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("数据库表初始化完成")


async def close_db():
    """关闭数据库连接"""
    await engine.dispose()
