"""
测试配置和 Fixtures
提供测试用的数据库会话、客户端和通用工具
"""

import os

# 立即设置测试环境变量，确保核心模块加载时使用测试配置
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("DEBUG", "true")

from datetime import timedelta
from typing import AsyncGenerator, Optional

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession

from core.database import Base, engine as global_engine, get_db
from core.database import async_session as TestSessionLocal
from core.events import event_bus
from core.security import TokenData, create_token
import models  # noqa: F401  强制加载核心模型以注册 Base.metadata
from models import User
from modules.notice.notice_models import Notice
from utils.timezone import utc_now
from main import app


# ==================== 测试夹具 (Fixtures) ====================

@pytest_asyncio.fixture(scope="function")
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """
    创建测试用数据库会话
    每个测试函数使用独立的内存库，并自动注入到 FastAPI 中
    """
    async with global_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session = TestSessionLocal()

    async def _get_test_db():
        yield session

    app.dependency_overrides[get_db] = _get_test_db

    try:
        yield session
    finally:
        await session.rollback()
        await session.close()
        app.dependency_overrides.clear()

        async with global_engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)
        # 释放连接，下一个测试在自己的事件循环中重新建立
        await global_engine.dispose()


@pytest.fixture
def db(db_session):
    """db_session 测试夹具的别名"""
    return db_session


@pytest_asyncio.fixture(scope="function")
async def client(db_session) -> AsyncGenerator[AsyncClient, None]:
    """创建异步测试客户端"""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture(autouse=True)
def clear_event_history():
    """事件总线历史在用例间隔离"""
    event_bus.clear_history()
    yield
    event_bus.clear_history()


@pytest_asyncio.fixture
async def admin_user(db_session) -> User:
    return await create_test_user(db_session, "admin", first_name="Ada", last_name="Admin")


@pytest_asyncio.fixture
async def faculty_user(db_session) -> User:
    return await create_test_user(
        db_session, "faculty", first_name="Frank", last_name="Faculty", department="Physics"
    )


@pytest_asyncio.fixture
async def staff_user(db_session) -> User:
    return await create_test_user(db_session, "staff", first_name="Sam", last_name="Staff")


@pytest_asyncio.fixture
async def student_user(db_session) -> User:
    return await create_test_user(
        db_session, "student", first_name="Stella", last_name="Student",
        department="Physics", year_level="first"
    )


# ==================== 工具函数 ====================

_user_seq = 0


async def create_test_user(session: AsyncSession, role: str = "student", **fields) -> User:
    """创建测试用户"""
    global _user_seq
    _user_seq += 1
    user = User(
        email=fields.pop("email", f"{role}{_user_seq}@campus.test"),
        first_name=fields.pop("first_name", "Test"),
        last_name=fields.pop("last_name", f"User{_user_seq}"),
        role=role,
        is_active=fields.pop("is_active", True),
        **fields
    )
    session.add(user)
    await session.commit()
    await session.refresh(user)
    return user


def token_for(user: User, role: Optional[str] = None) -> str:
    return create_token(TokenData(user_id=user.id, role=role or user.role, email=user.email))


def auth_headers(user: User, role: Optional[str] = None) -> dict:
    """生成 Bearer 认证请求头"""
    return {"Authorization": f"Bearer {token_for(user, role)}"}


async def create_test_notice(session: AsyncSession, author: User, **fields) -> Notice:
    """直接写库创建通知（绕过接口校验，便于构造边界数据）"""
    now = utc_now()
    publish_date = fields.pop("publish_date", now - timedelta(hours=1))
    notice = Notice(
        title=fields.pop("title", "Library opening hours"),
        content=fields.pop("content", "The main library extends its opening hours during exams."),
        summary=fields.pop("summary", None),
        type=fields.pop("type", "announcement"),
        category=fields.pop("category", "all"),
        priority=fields.pop("priority", "medium"),
        status=fields.pop("status", "published"),
        visibility=fields.pop("visibility", "public"),
        publish_date=publish_date,
        expiry_date=fields.pop("expiry_date", publish_date + timedelta(days=30)),
        effective_date=fields.pop("effective_date", publish_date),
        author_id=author.id,
        author_name=author.full_name,
        author_email=author.email,
        author_role=author.role,
        last_modified_by=author.id,
        **fields
    )
    session.add(notice)
    await session.commit()
    await session.refresh(notice)
    return notice
