"""
统一分页工具
提供标准化的分页查询功能
"""

import math
from typing import List, Any, Callable, Optional
from pydantic import BaseModel, ConfigDict, Field

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession


class PageResult(BaseModel):
    """分页结果"""
    items: List[Any] = Field(description="数据列表")
    total: int = Field(description="总记录数")
    page: int = Field(description="当前页码")
    limit: int = Field(description="每页数量")
    pages: int = Field(description="总页数")
    has_next: bool = Field(description="是否有下一页")
    has_prev: bool = Field(description="是否有上一页")

    model_config = ConfigDict(arbitrary_types_allowed=True)

    @classmethod
    def create(
        cls,
        items: List[Any],
        total: int,
        page: int,
        limit: int
    ) -> "PageResult":
        """创建分页结果"""
        pages = math.ceil(total / limit) if limit > 0 else 0
        return cls(
            items=items,
            total=total,
            page=page,
            limit=limit,
            pages=pages,
            has_next=page < pages,
            has_prev=page > 1
        )

    def to_dict(self, items_key: str = "items") -> dict:
        """转换为字典（用于API响应）"""
        return {
            items_key: self.items,
            "pagination": {
                "page": self.page,
                "limit": self.limit,
                "total": self.total,
                "pages": self.pages,
                "has_next": self.has_next,
                "has_prev": self.has_prev
            }
        }


async def paginate(
    db: AsyncSession,
    query,
    page: int = 1,
    limit: int = 10,
    transformer: Optional[Callable] = None
) -> PageResult:
    """
    通用分页查询

    Args:
        db: 数据库会话
        query: SQLAlchemy select 查询（已包含过滤与排序）
        page: 页码（从1开始）
        limit: 每页数量
        transformer: 可选的数据转换函数，用于将ORM对象转换为字典或其他格式

    Usage:
        query = select(Notice).where(Notice.status == "published")
        result = await paginate(db, query, page=1, limit=10)
    """
    count_query = select(func.count()).select_from(query.order_by(None).subquery())
    total = (await db.execute(count_query)).scalar() or 0

    offset = (page - 1) * limit
    result = await db.execute(query.offset(offset).limit(limit))
    items = list(result.scalars().unique().all())

    if transformer:
        items = [transformer(item) for item in items]

    return PageResult.create(items=items, total=total, page=page, limit=limit)
