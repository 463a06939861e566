"""
通知公告API路由
RESTful风格
"""

from datetime import datetime
from typing import Optional
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from core.config import get_settings
from core.database import get_db
from core.security import (
    get_current_user, get_optional_user, require_roles, TokenData,
    ROLE_FACULTY, ROLE_STAFF
)
from schemas import success

from .notice_schemas import (
    NoticeCreate, NoticeUpdate, NoticeFilter, CommentCreate, CommentUpdate,
    BulkActionRequest, NoticeType, NoticeCategory, NoticePriority, NoticeStatus,
    NoticeVisibility, AudienceRole, SortField, SortOrder
)
from .notice_services import NoticeService

router = APIRouter()
settings = get_settings()

# 角色门槛
can_author = require_roles(ROLE_FACULTY, ROLE_STAFF)
can_publish = require_roles(ROLE_FACULTY)


def page_params(
    page: int = Query(1, ge=1, description="页码"),
    limit: int = Query(
        settings.notice_page_size_default, ge=1, le=settings.notice_page_size_max, description="每页数量"
    ),
) -> dict:
    return {"page": page, "limit": limit}


def notice_filter(
    type: Optional[NoticeType] = Query(None, description="类型"),
    category: Optional[NoticeCategory] = Query(None, description="面向群体"),
    priority: Optional[NoticePriority] = Query(None, description="优先级"),
    status: Optional[NoticeStatus] = Query(None, description="状态"),
    visibility: Optional[NoticeVisibility] = Query(None, description="可见性"),
    author_id: Optional[int] = Query(None, description="作者ID"),
    featured: Optional[bool] = Query(None, description="是否精选"),
    pinned: Optional[bool] = Query(None, description="是否置顶"),
    start_date: Optional[datetime] = Query(None, description="发布时间起"),
    end_date: Optional[datetime] = Query(None, description="发布时间止"),
    search: Optional[str] = Query(None, min_length=2, max_length=100, description="关键词"),
    audience_role: Optional[AudienceRole] = Query(None, description="受众角色"),
    audience_department: Optional[str] = Query(None, description="受众院系"),
    sort_by: Optional[SortField] = Query(None, description="排序字段"),
    sort_order: SortOrder = Query(SortOrder.DESC, description="排序方向"),
    paging: dict = Depends(page_params),
) -> NoticeFilter:
    return NoticeFilter(
        type=type, category=category, priority=priority, status=status,
        visibility=visibility, author_id=author_id, featured=featured, pinned=pinned,
        start_date=start_date, end_date=end_date, search=search,
        audience_role=audience_role, audience_department=audience_department,
        sort_by=sort_by, sort_order=sort_order, **paging
    )


# ============ 通知列表 ============

@router.get("")
async def list_notices(
    filters: NoticeFilter = Depends(notice_filter),
    db: AsyncSession = Depends(get_db),
    user: Optional[TokenData] = Depends(get_optional_user)
):
    """获取通知列表（过滤、排序、分页）"""
    service = NoticeService(db)
    result = await service.list_notices(filters)
    return success(service.page_to_dict(result, user))


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_notice(
    data: NoticeCreate,
    db: AsyncSession = Depends(get_db),
    user: TokenData = Depends(can_author)
):
    """创建通知"""
    service = NoticeService(db)
    notice = await service.create(data, user)
    return success(service.to_info(notice, user), "通知创建成功")


# ============ 专题视图 ============

@router.get("/urgent")
async def list_urgent(
    paging: dict = Depends(page_params),
    db: AsyncSession = Depends(get_db),
    user: Optional[TokenData] = Depends(get_optional_user)
):
    """紧急且生效中的通知"""
    service = NoticeService(db)
    return success(service.page_to_dict(await service.list_urgent(**paging), user))


@router.get("/featured")
async def list_featured(
    paging: dict = Depends(page_params),
    db: AsyncSession = Depends(get_db),
    user: Optional[TokenData] = Depends(get_optional_user)
):
    """精选且生效中的通知"""
    service = NoticeService(db)
    return success(service.page_to_dict(await service.list_featured(**paging), user))


@router.get("/active")
async def list_active(
    paging: dict = Depends(page_params),
    db: AsyncSession = Depends(get_db),
    user: Optional[TokenData] = Depends(get_optional_user)
):
    """生效中的通知（置顶优先）"""
    service = NoticeService(db)
    return success(service.page_to_dict(await service.list_active(**paging), user))


@router.get("/bookmarked")
async def list_bookmarked(
    paging: dict = Depends(page_params),
    db: AsyncSession = Depends(get_db),
    user: TokenData = Depends(get_current_user)
):
    """我收藏的通知"""
    service = NoticeService(db)
    return success(service.page_to_dict(await service.list_bookmarked(user, **paging), user))


@router.get("/for-me")
async def list_for_me(
    paging: dict = Depends(page_params),
    db: AsyncSession = Depends(get_db),
    user: TokenData = Depends(get_current_user)
):
    """面向我的通知（按目标受众匹配）"""
    service = NoticeService(db)
    return success(service.page_to_dict(await service.list_for_user(user, **paging), user))


@router.get("/search")
async def search_notices(
    q: Optional[str] = Query(None, max_length=100, description="关键词"),
    filters: NoticeFilter = Depends(notice_filter),
    db: AsyncSession = Depends(get_db),
    user: Optional[TokenData] = Depends(get_optional_user)
):
    """全文检索已发布通知，默认按相关度排序"""
    service = NoticeService(db)
    result = await service.search(q, filters)
    return success(service.page_to_dict(result, user))


@router.get("/type/{notice_type}")
async def list_by_type(
    notice_type: NoticeType,
    category: Optional[NoticeCategory] = Query(None, description="面向群体"),
    paging: dict = Depends(page_params),
    db: AsyncSession = Depends(get_db),
    user: Optional[TokenData] = Depends(get_optional_user)
):
    """按类型获取已发布通知"""
    service = NoticeService(db)
    result = await service.list_by_type(
        notice_type.value, category.value if category else None, **paging
    )
    return success(service.page_to_dict(result, user))


@router.post("/bulk")
async def bulk_action(
    data: BulkActionRequest,
    db: AsyncSession = Depends(get_db),
    user: TokenData = Depends(can_publish)
):
    """批量操作（发布/归档/删除/置顶/精选）"""
    service = NoticeService(db)
    result = await service.bulk_action(data.notice_ids, data.action, user)
    return success(result.model_dump(), f"批量操作完成，成功 {result.modified_count} 条")


# ============ 单条通知 ============

@router.get("/{notice_id}")
async def get_notice(
    notice_id: int,
    db: AsyncSession = Depends(get_db),
    user: Optional[TokenData] = Depends(get_optional_user)
):
    """获取通知详情（登录用户计入浏览量）"""
    service = NoticeService(db)
    notice = await service.view(notice_id, user)
    return success(service.to_info(notice, user))


@router.put("/{notice_id}")
async def update_notice(
    notice_id: int,
    data: NoticeUpdate,
    db: AsyncSession = Depends(get_db),
    user: TokenData = Depends(can_author)
):
    """更新通知"""
    service = NoticeService(db)
    notice = await service.update(notice_id, data, user)
    return success(service.to_info(notice, user), "通知更新成功")


@router.delete("/{notice_id}")
async def delete_notice(
    notice_id: int,
    db: AsyncSession = Depends(get_db),
    user: TokenData = Depends(can_author)
):
    """删除通知"""
    service = NoticeService(db)
    await service.delete(notice_id, user)
    return success(message="通知已删除")


@router.api_route("/{notice_id}/publish", methods=["PUT", "PATCH"])
async def publish_notice(
    notice_id: int,
    db: AsyncSession = Depends(get_db),
    user: TokenData = Depends(can_publish)
):
    """发布通知"""
    service = NoticeService(db)
    notice = await service.publish(notice_id, user)
    return success(service.to_info(notice, user), "通知已发布")


@router.get("/{notice_id}/statistics")
async def notice_statistics(
    notice_id: int,
    db: AsyncSession = Depends(get_db),
    user: TokenData = Depends(can_author)
):
    """通知统计"""
    service = NoticeService(db)
    stats = await service.statistics(notice_id)
    return success(stats.model_dump())


@router.get("/{notice_id}/revisions")
async def notice_revisions(
    notice_id: int,
    db: AsyncSession = Depends(get_db),
    user: TokenData = Depends(get_current_user)
):
    """修订历史（作者或管理员）"""
    service = NoticeService(db)
    revisions = await service.revisions(notice_id, user)
    return success([r.model_dump() for r in revisions])


@router.post("/{notice_id}/share")
async def share_notice(notice_id: int, db: AsyncSession = Depends(get_db)):
    """记录分享"""
    service = NoticeService(db)
    return success({"shares": await service.record_share(notice_id)})


@router.post("/{notice_id}/download")
async def download_notice(notice_id: int, db: AsyncSession = Depends(get_db)):
    """记录附件下载"""
    service = NoticeService(db)
    return success({"downloads": await service.record_download(notice_id)})


# ============ 互动 ============

@router.post("/{notice_id}/like")
async def toggle_like(
    notice_id: int,
    db: AsyncSession = Depends(get_db),
    user: TokenData = Depends(get_current_user)
):
    """点赞/取消点赞"""
    service = NoticeService(db)
    result = await service.toggle_like(notice_id, user)
    return success(result, "点赞成功" if result["is_liked"] else "已取消点赞")


@router.post("/{notice_id}/bookmark")
async def toggle_bookmark(
    notice_id: int,
    db: AsyncSession = Depends(get_db),
    user: TokenData = Depends(get_current_user)
):
    """收藏/取消收藏"""
    service = NoticeService(db)
    result = await service.toggle_bookmark(notice_id, user)
    return success(result, "收藏成功" if result["is_bookmarked"] else "已取消收藏")


@router.post("/{notice_id}/comments", status_code=status.HTTP_201_CREATED)
async def add_comment(
    notice_id: int,
    data: CommentCreate,
    db: AsyncSession = Depends(get_db),
    user: TokenData = Depends(get_current_user)
):
    """发表评论"""
    service = NoticeService(db)
    result = await service.add_comment(notice_id, data.content, user)
    result["comment"] = result["comment"].model_dump()
    return success(result, "评论成功")


@router.put("/{notice_id}/comments/{comment_id}")
async def update_comment(
    notice_id: int,
    comment_id: int,
    data: CommentUpdate,
    db: AsyncSession = Depends(get_db),
    user: TokenData = Depends(get_current_user)
):
    """编辑评论"""
    service = NoticeService(db)
    result = await service.update_comment(notice_id, comment_id, data.content, user)
    result["comment"] = result["comment"].model_dump()
    return success(result, "评论已更新")


@router.delete("/{notice_id}/comments/{comment_id}")
async def delete_comment(
    notice_id: int,
    comment_id: int,
    db: AsyncSession = Depends(get_db),
    user: TokenData = Depends(get_current_user)
):
    """删除评论"""
    service = NoticeService(db)
    result = await service.delete_comment(notice_id, comment_id, user)
    return success(result, "评论已删除")
