# -*- coding: utf-8 -*-
"""
通知公告模块 - 业务逻辑服务

生命周期：draft -> published -> archived/expired，删除为物理删除
每次修改（含点赞/收藏/评论）都会使 version 加 1，并追加一条修订记录
浏览/分享/下载计数走原子自增，不改变版本号
"""

import logging
from datetime import datetime, timedelta
from typing import Optional, List, Dict, Any

from sqlalchemy import select, update, delete, or_, and_, case, not_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from core.config import get_settings
from core.errors import (
    ErrorCode, AuthException, BusinessException, ConflictException,
    NotFoundException, PermissionException, ValidationException
)
from core.events import event_bus, Event, Events
from core.pagination import paginate, PageResult
from core.security import TokenData, ROLE_ADMIN
from models import User
from utils.timezone import utc_now, to_utc, days_since

from .notice_models import (
    Notice, NoticeLike, NoticeBookmark, NoticeComment, NoticeAudience,
    NoticeRevision, NoticeView
)
from .notice_schemas import (
    NoticeCreate, NoticeUpdate, NoticeFilter, NoticeInfo, NoticeStatus,
    TargetAudience, CommentInfo, RevisionInfo, NoticeStatisticsInfo,
    BulkAction, BulkActionResult, BulkItemResult, SortField, SortOrder
)

logger = logging.getLogger(__name__)
settings = get_settings()

EVENT_SOURCE = "notice"

# 优先级排序权重
PRIORITY_RANK = {"low": 1, "medium": 2, "high": 3, "urgent": 4}

# 受众字段 -> 存储维度
AUDIENCE_FIELDS = {
    "departments": "department",
    "roles": "role",
    "users": "user",
    "year_levels": "year_level",
}

# 直接覆盖的标量字段
SCALAR_FIELDS = ("title", "content", "summary", "type", "category", "priority", "status", "visibility", "language")
JSON_FIELDS = ("attachments", "images", "tags", "related_notices", "contact_info", "location")


def _enum_value(value):
    return getattr(value, "value", value)


def _dump_json(value):
    if value is None:
        return None
    if isinstance(value, list):
        return [item.model_dump(mode="json") if hasattr(item, "model_dump") else item for item in value]
    return value.model_dump(mode="json", exclude_none=True)


def validate_notice_dates(
    publish_date: datetime,
    expiry_date: Optional[datetime],
    effective_date: Optional[datetime]
):
    """过期时间必须晚于发布时间，生效时间不得早于发布时间"""
    publish_date = to_utc(publish_date)
    if expiry_date is not None and to_utc(expiry_date) <= publish_date:
        raise ValidationException(
            "过期时间必须晚于发布时间",
            errors=[{"field": "expiry_date", "message": "必须晚于 publish_date"}]
        )
    if effective_date is not None and to_utc(effective_date) < publish_date:
        raise ValidationException(
            "生效时间不能早于发布时间",
            errors=[{"field": "effective_date", "message": "不能早于 publish_date"}]
        )


def active_conditions(now: Optional[datetime] = None) -> list:
    """生效中：已发布、已到发布时间且未过期"""
    now = now or utc_now()
    return [
        Notice.status == NoticeStatus.PUBLISHED.value,
        Notice.publish_date <= now,
        or_(Notice.expiry_date.is_(None), Notice.expiry_date > now),
    ]


def _audience_exists(kinds, value: Optional[str] = None):
    stmt = select(NoticeAudience.id).where(NoticeAudience.notice_id == Notice.id)
    if isinstance(kinds, str):
        stmt = stmt.where(NoticeAudience.kind == kinds)
    else:
        stmt = stmt.where(NoticeAudience.kind.in_(kinds))
    if value is not None:
        stmt = stmt.where(NoticeAudience.value == value)
    return stmt.exists()


def audience_match_condition(profile: Dict[str, Any]):
    """
    受众匹配条件

    - 未设置任何受众：所有人可见
    - 在指定用户名单中：可见
    - 设置了角色/院系/年级：各维度均需匹配，未设置的维度视为全部匹配
    """
    def dimension(kind: str, value):
        if value is None:
            return not_(_audience_exists(kind))
        return or_(not_(_audience_exists(kind)), _audience_exists(kind, str(value)))

    group_kinds = ("role", "department", "year_level")
    return or_(
        not_(_audience_exists(tuple(AUDIENCE_FIELDS.values()))),
        _audience_exists("user", str(profile["id"])),
        and_(
            _audience_exists(group_kinds),
            dimension("role", profile.get("role")),
            dimension("department", profile.get("department")),
            dimension("year_level", profile.get("year_level")),
        ),
    )


class UserDirectory:
    """用户目录查询（作者/评论人快照来源）"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_profile(self, user_id: int) -> Optional[Dict[str, Any]]:
        result = await self.db.execute(select(User).where(User.id == user_id))
        user = result.scalar_one_or_none()
        if not user or not user.is_active:
            return None
        return {
            "id": user.id,
            "name": user.full_name,
            "email": user.email,
            "role": user.role,
            "department": user.department,
            "year_level": user.year_level,
        }

    async def require_profile(self, user_id: int) -> Dict[str, Any]:
        profile = await self.get_profile(user_id)
        if profile is None:
            logger.warning(f"用户 {user_id} 不存在或已禁用")
            raise AuthException(message="用户不存在或已被禁用")
        return profile


class NoticeService:
    """通知服务"""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.directory = UserDirectory(db)

    # ==================== 内部工具 ====================

    async def _find(self, notice_id: int) -> Optional[Notice]:
        stmt = (
            select(Notice)
            .where(Notice.id == notice_id)
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_notice(self, notice_id: int) -> Notice:
        notice = await self._find(notice_id)
        if not notice:
            raise NotFoundException("通知", notice_id, code=ErrorCode.NOTICE_NOT_FOUND)
        return notice

    def _ensure_owner(self, notice: Notice, user: TokenData, action: str):
        if notice.author_id != user.user_id and user.role != ROLE_ADMIN:
            logger.warning(f"用户 {user.user_id} 无权{action}通知 {notice.id}")
            raise PermissionException(f"只有作者或管理员可以{action}该通知")

    def _sync_audience(self, notice: Notice, audience: Optional[TargetAudience]):
        """按差异增删受众行，保持 (notice_id, kind, value) 唯一"""
        wanted = set()
        if audience is not None:
            for field, kind in AUDIENCE_FIELDS.items():
                for value in getattr(audience, field):
                    wanted.add((kind, str(_enum_value(value))))

        for item in list(notice.audiences):
            key = (item.kind, item.value)
            if key in wanted:
                wanted.discard(key)
            else:
                notice.audiences.remove(item)

        for kind, value in sorted(wanted):
            notice.audiences.append(NoticeAudience(kind=kind, value=value))

    async def _record_revision(self, notice: Notice, user_id: int, changes: str):
        """
        追加修订记录（须在通知 UPDATE 已 flush 之后调用）

        超出保留条数的旧记录在写入时裁剪
        """
        self.db.add(NoticeRevision(
            notice_id=notice.id,
            version=notice.version,
            modified_by=user_id,
            modified_at=utc_now(),
            changes=changes[:500],
        ))
        await self.db.flush()

        keep = settings.notice_revision_history_limit
        stale_ids = (
            select(NoticeRevision.id)
            .where(NoticeRevision.notice_id == notice.id)
            .order_by(NoticeRevision.version.desc(), NoticeRevision.id.desc())
            .offset(keep)
        )
        stale = [row[0] for row in (await self.db.execute(stale_ids)).all()]
        if stale:
            await self.db.execute(delete(NoticeRevision).where(NoticeRevision.id.in_(stale)))

    async def _touch(self, notice: Notice, user_id: int, changes: str):
        """标记修改人并写入：version +1，追加一条修订"""
        notice.last_modified_by = user_id
        notice.updated_at = utc_now()
        await self.db.flush()
        await self._record_revision(notice, user_id, changes)

    def _apply_publish(self, notice: Notice, now: datetime):
        expiry = to_utc(notice.expiry_date)
        if expiry is not None and expiry <= now:
            raise ValidationException("通知已过期，请先调整过期时间再发布")
        notice.status = NoticeStatus.PUBLISHED.value
        notice.publish_date = now
        effective = to_utc(notice.effective_date)
        if effective is None or effective < now:
            notice.effective_date = now

    async def _emit(self, name: str, notice: Notice, user_id: int, **extra):
        data = {"notice_id": notice.id, "title": notice.title, "user_id": user_id}
        data.update(extra)
        await event_bus.publish(Event(name=name, source=EVENT_SOURCE, data=data))

    async def _emit_published(self, notice: Notice, user_id: int):
        if notice.send_notification:
            await self._emit(
                Events.NOTICE_PUBLISHED, notice, user_id,
                priority=notice.priority,
                target_audience=notice.target_audience,
            )

    async def _commit_engagement(self, notice: Notice, user_id: int, changes: str):
        """
        提交互动写入：version +1 并追加一条修订

        唯一约束冲突说明同一用户并发操作；版本冲突由 StaleDataError 抛出
        """
        try:
            await self._touch(notice, user_id, changes)
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise ConflictException("操作过于频繁，请稍后重试")

    # ==================== 生命周期 ====================

    async def create(self, data: NoticeCreate, user: TokenData) -> Notice:
        """创建通知，作者信息取自用户目录快照"""
        author = await self.directory.require_profile(user.user_id)

        now = utc_now()
        publish_date = to_utc(data.publish_date) or now
        expiry_date = to_utc(data.expiry_date) or (
            publish_date + timedelta(days=settings.notice_default_expiry_days)
        )
        effective_date = to_utc(data.effective_date) or publish_date
        validate_notice_dates(publish_date, expiry_date, effective_date)

        notice = Notice(
            title=data.title,
            content=data.content,
            summary=data.summary,
            type=data.type.value,
            category=data.category.value,
            priority=data.priority.value,
            status=data.status.value,
            visibility=data.visibility.value,
            publish_date=publish_date,
            expiry_date=expiry_date,
            effective_date=effective_date,
            author_id=author["id"],
            author_name=author["name"],
            author_email=author["email"],
            author_role=author["role"],
            attachments=_dump_json(data.attachments),
            images=_dump_json(data.images),
            tags=data.tags,
            related_notices=data.related_notices,
            contact_info=_dump_json(data.contact_info),
            location=_dump_json(data.location),
            language=data.language,
            last_modified_by=author["id"],
            created_at=now,
            updated_at=now,
            **data.settings.model_dump(),
        )
        self._sync_audience(notice, data.target_audience)
        self.db.add(notice)
        await self.db.commit()

        notice = await self.get_notice(notice.id)
        logger.info(f"用户 {user.user_id} 创建通知: {notice.id} {notice.title}")
        await self._emit(Events.NOTICE_CREATED, notice, user.user_id)
        if notice.status == NoticeStatus.PUBLISHED.value:
            await self._emit_published(notice, user.user_id)
        return notice

    async def update(self, notice_id: int, data: NoticeUpdate, user: TokenData) -> Notice:
        """更新通知：合并字段、重新校验日期、version +1 并追加一条修订"""
        notice = await self.get_notice(notice_id)
        self._ensure_owner(notice, user, "修改")

        if data.version is not None and data.version != notice.version:
            raise ConflictException(
                code=ErrorCode.NOTICE_VERSION_CONFLICT,
                data={"current_version": notice.version}
            )

        payload = data.model_dump(exclude_unset=True)
        changed: List[str] = []

        publish_date = to_utc(data.publish_date) if "publish_date" in payload else notice.publish_date
        if publish_date is None:
            raise ValidationException("发布时间不能为空")
        expiry_date = to_utc(data.expiry_date) if "expiry_date" in payload else notice.expiry_date
        effective_date = to_utc(data.effective_date) if "effective_date" in payload else notice.effective_date
        validate_notice_dates(publish_date, expiry_date, effective_date)

        for field in SCALAR_FIELDS:
            if field in payload:
                value = _enum_value(getattr(data, field))
                if field in ("title", "content") and value is None:
                    raise ValidationException(f"{field} 不能为空")
                if field in ("type", "category", "priority", "status", "visibility", "language") and value is None:
                    continue
                if getattr(notice, field) != value:
                    setattr(notice, field, value)
                    changed.append(field)

        for field, value in (
            ("publish_date", publish_date),
            ("expiry_date", expiry_date),
            ("effective_date", effective_date),
        ):
            if field in payload and to_utc(getattr(notice, field)) != value:
                setattr(notice, field, value)
                changed.append(field)

        for field in JSON_FIELDS:
            if field in payload:
                value = _dump_json(getattr(data, field))
                if field in ("attachments", "images", "tags", "related_notices") and value is None:
                    value = []
                if getattr(notice, field) != value:
                    setattr(notice, field, value)
                    changed.append(field)

        if data.settings is not None:
            for key, value in data.settings.model_dump(exclude_none=True).items():
                if getattr(notice, key) != value:
                    setattr(notice, key, value)
                    changed.append(key)

        if "target_audience" in payload:
            before = notice.target_audience
            self._sync_audience(notice, data.target_audience)
            if notice.target_audience != before:
                changed.append("target_audience")

        note = data.change_note or (f"更新字段: {', '.join(changed)}" if changed else "保存通知")
        await self._touch(notice, user.user_id, note)
        await self.db.commit()

        notice = await self.get_notice(notice_id)
        logger.info(f"用户 {user.user_id} 更新通知 {notice_id} -> v{notice.version}: {note}")
        await self._emit(Events.NOTICE_UPDATED, notice, user.user_id, version=notice.version, changes=changed)
        return notice

    async def publish(self, notice_id: int, user: TokenData) -> Notice:
        """发布通知：发布时间记为当前时间"""
        notice = await self.get_notice(notice_id)
        self._ensure_owner(notice, user, "发布")

        if notice.status == NoticeStatus.PUBLISHED.value:
            raise BusinessException(ErrorCode.NOTICE_ALREADY_PUBLISHED, "通知已发布")

        self._apply_publish(notice, utc_now())
        await self._touch(notice, user.user_id, "发布通知")
        await self.db.commit()

        notice = await self.get_notice(notice_id)
        logger.info(f"用户 {user.user_id} 发布通知 {notice_id}")
        await self._emit_published(notice, user.user_id)
        return notice

    async def delete(self, notice_id: int, user: TokenData):
        """物理删除通知及其互动、受众与修订记录"""
        notice = await self.get_notice(notice_id)
        self._ensure_owner(notice, user, "删除")

        title = notice.title
        await self.db.delete(notice)
        await self.db.commit()

        logger.info(f"用户 {user.user_id} 删除通知 {notice_id}: {title}")
        await event_bus.publish(Event(
            name=Events.NOTICE_DELETED,
            source=EVENT_SOURCE,
            data={"notice_id": notice_id, "title": title, "user_id": user.user_id}
        ))

    # ==================== 浏览与计数 ====================

    async def view(self, notice_id: int, viewer: Optional[TokenData] = None) -> Notice:
        """获取通知详情；已登录用户计入浏览量与独立访客"""
        notice = await self.get_notice(notice_id)
        if viewer is None:
            return notice

        first_view = (await self.db.execute(
            select(NoticeView.id).where(
                NoticeView.notice_id == notice_id,
                NoticeView.user_id == viewer.user_id
            )
        )).first() is None

        values = {"views": Notice.views + 1}
        if first_view:
            self.db.add(NoticeView(notice_id=notice_id, user_id=viewer.user_id, first_viewed_at=utc_now()))
            values["unique_views"] = Notice.unique_views + 1

        await self._increment(notice_id, **values)
        try:
            await self.db.commit()
        except IntegrityError:
            # 同一用户并发首访，独立访客已由另一请求计入
            await self.db.rollback()
            await self._increment(notice_id, views=Notice.views + 1)
            await self.db.commit()

        return await self.get_notice(notice_id)

    async def _increment(self, notice_id: int, **values):
        """原子自增计数（不经过版本校验，不改变 version）"""
        stmt = (
            update(Notice)
            .where(Notice.id == notice_id)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        await self.db.execute(stmt)

    async def record_share(self, notice_id: int) -> int:
        await self.get_notice(notice_id)
        await self._increment(notice_id, shares=Notice.shares + 1)
        await self.db.commit()
        notice = await self.get_notice(notice_id)
        return notice.shares

    async def record_download(self, notice_id: int) -> int:
        await self.get_notice(notice_id)
        await self._increment(notice_id, downloads=Notice.downloads + 1)
        await self.db.commit()
        notice = await self.get_notice(notice_id)
        return notice.downloads

    # ==================== 互动 ====================

    async def toggle_like(self, notice_id: int, user: TokenData) -> Dict[str, Any]:
        """点赞/取消点赞"""
        notice = await self.get_notice(notice_id)
        existing = next((like for like in notice.likes if like.user_id == user.user_id), None)
        if existing:
            notice.likes.remove(existing)
            liked = False
        else:
            notice.likes.append(NoticeLike(user_id=user.user_id, liked_at=utc_now()))
            liked = True
        await self._commit_engagement(notice, user.user_id, "点赞" if liked else "取消点赞")

        logger.info(f"用户 {user.user_id} {'点赞' if liked else '取消点赞'}通知 {notice_id}")
        return {"is_liked": liked, "like_count": len(notice.likes)}

    async def toggle_bookmark(self, notice_id: int, user: TokenData) -> Dict[str, Any]:
        """收藏/取消收藏"""
        notice = await self.get_notice(notice_id)
        existing = next((b for b in notice.bookmarks if b.user_id == user.user_id), None)
        if existing:
            notice.bookmarks.remove(existing)
            bookmarked = False
        else:
            notice.bookmarks.append(NoticeBookmark(user_id=user.user_id, bookmarked_at=utc_now()))
            bookmarked = True
        await self._commit_engagement(notice, user.user_id, "收藏" if bookmarked else "取消收藏")

        logger.info(f"用户 {user.user_id} {'收藏' if bookmarked else '取消收藏'}通知 {notice_id}")
        return {"is_bookmarked": bookmarked, "bookmark_count": len(notice.bookmarks)}

    def _find_comment(self, notice: Notice, comment_id: int) -> NoticeComment:
        comment = next((c for c in notice.comments if c.id == comment_id), None)
        if comment is None:
            raise NotFoundException("评论", comment_id, code=ErrorCode.NOTICE_COMMENT_NOT_FOUND)
        return comment

    def _ensure_comment_owner(self, comment: NoticeComment, user: TokenData):
        if comment.user_id != user.user_id and user.role != ROLE_ADMIN:
            logger.warning(f"用户 {user.user_id} 无权修改评论 {comment.id}")
            raise PermissionException("只有评论者或管理员可以修改该评论")

    async def add_comment(self, notice_id: int, content: str, user: TokenData) -> Dict[str, Any]:
        notice = await self.get_notice(notice_id)
        if not notice.allow_comments:
            raise PermissionException("该通知不允许评论", code=ErrorCode.NOTICE_COMMENTS_DISABLED)

        profile = await self.directory.require_profile(user.user_id)
        comment = NoticeComment(
            user_id=user.user_id,
            user_name=profile["name"],
            content=content,
            created_at=utc_now(),
            is_edited=False,
        )
        notice.comments.append(comment)
        await self._commit_engagement(notice, user.user_id, "新增评论")

        logger.info(f"用户 {user.user_id} 评论通知 {notice_id}")
        await self._emit(Events.NOTICE_COMMENT_ADDED, notice, user.user_id, comment_id=comment.id)
        return {"comment": CommentInfo.model_validate(comment), "comment_count": len(notice.comments)}

    async def update_comment(
        self, notice_id: int, comment_id: int, content: str, user: TokenData
    ) -> Dict[str, Any]:
        notice = await self.get_notice(notice_id)
        comment = self._find_comment(notice, comment_id)
        self._ensure_comment_owner(comment, user)

        comment.content = content
        comment.is_edited = True
        comment.edited_at = utc_now()
        await self._commit_engagement(notice, user.user_id, f"编辑评论 {comment_id}")

        logger.info(f"用户 {user.user_id} 编辑评论 {comment_id}")
        return {"comment": CommentInfo.model_validate(comment), "comment_count": len(notice.comments)}

    async def delete_comment(self, notice_id: int, comment_id: int, user: TokenData) -> Dict[str, Any]:
        notice = await self.get_notice(notice_id)
        comment = self._find_comment(notice, comment_id)
        self._ensure_comment_owner(comment, user)

        notice.comments.remove(comment)
        await self._commit_engagement(notice, user.user_id, f"删除评论 {comment_id}")

        logger.info(f"用户 {user.user_id} 删除评论 {comment_id}")
        return {"comment_count": len(notice.comments)}

    # ==================== 查询 ====================

    def _build_conditions(self, filters: NoticeFilter) -> list:
        conditions = []
        for field in ("type", "category", "priority", "status", "visibility"):
            value = getattr(filters, field)
            if value is not None:
                conditions.append(getattr(Notice, field) == value.value)
        if filters.author_id is not None:
            conditions.append(Notice.author_id == filters.author_id)
        if filters.featured is not None:
            conditions.append(Notice.featured == filters.featured)
        if filters.pinned is not None:
            conditions.append(Notice.pin_to_top == filters.pinned)
        if filters.start_date is not None:
            conditions.append(Notice.publish_date >= to_utc(filters.start_date))
        if filters.end_date is not None:
            conditions.append(Notice.publish_date <= to_utc(filters.end_date))
        if filters.audience_role is not None:
            conditions.append(_audience_exists("role", filters.audience_role.value))
        if filters.audience_department:
            conditions.append(_audience_exists("department", filters.audience_department))

        words = self._search_words(filters.search)
        if words:
            conditions.append(or_(*[
                or_(
                    Notice.title.icontains(w, autoescape=True),
                    Notice.content.icontains(w, autoescape=True),
                    Notice.summary.icontains(w, autoescape=True),
                )
                for w in words
            ]))
        return conditions

    @staticmethod
    def _search_words(term: Optional[str]) -> List[str]:
        return [w for w in (term or "").split() if w]

    @staticmethod
    def _relevance(words: List[str]):
        """相关度：标题命中 3 分、摘要 2 分、正文 1 分，按词累加"""
        score = None
        for w in words:
            part = (
                case((Notice.title.icontains(w, autoescape=True), 3), else_=0)
                + case((Notice.summary.icontains(w, autoescape=True), 2), else_=0)
                + case((Notice.content.icontains(w, autoescape=True), 1), else_=0)
            )
            score = part if score is None else score + part
        return score

    def _ordering(self, filters: NoticeFilter) -> list:
        words = self._search_words(filters.search)
        if filters.sort_by is None and words:
            return [self._relevance(words).desc(), Notice.publish_date.desc(), Notice.id.desc()]

        sort_by = filters.sort_by or SortField.PUBLISH_DATE
        if sort_by == SortField.PRIORITY:
            column = case(PRIORITY_RANK, value=Notice.priority, else_=0)
        else:
            column = getattr(Notice, sort_by.value)
        if filters.sort_order == SortOrder.ASC:
            return [column.asc(), Notice.id.asc()]
        return [column.desc(), Notice.id.desc()]

    async def _page(self, conditions: list, ordering: list, page: int, limit: int) -> PageResult:
        query = (
            select(Notice)
            .where(*conditions)
            .order_by(*ordering)
            .execution_options(populate_existing=True)
        )
        return await paginate(self.db, query, page=page, limit=limit)

    async def list_notices(self, filters: NoticeFilter) -> PageResult:
        """过滤、排序、分页查询"""
        return await self._page(
            self._build_conditions(filters), self._ordering(filters), filters.page, filters.limit
        )

    async def search(self, term: str, filters: NoticeFilter) -> PageResult:
        """全文检索（仅已发布通知）"""
        if not term or not term.strip():
            raise ValidationException("搜索关键词不能为空")
        filters = filters.model_copy(update={"search": term.strip(), "status": NoticeStatus.PUBLISHED})
        return await self.list_notices(filters)

    async def list_urgent(self, page: int = 1, limit: int = 10) -> PageResult:
        conditions = [Notice.priority == "urgent", *active_conditions()]
        return await self._page(conditions, [Notice.publish_date.desc(), Notice.id.desc()], page, limit)

    async def list_featured(self, page: int = 1, limit: int = 10) -> PageResult:
        conditions = [Notice.featured.is_(True), *active_conditions()]
        return await self._page(conditions, [Notice.publish_date.desc(), Notice.id.desc()], page, limit)

    async def list_active(self, page: int = 1, limit: int = 10) -> PageResult:
        """生效中通知：置顶优先，其次按发布时间倒序"""
        ordering = [Notice.pin_to_top.desc(), Notice.publish_date.desc(), Notice.id.desc()]
        return await self._page(active_conditions(), ordering, page, limit)

    async def list_by_type(
        self, notice_type: str, category: Optional[str] = None, page: int = 1, limit: int = 10
    ) -> PageResult:
        conditions = [Notice.type == notice_type, Notice.status == NoticeStatus.PUBLISHED.value]
        if category:
            conditions.append(Notice.category == category)
        return await self._page(conditions, [Notice.publish_date.desc(), Notice.id.desc()], page, limit)

    async def list_bookmarked(self, user: TokenData, page: int = 1, limit: int = 10) -> PageResult:
        bookmarked_ids = select(NoticeBookmark.notice_id).where(NoticeBookmark.user_id == user.user_id)
        conditions = [Notice.id.in_(bookmarked_ids), Notice.status == NoticeStatus.PUBLISHED.value]
        return await self._page(conditions, [Notice.publish_date.desc(), Notice.id.desc()], page, limit)

    async def list_for_user(self, user: TokenData, page: int = 1, limit: int = 10) -> PageResult:
        """面向当前用户的生效通知（按受众匹配）"""
        profile = await self.directory.require_profile(user.user_id)
        conditions = [*active_conditions(), audience_match_condition(profile)]
        ordering = [Notice.pin_to_top.desc(), Notice.publish_date.desc(), Notice.id.desc()]
        return await self._page(conditions, ordering, page, limit)

    # ==================== 统计与历史 ====================

    async def statistics(self, notice_id: int) -> NoticeStatisticsInfo:
        notice = await self.get_notice(notice_id)
        return NoticeStatisticsInfo(
            views=notice.views or 0,
            unique_views=notice.unique_views or 0,
            downloads=notice.downloads or 0,
            shares=notice.shares or 0,
            likes=notice.like_count,
            comments=notice.comment_count,
            bookmarks=notice.bookmark_count,
            is_active=notice.is_active,
            is_expired=notice.is_expired,
            days_since_published=max(days_since(notice.publish_date), 0),
        )

    async def revisions(self, notice_id: int, user: TokenData) -> List[RevisionInfo]:
        notice = await self.get_notice(notice_id)
        self._ensure_owner(notice, user, "查看修订记录")
        result = await self.db.execute(
            select(NoticeRevision)
            .where(NoticeRevision.notice_id == notice_id)
            .order_by(NoticeRevision.version.desc(), NoticeRevision.id.desc())
        )
        return [RevisionInfo.model_validate(r) for r in result.scalars().all()]

    # ==================== 批量操作 ====================

    async def bulk_action(self, notice_ids: List[int], action: BulkAction, user: TokenData) -> BulkActionResult:
        """
        批量操作，逐条鉴权并返回每条的处理结果

        不存在或无权限的通知跳过，不影响其余通知
        """
        results: List[BulkItemResult] = []
        published: List[Notice] = []
        deleted: List[int] = []
        now = utc_now()

        flag_actions = {
            BulkAction.PIN: ("pin_to_top", True),
            BulkAction.UNPIN: ("pin_to_top", False),
            BulkAction.FEATURE: ("featured", True),
            BulkAction.UNFEATURE: ("featured", False),
        }

        for notice_id in dict.fromkeys(notice_ids):
            notice = await self._find(notice_id)
            if notice is None:
                results.append(BulkItemResult(id=notice_id, success=False, message="通知不存在"))
                continue
            if notice.author_id != user.user_id and user.role != ROLE_ADMIN:
                results.append(BulkItemResult(id=notice_id, success=False, message="没有权限操作该通知"))
                continue

            if action == BulkAction.DELETE:
                await self.db.delete(notice)
                await self.db.flush()
                deleted.append(notice_id)
                results.append(BulkItemResult(id=notice_id, success=True, message="已删除"))
                continue

            if action == BulkAction.PUBLISH:
                if notice.status == NoticeStatus.PUBLISHED.value:
                    results.append(BulkItemResult(id=notice_id, success=False, message="通知已发布"))
                    continue
                expiry = to_utc(notice.expiry_date)
                if expiry is not None and expiry <= now:
                    results.append(BulkItemResult(id=notice_id, success=False, message="通知已过期"))
                    continue
                self._apply_publish(notice, now)
                published.append(notice)
            elif action == BulkAction.ARCHIVE:
                notice.status = NoticeStatus.ARCHIVED.value
            else:
                field, value = flag_actions[action]
                setattr(notice, field, value)

            await self._touch(notice, user.user_id, f"批量操作: {action.value}")
            results.append(BulkItemResult(id=notice_id, success=True, message="操作成功"))

        await self.db.commit()

        modified = sum(1 for r in results if r.success)
        logger.info(f"用户 {user.user_id} 批量{action.value}: 成功 {modified}/{len(results)}")

        for notice in published:
            await self._emit_published(notice, user.user_id)
        for notice_id in deleted:
            await event_bus.publish(Event(
                name=Events.NOTICE_DELETED, source=EVENT_SOURCE,
                data={"notice_id": notice_id, "user_id": user.user_id}
            ))

        return BulkActionResult(action=action, modified_count=modified, results=results)

    # ==================== 序列化 ====================

    @staticmethod
    def to_info(notice: Notice, user: Optional[TokenData] = None) -> dict:
        return NoticeInfo.from_notice(notice, user.user_id if user else None).model_dump()

    def page_to_dict(self, page: PageResult, user: Optional[TokenData] = None) -> dict:
        page.items = [self.to_info(n, user) for n in page.items]
        return page.to_dict(items_key="notices")
