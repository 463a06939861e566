# -*- coding: utf-8 -*-
"""
通知公告模块 - 数据验证模型
"""

from enum import Enum
from datetime import datetime
from typing import Optional, List
from pydantic import BaseModel, ConfigDict, Field, field_validator

from utils.timezone import to_utc


# ========== 枚举 ==========

class NoticeType(str, Enum):
    ANNOUNCEMENT = "announcement"
    ACADEMIC = "academic"
    ADMINISTRATIVE = "administrative"
    EVENT = "event"
    EMERGENCY = "emergency"
    MAINTENANCE = "maintenance"
    OTHER = "other"


class NoticeCategory(str, Enum):
    UNDERGRADUATE = "undergraduate"
    GRADUATE = "graduate"
    FACULTY = "faculty"
    STAFF = "staff"
    ALL = "all"


class NoticePriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class NoticeStatus(str, Enum):
    DRAFT = "draft"
    PUBLISHED = "published"
    ARCHIVED = "archived"
    EXPIRED = "expired"


class NoticeVisibility(str, Enum):
    PUBLIC = "public"
    PRIVATE = "private"
    RESTRICTED = "restricted"


class AudienceRole(str, Enum):
    ADMIN = "admin"
    FACULTY = "faculty"
    STAFF = "staff"
    STUDENT = "student"


class YearLevel(str, Enum):
    FIRST = "first"
    SECOND = "second"
    THIRD = "third"
    FOURTH = "fourth"
    FIFTH = "fifth"
    GRADUATE = "graduate"


class BulkAction(str, Enum):
    PUBLISH = "publish"
    ARCHIVE = "archive"
    DELETE = "delete"
    PIN = "pin"
    UNPIN = "unpin"
    FEATURE = "feature"
    UNFEATURE = "unfeature"


class SortField(str, Enum):
    PUBLISH_DATE = "publish_date"
    EXPIRY_DATE = "expiry_date"
    CREATED_AT = "created_at"
    UPDATED_AT = "updated_at"
    TITLE = "title"
    PRIORITY = "priority"
    VIEWS = "views"


class SortOrder(str, Enum):
    ASC = "asc"
    DESC = "desc"


# ========== 嵌套结构 ==========

class Attachment(BaseModel):
    """附件引用（文件本体位于对象存储）"""
    name: str = Field(..., min_length=1, max_length=255, description="文件名")
    url: str = Field(..., min_length=1, max_length=1000, description="访问地址")
    type: Optional[str] = Field(None, max_length=100, description="MIME 类型")
    size: int = Field(0, ge=0, description="字节数")
    uploaded_at: Optional[datetime] = Field(None, description="上传时间")


class NoticeImage(BaseModel):
    url: str = Field(..., min_length=1, max_length=1000, description="图片地址")
    alt: Optional[str] = Field(None, max_length=100, description="替代文本")
    caption: Optional[str] = Field(None, max_length=200, description="图片说明")


class ContactInfo(BaseModel):
    email: Optional[str] = Field(None, max_length=255, pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$", description="联系邮箱")
    phone: Optional[str] = Field(None, pattern=r"^\+?[1-9]\d{0,15}$", description="联系电话")
    office: Optional[str] = Field(None, max_length=100, description="办公室")
    website: Optional[str] = Field(None, max_length=500, description="网址")


class Location(BaseModel):
    building: Optional[str] = Field(None, max_length=100, description="楼宇")
    room: Optional[str] = Field(None, max_length=50, description="房间")
    address: Optional[str] = Field(None, max_length=200, description="地址")


class TargetAudience(BaseModel):
    """目标受众（建议性元数据，不作为访问控制）"""
    departments: List[str] = Field(default_factory=list, description="院系")
    roles: List[AudienceRole] = Field(default_factory=list, description="角色")
    users: List[int] = Field(default_factory=list, description="指定用户ID")
    year_levels: List[YearLevel] = Field(default_factory=list, description="年级")

    @field_validator("departments")
    @classmethod
    def strip_departments(cls, v: List[str]) -> List[str]:
        cleaned = [d.strip() for d in v]
        if any(not d for d in cleaned):
            raise ValueError("院系名称不能为空")
        return cleaned


class NoticeSettings(BaseModel):
    allow_comments: bool = Field(True, description="允许评论")
    require_acknowledgement: bool = Field(False, description="需要确认阅读")
    send_notification: bool = Field(True, description="发布时推送通知")
    pin_to_top: bool = Field(False, description="置顶")
    featured: bool = Field(False, description="精选")


class NoticeSettingsUpdate(BaseModel):
    allow_comments: Optional[bool] = None
    require_acknowledgement: Optional[bool] = None
    send_notification: Optional[bool] = None
    pin_to_top: Optional[bool] = None
    featured: Optional[bool] = None


def _check_tags(v: Optional[List[str]]) -> Optional[List[str]]:
    if v is None:
        return v
    tags = [t.strip() for t in v]
    if any(not t or len(t) > 50 for t in tags):
        raise ValueError("标签长度需在 1-50 个字符之间")
    return tags


# ========== 请求 ==========

class NoticeCreate(BaseModel):
    """创建通知请求"""
    title: str = Field(..., min_length=1, max_length=200, description="标题")
    content: str = Field(..., min_length=10, description="正文")
    summary: Optional[str] = Field(None, max_length=500, description="摘要")
    type: NoticeType = Field(..., description="类型")
    category: NoticeCategory = Field(..., description="面向群体")
    priority: NoticePriority = Field(NoticePriority.MEDIUM, description="优先级")
    status: NoticeStatus = Field(NoticeStatus.DRAFT, description="状态")
    visibility: NoticeVisibility = Field(NoticeVisibility.PUBLIC, description="可见性")
    publish_date: Optional[datetime] = Field(None, description="发布时间，默认当前时间")
    expiry_date: Optional[datetime] = Field(None, description="过期时间，默认发布后30天")
    effective_date: Optional[datetime] = Field(None, description="生效时间，默认等于发布时间")
    target_audience: Optional[TargetAudience] = None
    attachments: List[Attachment] = Field(default_factory=list)
    images: List[NoticeImage] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)
    related_notices: List[int] = Field(default_factory=list)
    contact_info: Optional[ContactInfo] = None
    location: Optional[Location] = None
    language: str = Field("en", min_length=2, max_length=10)
    settings: NoticeSettings = Field(default_factory=NoticeSettings)

    @field_validator("tags")
    @classmethod
    def check_tags(cls, v: List[str]) -> List[str]:
        return _check_tags(v)

    @field_validator("title", "content")
    @classmethod
    def not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("不能为空白")
        return v.strip()


class NoticeUpdate(BaseModel):
    """更新通知请求（仅提交需要修改的字段）"""
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    content: Optional[str] = Field(None, min_length=10)
    summary: Optional[str] = Field(None, max_length=500)
    type: Optional[NoticeType] = None
    category: Optional[NoticeCategory] = None
    priority: Optional[NoticePriority] = None
    status: Optional[NoticeStatus] = None
    visibility: Optional[NoticeVisibility] = None
    publish_date: Optional[datetime] = None
    expiry_date: Optional[datetime] = None
    effective_date: Optional[datetime] = None
    target_audience: Optional[TargetAudience] = None
    attachments: Optional[List[Attachment]] = None
    images: Optional[List[NoticeImage]] = None
    tags: Optional[List[str]] = None
    related_notices: Optional[List[int]] = None
    contact_info: Optional[ContactInfo] = None
    location: Optional[Location] = None
    language: Optional[str] = Field(None, min_length=2, max_length=10)
    settings: Optional[NoticeSettingsUpdate] = None
    version: Optional[int] = Field(None, ge=1, description="客户端持有的版本号，不一致时拒绝更新")
    change_note: Optional[str] = Field(None, max_length=200, description="变更说明")

    @field_validator("tags")
    @classmethod
    def check_tags(cls, v: Optional[List[str]]) -> Optional[List[str]]:
        return _check_tags(v)

    @field_validator("title", "content")
    @classmethod
    def not_blank(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        if not v.strip():
            raise ValueError("不能为空白")
        return v.strip()


class NoticeFilter(BaseModel):
    """列表查询条件"""
    type: Optional[NoticeType] = None
    category: Optional[NoticeCategory] = None
    priority: Optional[NoticePriority] = None
    status: Optional[NoticeStatus] = None
    visibility: Optional[NoticeVisibility] = None
    author_id: Optional[int] = None
    featured: Optional[bool] = None
    pinned: Optional[bool] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    search: Optional[str] = None
    audience_role: Optional[AudienceRole] = None
    audience_department: Optional[str] = None
    sort_by: Optional[SortField] = None
    sort_order: SortOrder = SortOrder.DESC
    page: int = Field(1, ge=1)
    limit: int = Field(10, ge=1, le=100)


class CommentCreate(BaseModel):
    """发表评论请求"""
    content: str = Field(..., min_length=1, max_length=1000, description="评论内容")

    @field_validator("content")
    @classmethod
    def not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("评论内容不能为空")
        return v.strip()


class CommentUpdate(CommentCreate):
    """编辑评论请求"""
    pass


class BulkActionRequest(BaseModel):
    """批量操作请求"""
    notice_ids: List[int] = Field(..., min_length=1, max_length=100, description="通知ID列表")
    action: BulkAction = Field(..., description="操作类型")


# ========== 响应 ==========

class AuthorSnapshot(BaseModel):
    id: int
    name: str
    email: str
    role: str


class NoticeStatistics(BaseModel):
    views: int = 0
    unique_views: int = 0
    downloads: int = 0
    shares: int = 0


class CommentInfo(BaseModel):
    """评论信息"""
    id: int
    user_id: int
    user_name: str
    content: str
    created_at: datetime
    is_edited: bool = False
    edited_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

    @field_validator("created_at", "edited_at")
    @classmethod
    def as_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return to_utc(v)


class RevisionInfo(BaseModel):
    """修订记录"""
    version: int
    modified_by: int
    modified_at: datetime
    changes: str

    model_config = ConfigDict(from_attributes=True)

    @field_validator("modified_at")
    @classmethod
    def as_utc(cls, v: datetime) -> datetime:
        return to_utc(v)


class NoticeInfo(BaseModel):
    """通知信息"""
    id: int
    title: str
    content: str
    summary: Optional[str] = None
    type: str
    category: str
    priority: str
    status: str
    visibility: str
    publish_date: datetime
    expiry_date: Optional[datetime] = None
    effective_date: Optional[datetime] = None
    author: AuthorSnapshot
    target_audience: TargetAudience
    attachments: List[dict] = []
    images: List[dict] = []
    tags: List[str] = []
    related_notices: List[int] = []
    contact_info: Optional[dict] = None
    location: Optional[dict] = None
    language: str = "en"
    statistics: NoticeStatistics
    settings: NoticeSettings
    comments: List[CommentInfo] = []
    version: int
    last_modified_by: Optional[int] = None
    created_at: datetime
    updated_at: datetime

    is_active: bool = False
    is_expired: bool = False
    view_count: int = 0
    like_count: int = 0
    comment_count: int = 0
    bookmark_count: int = 0
    is_liked: bool = False
    is_bookmarked: bool = False

    @field_validator("publish_date", "expiry_date", "effective_date", "created_at", "updated_at")
    @classmethod
    def as_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return to_utc(v)

    @classmethod
    def from_notice(cls, notice, user_id: Optional[int] = None) -> "NoticeInfo":
        """由 ORM 对象构建，附带当前用户的点赞/收藏状态"""
        return cls(
            id=notice.id,
            title=notice.title,
            content=notice.content,
            summary=notice.summary,
            type=notice.type,
            category=notice.category,
            priority=notice.priority,
            status=notice.status,
            visibility=notice.visibility,
            publish_date=notice.publish_date,
            expiry_date=notice.expiry_date,
            effective_date=notice.effective_date,
            author=AuthorSnapshot(
                id=notice.author_id,
                name=notice.author_name,
                email=notice.author_email,
                role=notice.author_role,
            ),
            target_audience=TargetAudience(**notice.target_audience),
            attachments=notice.attachments or [],
            images=notice.images or [],
            tags=notice.tags or [],
            related_notices=notice.related_notices or [],
            contact_info=notice.contact_info,
            location=notice.location,
            language=notice.language,
            statistics=NoticeStatistics(
                views=notice.views or 0,
                unique_views=notice.unique_views or 0,
                downloads=notice.downloads or 0,
                shares=notice.shares or 0,
            ),
            settings=NoticeSettings(
                allow_comments=notice.allow_comments,
                require_acknowledgement=notice.require_acknowledgement,
                send_notification=notice.send_notification,
                pin_to_top=notice.pin_to_top,
                featured=notice.featured,
            ),
            comments=[CommentInfo.model_validate(c) for c in notice.comments],
            version=notice.version,
            last_modified_by=notice.last_modified_by,
            created_at=notice.created_at,
            updated_at=notice.updated_at,
            is_active=notice.is_active,
            is_expired=notice.is_expired,
            view_count=notice.view_count,
            like_count=notice.like_count,
            comment_count=notice.comment_count,
            bookmark_count=notice.bookmark_count,
            is_liked=notice.liked_by(user_id),
            is_bookmarked=notice.bookmarked_by(user_id),
        )


class NoticeStatisticsInfo(NoticeStatistics):
    """通知统计"""
    likes: int = 0
    comments: int = 0
    bookmarks: int = 0
    is_active: bool = False
    is_expired: bool = False
    days_since_published: int = 0


class BulkItemResult(BaseModel):
    id: int
    success: bool
    message: str


class BulkActionResult(BaseModel):
    action: BulkAction
    modified_count: int
    results: List[BulkItemResult]
