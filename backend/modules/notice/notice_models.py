# -*- coding: utf-8 -*-
"""
通知公告模块 - 数据模型

作者信息与评论人姓名为写入时快照，不随用户资料变更
"""

from datetime import datetime
from typing import Optional, List
from sqlalchemy import (
    String, Text, Integer, DateTime, ForeignKey, Boolean, JSON, UniqueConstraint, Index
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from core.database import Base
from utils.timezone import utc_now, to_utc


class Notice(Base):
    """通知公告表"""
    __tablename__ = "notices"
    __table_args__ = (
        Index("ix_notices_status_publish", "status", "publish_date"),
        Index("ix_notices_type_category", "type", "category"),
        {'extend_existing': True, 'comment': '通知公告表'},
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True, comment="主键ID")
    title: Mapped[str] = mapped_column(String(200), nullable=False, comment="标题")
    content: Mapped[str] = mapped_column(Text, nullable=False, comment="正文")
    summary: Mapped[Optional[str]] = mapped_column(String(500), nullable=True, comment="摘要")

    # 分类
    type: Mapped[str] = mapped_column(String(20), default="announcement", comment="类型")
    category: Mapped[str] = mapped_column(String(20), default="all", comment="面向群体")
    priority: Mapped[str] = mapped_column(String(10), default="medium", comment="优先级: low/medium/high/urgent")

    # 生命周期
    status: Mapped[str] = mapped_column(String(20), default="draft", comment="状态: draft/published/archived/expired")
    visibility: Mapped[str] = mapped_column(String(20), default="public", comment="可见性: public/private/restricted")
    publish_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now, comment="发布时间")
    expiry_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True, comment="过期时间")
    effective_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True, comment="生效时间")

    # 作者快照
    author_id: Mapped[int] = mapped_column(Integer, index=True, comment="作者ID")
    author_name: Mapped[str] = mapped_column(String(120), comment="作者姓名（快照）")
    author_email: Mapped[str] = mapped_column(String(255), comment="作者邮箱（快照）")
    author_role: Mapped[str] = mapped_column(String(20), comment="作者角色（快照）")

    # 附件与扩展信息（文件本体存放于对象存储，此处仅保存引用）
    attachments: Mapped[list] = mapped_column(JSON, default=list, comment="附件列表")
    images: Mapped[list] = mapped_column(JSON, default=list, comment="图片列表")
    tags: Mapped[list] = mapped_column(JSON, default=list, comment="标签")
    related_notices: Mapped[list] = mapped_column(JSON, default=list, comment="相关通知ID")
    contact_info: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True, comment="联系方式")
    location: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True, comment="地点")
    language: Mapped[str] = mapped_column(String(10), default="en", comment="语言")

    # 统计
    views: Mapped[int] = mapped_column(Integer, default=0, comment="浏览次数")
    unique_views: Mapped[int] = mapped_column(Integer, default=0, comment="独立访客数")
    downloads: Mapped[int] = mapped_column(Integer, default=0, comment="下载次数")
    shares: Mapped[int] = mapped_column(Integer, default=0, comment="分享次数")

    # 设置
    allow_comments: Mapped[bool] = mapped_column(Boolean, default=True, comment="允许评论")
    require_acknowledgement: Mapped[bool] = mapped_column(Boolean, default=False, comment="需要确认阅读")
    send_notification: Mapped[bool] = mapped_column(Boolean, default=True, comment="发布时推送通知")
    pin_to_top: Mapped[bool] = mapped_column(Boolean, default=False, comment="置顶")
    featured: Mapped[bool] = mapped_column(Boolean, default=False, comment="精选")

    # 元数据
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1, comment="版本号（乐观锁）")
    last_modified_by: Mapped[Optional[int]] = mapped_column(Integer, nullable=True, comment="最后修改人ID")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now, comment="创建时间")
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now, onupdate=utc_now, comment="更新时间")

    # 关联
    likes: Mapped[List["NoticeLike"]] = relationship(
        "NoticeLike", back_populates="notice", cascade="all, delete-orphan", lazy="selectin"
    )
    bookmarks: Mapped[List["NoticeBookmark"]] = relationship(
        "NoticeBookmark", back_populates="notice", cascade="all, delete-orphan", lazy="selectin"
    )
    comments: Mapped[List["NoticeComment"]] = relationship(
        "NoticeComment", back_populates="notice", cascade="all, delete-orphan", lazy="selectin",
        order_by="NoticeComment.id"
    )
    audiences: Mapped[List["NoticeAudience"]] = relationship(
        "NoticeAudience", back_populates="notice", cascade="all, delete-orphan", lazy="selectin"
    )
    # 修订历史与浏览记录量大，不随通知加载，依赖外键级联删除
    revisions: Mapped[List["NoticeRevision"]] = relationship(
        "NoticeRevision", back_populates="notice", lazy="noload", passive_deletes=True
    )

    __mapper_args__ = {"version_id_col": version}

    # ==================== 派生属性 ====================

    def is_expired_at(self, now: datetime) -> bool:
        expiry = to_utc(self.expiry_date)
        return expiry is not None and expiry <= to_utc(now)

    def is_active_at(self, now: datetime) -> bool:
        now = to_utc(now)
        publish = to_utc(self.publish_date)
        return (
            self.status == "published"
            and publish is not None
            and publish <= now
            and not self.is_expired_at(now)
        )

    @property
    def is_active(self) -> bool:
        return self.is_active_at(utc_now())

    @property
    def is_expired(self) -> bool:
        return self.is_expired_at(utc_now())

    @property
    def view_count(self) -> int:
        return self.views or 0

    @property
    def like_count(self) -> int:
        return len(self.likes)

    @property
    def comment_count(self) -> int:
        return len(self.comments)

    @property
    def bookmark_count(self) -> int:
        return len(self.bookmarks)

    @property
    def target_audience(self) -> dict:
        """按维度组装目标受众"""
        audience = {"departments": [], "roles": [], "users": [], "year_levels": []}
        for item in self.audiences:
            key = AUDIENCE_KIND_KEYS[item.kind]
            value = int(item.value) if item.kind == "user" else item.value
            audience[key].append(value)
        return audience

    def liked_by(self, user_id: Optional[int]) -> bool:
        return user_id is not None and any(like.user_id == user_id for like in self.likes)

    def bookmarked_by(self, user_id: Optional[int]) -> bool:
        return user_id is not None and any(b.user_id == user_id for b in self.bookmarks)


# 受众维度 -> 接口字段
AUDIENCE_KIND_KEYS = {
    "department": "departments",
    "role": "roles",
    "user": "users",
    "year_level": "year_levels",
}


class NoticeLike(Base):
    """通知点赞表"""
    __tablename__ = "notice_likes"
    __table_args__ = (
        UniqueConstraint("notice_id", "user_id", name="uq_notice_like_user"),
        {'extend_existing': True, 'comment': '通知点赞表'},
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True, comment="主键ID")
    notice_id: Mapped[int] = mapped_column(ForeignKey("notices.id", ondelete="CASCADE"), index=True, comment="通知ID")
    user_id: Mapped[int] = mapped_column(Integer, index=True, comment="用户ID")
    liked_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now, comment="点赞时间")

    notice: Mapped["Notice"] = relationship("Notice", back_populates="likes")


class NoticeBookmark(Base):
    """通知收藏表"""
    __tablename__ = "notice_bookmarks"
    __table_args__ = (
        UniqueConstraint("notice_id", "user_id", name="uq_notice_bookmark_user"),
        {'extend_existing': True, 'comment': '通知收藏表'},
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True, comment="主键ID")
    notice_id: Mapped[int] = mapped_column(ForeignKey("notices.id", ondelete="CASCADE"), index=True, comment="通知ID")
    user_id: Mapped[int] = mapped_column(Integer, index=True, comment="用户ID")
    bookmarked_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now, comment="收藏时间")

    notice: Mapped["Notice"] = relationship("Notice", back_populates="bookmarks")


class NoticeComment(Base):
    """通知评论表"""
    __tablename__ = "notice_comments"
    __table_args__ = {'extend_existing': True, 'comment': '通知评论表'}

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True, comment="主键ID")
    notice_id: Mapped[int] = mapped_column(ForeignKey("notices.id", ondelete="CASCADE"), index=True, comment="通知ID")
    user_id: Mapped[int] = mapped_column(Integer, index=True, comment="评论人ID")
    user_name: Mapped[str] = mapped_column(String(120), comment="评论人姓名（快照）")
    content: Mapped[str] = mapped_column(Text, nullable=False, comment="评论内容")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now, comment="评论时间")
    is_edited: Mapped[bool] = mapped_column(Boolean, default=False, comment="是否编辑过")
    edited_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True, comment="编辑时间")

    notice: Mapped["Notice"] = relationship("Notice", back_populates="comments")


class NoticeAudience(Base):
    """通知目标受众表"""
    __tablename__ = "notice_audiences"
    __table_args__ = (
        UniqueConstraint("notice_id", "kind", "value", name="uq_notice_audience"),
        Index("ix_notice_audience_kind_value", "kind", "value"),
        {'extend_existing': True, 'comment': '通知目标受众表'},
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True, comment="主键ID")
    notice_id: Mapped[int] = mapped_column(ForeignKey("notices.id", ondelete="CASCADE"), index=True, comment="通知ID")
    kind: Mapped[str] = mapped_column(String(20), comment="维度: department/role/user/year_level")
    value: Mapped[str] = mapped_column(String(100), comment="取值")

    notice: Mapped["Notice"] = relationship("Notice", back_populates="audiences")


class NoticeRevision(Base):
    """通知修订历史表（仅追加）"""
    __tablename__ = "notice_revisions"
    __table_args__ = (
        Index("ix_notice_revision_notice_version", "notice_id", "version"),
        {'extend_existing': True, 'comment': '通知修订历史表'},
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True, comment="主键ID")
    notice_id: Mapped[int] = mapped_column(ForeignKey("notices.id", ondelete="CASCADE"), comment="通知ID")
    version: Mapped[int] = mapped_column(Integer, comment="修订后版本号")
    modified_by: Mapped[int] = mapped_column(Integer, comment="修改人ID")
    modified_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now, comment="修改时间")
    changes: Mapped[str] = mapped_column(String(500), comment="变更说明")

    notice: Mapped["Notice"] = relationship("Notice", back_populates="revisions")


class NoticeView(Base):
    """通知独立浏览记录表"""
    __tablename__ = "notice_views"
    __table_args__ = (
        UniqueConstraint("notice_id", "user_id", name="uq_notice_view_user"),
        {'extend_existing': True, 'comment': '通知独立浏览记录表'},
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True, comment="主键ID")
    notice_id: Mapped[int] = mapped_column(ForeignKey("notices.id", ondelete="CASCADE"), index=True, comment="通知ID")
    user_id: Mapped[int] = mapped_column(Integer, comment="用户ID")
    first_viewed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now, comment="首次浏览时间")
