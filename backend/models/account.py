"""
账户数据模型
校园用户目录（账号由统一认证服务同步，本服务只读）
"""

from datetime import datetime, timezone
from typing import Optional
from sqlalchemy import String, Integer, Boolean, DateTime
from sqlalchemy.orm import Mapped, mapped_column

from core.database import Base


class User(Base):
    """用户表"""
    __tablename__ = "sys_users"
    __table_args__ = {'extend_existing': True, 'comment': '校园用户目录'}

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True, comment="邮箱")
    first_name: Mapped[str] = mapped_column(String(50), comment="名")
    last_name: Mapped[str] = mapped_column(String(50), comment="姓")
    role: Mapped[str] = mapped_column(String(20), default="student", index=True, comment="角色：admin/faculty/staff/student")
    department: Mapped[Optional[str]] = mapped_column(String(100), nullable=True, comment="所属院系")
    year_level: Mapped[Optional[str]] = mapped_column(String(20), nullable=True, comment="年级: first/second/third/fourth/fifth/graduate")
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, comment="是否启用")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc))

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()
