"""
Campus Hub 核心模块
提供框架的基础设施和通用功能

导出列表：
- 配置管理: get_settings, Settings
- 数据库: Base, get_db, async_session
- 安全认证: get_current_user, get_optional_user, require_roles
- 事件系统: event_bus, Events, Event
- 分页工具: paginate, PageResult
- 错误处理: ErrorCode, AppException, error_response
"""

# 配置管理
from .config import get_settings, Settings, reload_settings

# 数据库
from .database import Base, get_db, async_session, init_db, close_db

# 安全认证
from .security import (
    get_current_user,
    get_optional_user,
    require_roles,
    create_token,
    decode_token,
    TokenData
)

# 事件系统
from .events import event_bus, Events, Event, EventBus

# 分页工具
from .pagination import (
    paginate,
    PageResult
)

# 错误处理
from .errors import (
    ErrorCode,
    AppException,
    ValidationException,
    AuthException,
    NotFoundException,
    PermissionException,
    ConflictException,
    BusinessException,
    error_response,
    register_exception_handlers
)

# 中间件
from .middleware import (
    RequestLoggingMiddleware,
    SecurityHeadersMiddleware
)


__all__ = [
    # 配置
    "get_settings",
    "Settings",
    "reload_settings",

    # 数据库
    "Base",
    "get_db",
    "async_session",
    "init_db",
    "close_db",

    # 安全
    "get_current_user",
    "get_optional_user",
    "require_roles",
    "create_token",
    "decode_token",
    "TokenData",

    # 事件
    "event_bus",
    "Events",
    "Event",
    "EventBus",

    # 分页
    "paginate",
    "PageResult",

    # 错误
    "ErrorCode",
    "AppException",
    "ValidationException",
    "AuthException",
    "NotFoundException",
    "PermissionException",
    "ConflictException",
    "BusinessException",
    "error_response",
    "register_exception_handlers",

    # 中间件
    "RequestLoggingMiddleware",
    "SecurityHeadersMiddleware",
]
