"""
工具函数目录
按功能分类组织
"""

from .timezone import utc_now, to_utc, days_since

__all__ = [
    # 时间处理
    "utc_now",
    "to_utc",
    "days_since",
]
