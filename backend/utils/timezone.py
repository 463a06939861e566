# -*- coding: utf-8 -*-
"""
时区工具模块
统一使用 UTC 存储与比较时间
"""

from datetime import datetime, timezone, timedelta
from typing import Optional

UTC = timezone.utc


def utc_now() -> datetime:
    """
    获取当前 UTC 时间

    Returns:
        datetime: 带有 UTC 时区信息的当前时间
    """
    return datetime.now(UTC)


def to_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """
    将任意时间转换为 UTC

    数据库（SQLite/MySQL DATETIME）读回的时间不带时区，按 UTC 解释

    Args:
        dt: 待转换的时间对象

    Returns:
        datetime: 带 UTC 时区信息的时间
    """
    if dt is None:
        return None

    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


def days_since(dt: Optional[datetime], now: Optional[datetime] = None) -> int:
    """计算距今的整天数（向下取整）"""
    if dt is None:
        return 0
    now = to_utc(now) if now else utc_now()
    return (now - to_utc(dt)) // timedelta(days=1)
