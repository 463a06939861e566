"""
健康检查模块
提供系统健康状态检测，支持 Kubernetes、Docker 等容器编排
"""

import time
import logging
from typing import Dict, Any
from datetime import datetime, timezone
from dataclasses import dataclass, field
from enum import Enum

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from sqlalchemy import text

from core.config import get_settings
from core.database import async_session

logger = logging.getLogger(__name__)
settings = get_settings()

router = APIRouter(tags=["健康检查"])


class HealthStatus(str, Enum):
    """健康状态枚举"""
    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"


@dataclass
class ComponentHealth:
    """组件健康状态"""
    name: str
    status: HealthStatus
    latency_ms: float = 0
    message: str = ""
    details: Dict[str, Any] = field(default_factory=dict)


class HealthChecker:
    """健康检查器"""

    def __init__(self):
        self._start_time = time.time()

    @property
    def uptime_seconds(self) -> int:
        return int(time.time() - self._start_time)

    async def check_database(self) -> ComponentHealth:
        """检查数据库连接"""
        start = time.time()
        try:
            async with async_session() as session:
                await session.execute(text("SELECT 1"))
        except Exception as e:
            logger.error(f"数据库健康检查失败: {e}")
            return ComponentHealth(
                name="database",
                status=HealthStatus.UNHEALTHY,
                latency_ms=round((time.time() - start) * 1000, 2),
                message=f"数据库连接失败: {str(e)[:100]}"
            )

        return ComponentHealth(
            name="database",
            status=HealthStatus.HEALTHY,
            latency_ms=round((time.time() - start) * 1000, 2),
            message="数据库连接正常",
            details={"backend": "sqlite" if settings.is_sqlite else "mysql"}
        )


# 全局健康检查器实例
health_checker = HealthChecker()


@router.get("/health")
async def health_check():
    """
    健康检查端点

    数据库不可用时返回 503，供负载均衡摘除实例
    """
    db_health = await health_checker.check_database()
    if db_health.status == HealthStatus.UNHEALTHY:
        return JSONResponse(
            status_code=503,
            content={"status": HealthStatus.UNHEALTHY.value, "message": db_health.message}
        )

    return {
        "status": HealthStatus.HEALTHY.value,
        "version": settings.app_version,
        "uptime": health_checker.uptime_seconds,
        "database": {"latency_ms": db_health.latency_ms, **db_health.details},
    }


@router.get("/health/live")
async def liveness_check():
    """存活检查端点，只检查应用本身是否响应"""
    return {
        "status": "alive",
        "timestamp": datetime.now(timezone.utc).isoformat()
    }
