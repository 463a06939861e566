import logging
from core.events import event_bus, Events, Event

logger = logging.getLogger(__name__)


def _describe_audience(audience: dict) -> str:
    parts = []
    labels = {
        "departments": "院系",
        "roles": "角色",
        "users": "指定用户",
        "year_levels": "年级",
    }
    for key, label in labels.items():
        values = audience.get(key) or []
        if values:
            parts.append(f"{label}={','.join(str(v) for v in values)}")
    return "; ".join(parts) if parts else "全体"


async def on_notice_published(event: Event):
    """
    通知发布后记录推送任务

    实际的邮件/站内信投递由外部消息服务订阅同名事件完成
    """
    data = event.data
    audience = data.get("target_audience") or {}
    logger.info(
        f"通知已发布，待推送: id={data.get('notice_id')} "
        f"标题={data.get('title')!r} 优先级={data.get('priority')} "
        f"受众={_describe_audience(audience)}"
    )


def register_event_handlers():
    """注册所有事件处理器"""
    event_bus.subscribe(Events.NOTICE_PUBLISHED, on_notice_published)
    logger.info("已注册系统事件处理器")
