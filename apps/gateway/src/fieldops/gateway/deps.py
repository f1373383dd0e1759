"""依赖注入模块 -- 通过 FastAPI Depends 注入服务实例

所有实例通过 app.state 管理，在 lifespan 中初始化/清理。
承包商身份由上游网关认证后放在 X-Contractor-ID 请求头中。
"""

from fastapi import Header, Request
from fieldops.core.store import StoreGroup

from .services.broadcaster import RealtimeBroadcaster
from .services.live_hub import LiveHub
from .services.notification_service import NotificationLedger
from .services.room_resolver import RoomResolver
from .services.task_service import TaskService

CONTRACTOR_HEADER = "X-Contractor-ID"


class MissingContractorError(Exception):
    """请求缺少承包商身份"""


def get_store_group(request: Request) -> StoreGroup:
    """从 app.state 获取 StoreGroup 实例"""
    return request.app.state.store_group


def get_live_hub(request: Request) -> LiveHub:
    return request.app.state.live_hub


def get_room_resolver(request: Request) -> RoomResolver:
    return request.app.state.room_resolver


def get_ledger(request: Request) -> NotificationLedger:
    return request.app.state.ledger


def get_broadcaster(request: Request) -> RealtimeBroadcaster:
    return request.app.state.broadcaster


def get_task_service(request: Request) -> TaskService:
    return request.app.state.task_service


def get_contractor_id(
    x_contractor_id: str | None = Header(default=None, alias=CONTRACTOR_HEADER),
) -> str:
    """必需的承包商身份

    Raises:
        MissingContractorError: 请求头缺失或为空
    """
    if not x_contractor_id:
        raise MissingContractorError()
    return x_contractor_id


def get_optional_contractor_id(
    x_contractor_id: str | None = Header(default=None, alias=CONTRACTOR_HEADER),
) -> str | None:
    """可选的承包商身份（缺失时视为管理端访问）"""
    return x_contractor_id or None
