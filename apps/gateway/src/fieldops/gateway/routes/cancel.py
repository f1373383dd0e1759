"""任务取消路由（管理端）

POST /api/tasks/{task_id}/cancel: 取消 Assigned / In Progress 的任务。
- 200: 取消成功，所有指派人收到通知
- 404: 任务不存在
- 409: 任务状态不允许取消
"""

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from ..deps import get_task_service
from ..responses import result_response
from ..services.task_service import TaskService

router = APIRouter()


class CancelRequest(BaseModel):
    """取消请求"""

    reason: str = Field(min_length=1, max_length=500, description="取消原因")


@router.post("/api/tasks/{task_id}/cancel")
async def cancel_task(
    task_id: str,
    body: CancelRequest,
    service: TaskService = Depends(get_task_service),
):
    """取消任务并逐个通知指派人"""
    result = await service.cancel_task(task_id, body.reason)
    return result_response(result)
