"""任务路由

GET  /api/tasks/available: 可接任务列表（地理/技能过滤）
GET  /api/tasks/mine: 我的任务
POST /api/tasks: 接单流程写入新任务
GET  /api/tasks/{task_id}: 任务详情（带访问控制）
POST /api/tasks/{task_id}/claim: 认领
PUT  /api/tasks/{task_id}/status: 推进状态
POST /api/tasks/{task_id}/complete: 完成
"""

from fastapi import APIRouter, Depends, Query
from fieldops.core.config import COMPLETION_NOTES_MAX, DEFAULT_PAGE_LIMIT
from fieldops.core.models import AvailableTaskFilters, TaskDraft, TaskPage, TaskStatus
from pydantic import BaseModel, Field

from ..deps import get_contractor_id, get_optional_contractor_id, get_task_service
from ..responses import error_response, result_response
from ..services.task_service import TaskService

router = APIRouter()


class StatusUpdateRequest(BaseModel):
    """状态推进请求"""

    status: str = Field(description="目标状态，如 In Progress")


class CompleteRequest(BaseModel):
    """完成任务请求（照片数量由引擎校验）"""

    notes: str | None = Field(default=None, max_length=COMPLETION_NOTES_MAX)
    photos: list[str] | None = None


@router.get("/api/tasks/available", response_model=TaskPage)
async def list_available_tasks(
    lat: float | None = Query(default=None, ge=-90, le=90),
    lng: float | None = Query(default=None, ge=-180, le=180),
    radius_km: float | None = Query(default=None, gt=0),
    skills: list[str] = Query(default=[]),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=DEFAULT_PAGE_LIMIT, ge=1, le=100),
    contractor_id: str = Depends(get_contractor_id),
    service: TaskService = Depends(get_task_service),
):
    """可接任务列表；有坐标按距离排序，否则按优先级 + 计划时间"""
    filters = AvailableTaskFilters(
        lat=lat,
        lng=lng,
        radius_km=radius_km,
        skills=skills,
        page=page,
        limit=limit,
    )
    return await service.list_available(contractor_id, filters)


@router.get("/api/tasks/mine", response_model=TaskPage)
async def list_my_tasks(
    status: list[TaskStatus] | None = Query(default=None),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=DEFAULT_PAGE_LIMIT, ge=1, le=100),
    contractor_id: str = Depends(get_contractor_id),
    service: TaskService = Depends(get_task_service),
):
    return await service.list_mine(contractor_id, status, page, limit)


@router.post("/api/tasks", status_code=201)
async def create_task(
    draft: TaskDraft,
    service: TaskService = Depends(get_task_service),
):
    """接单流程写入新任务并广播"""
    result = await service.create_task(draft)
    return result_response(result)


@router.get("/api/tasks/{task_id}")
async def get_task_detail(
    task_id: str,
    contractor_id: str | None = Depends(get_optional_contractor_id),
    service: TaskService = Depends(get_task_service),
):
    """任务详情；不带承包商身份时视为管理端访问"""
    access = await service.get_task(task_id, contractor_id)
    if not access.exists:
        return error_response(
            404, "TASK_NOT_FOUND", f"Task with id {task_id} does not exist"
        )
    if not access.has_access:
        return error_response(403, "FORBIDDEN", "You do not have access to this task")
    return {"task": access.task.model_dump(mode="json")}


@router.post("/api/tasks/{task_id}/claim")
async def claim_task(
    task_id: str,
    contractor_id: str = Depends(get_contractor_id),
    service: TaskService = Depends(get_task_service),
):
    result = await service.claim_task(task_id, contractor_id)
    return result_response(result)


@router.put("/api/tasks/{task_id}/status")
async def update_task_status(
    task_id: str,
    body: StatusUpdateRequest,
    contractor_id: str = Depends(get_contractor_id),
    service: TaskService = Depends(get_task_service),
):
    result = await service.update_status(task_id, contractor_id, body.status)
    return result_response(result)


@router.post("/api/tasks/{task_id}/complete")
async def complete_task(
    task_id: str,
    body: CompleteRequest,
    contractor_id: str = Depends(get_contractor_id),
    service: TaskService = Depends(get_task_service),
):
    result = await service.complete_task(
        task_id, contractor_id, notes=body.notes, photos=body.photos
    )
    return result_response(result)
