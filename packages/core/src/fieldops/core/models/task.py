"""Task Domain Model

tasks 表由外部接单流程写入，之后只能经由 TaskService 修改。
assigned_to 是单指派的兼容字段，与 assigned_contractors 同步写入。
"""

from datetime import datetime

from pydantic import BaseModel, Field

from ..config import COMPLETION_NOTES_MAX, MAX_COMPLETION_PHOTOS
from .enums import TaskPriority, TaskStatus, TaskType


class GeoPoint(BaseModel):
    """地理坐标（经度在前，与 GeoJSON 顺序一致）"""

    lng: float = Field(ge=-180, le=180, description="经度")
    lat: float = Field(ge=-90, le=90, description="纬度")


class Task(BaseModel):
    """Task 数据模型"""

    task_id: str = Field(description="唯一标识，ULID 格式")
    order_id: str = Field(description="订单引用")
    type: TaskType = Field(description="任务类型")
    title: str = Field(default="", max_length=200, description="任务标题")
    description: str = Field(default="", max_length=1000, description="任务描述")
    priority: TaskPriority = Field(default=TaskPriority.MEDIUM, description="优先级")
    status: TaskStatus = Field(default=TaskStatus.PENDING, description="当前状态")
    assigned_contractors: list[str] = Field(
        default_factory=list,
        description="已指派的承包商 ID 列表",
    )
    assigned_to: str | None = Field(default=None, description="兼容字段：单一指派人")
    location: GeoPoint | None = Field(default=None, description="任务地点")
    address: str = Field(default="", max_length=500, description="地址文本")
    scheduled_at: datetime = Field(description="计划执行时间")
    completed_at: datetime | None = Field(default=None, description="完成时间")
    completion_notes: str | None = Field(
        default=None,
        max_length=COMPLETION_NOTES_MAX,
        description="完成备注",
    )
    completion_photos: list[str] = Field(
        default_factory=list,
        max_length=MAX_COMPLETION_PHOTOS,
        description="完成照片引用",
    )
    created_at: datetime = Field(description="创建时间")
    updated_at: datetime = Field(description="更新时间")

    def is_assignee(self, contractor_id: str) -> bool:
        """contractor 是否为本任务的指派人（兼容两个字段）"""
        return (
            contractor_id in self.assigned_contractors
            or self.assigned_to == contractor_id
        )


class TaskDraft(BaseModel):
    """接单流程提交的新任务"""

    order_id: str
    type: TaskType
    title: str = Field(default="", max_length=200)
    description: str = Field(default="", max_length=1000)
    priority: TaskPriority = TaskPriority.MEDIUM
    location: GeoPoint | None = None
    address: str = Field(default="", max_length=500)
    scheduled_at: datetime


class TaskPage(BaseModel):
    """分页任务结果"""

    tasks: list[Task] = Field(default_factory=list)
    total: int = 0
    page: int = 1
    total_pages: int = 0
