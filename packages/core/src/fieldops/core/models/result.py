"""引擎操作结果

业务规则失败不抛异常，统一以带 failure_kind 的结果返回。
"""

from pydantic import BaseModel, Field

from .enums import FailureKind
from .task import Task


class TaskOperationResult(BaseModel):
    """任务操作结果"""

    success: bool
    message: str
    task: Task | None = None
    failure_kind: FailureKind | None = None

    @classmethod
    def ok(cls, task: Task, message: str) -> "TaskOperationResult":
        return cls(success=True, message=message, task=task)

    @classmethod
    def fail(
        cls,
        message: str,
        kind: FailureKind = FailureKind.BUSINESS_RULE,
    ) -> "TaskOperationResult":
        return cls(success=False, message=message, failure_kind=kind)


class TaskAccessResult(BaseModel):
    """带访问控制的任务查询结果"""

    task: Task | None = None
    has_access: bool = False
    exists: bool = False


class AvailableTaskFilters(BaseModel):
    """可接任务查询条件"""

    lat: float | None = Field(default=None, ge=-90, le=90)
    lng: float | None = Field(default=None, ge=-180, le=180)
    radius_km: float | None = Field(default=None, gt=0)
    skills: list[str] = Field(default_factory=list)
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=20, ge=1, le=100)

    @property
    def has_coordinates(self) -> bool:
        return self.lat is not None and self.lng is not None
