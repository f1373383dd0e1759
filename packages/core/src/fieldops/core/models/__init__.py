"""FieldOps Core Domain Models -- 公共类型导出

所有公共模型类型从此入口导入。
"""

from .contractor import Contractor
from .enums import (
    NOTIFICATION_PRIORITY_RANK,
    TASK_PRIORITY_RANK,
    TERMINAL_STATES,
    UPDATABLE_STATUSES,
    VALID_TRANSITIONS,
    FailureKind,
    LiveEventType,
    NotificationPriority,
    NotificationType,
    TaskPriority,
    TaskStatus,
    TaskType,
    validate_transition,
)
from .notification import (
    Notification,
    NotificationFilters,
    NotificationPage,
    NotificationStats,
    NotificationTemplate,
)
from .payloads import (
    NotificationEventPayload,
    TaskCancelledPayload,
    TaskClaimedPayload,
    TaskCompletedPayload,
    TaskEventPayload,
    TaskUpdatedPayload,
)
from .result import AvailableTaskFilters, TaskAccessResult, TaskOperationResult
from .task import GeoPoint, Task, TaskDraft, TaskPage

__all__ = [
    # 枚举
    "TaskStatus",
    "TaskType",
    "TaskPriority",
    "NotificationType",
    "NotificationPriority",
    "LiveEventType",
    "FailureKind",
    "TASK_PRIORITY_RANK",
    "NOTIFICATION_PRIORITY_RANK",
    # 状态机
    "VALID_TRANSITIONS",
    "TERMINAL_STATES",
    "UPDATABLE_STATUSES",
    "validate_transition",
    # Task
    "Task",
    "TaskDraft",
    "TaskPage",
    "GeoPoint",
    # Contractor
    "Contractor",
    # Notification
    "Notification",
    "NotificationTemplate",
    "NotificationFilters",
    "NotificationPage",
    "NotificationStats",
    # Payloads
    "TaskEventPayload",
    "TaskClaimedPayload",
    "TaskUpdatedPayload",
    "TaskCompletedPayload",
    "TaskCancelledPayload",
    "NotificationEventPayload",
    # Results
    "TaskOperationResult",
    "TaskAccessResult",
    "AvailableTaskFilters",
]
