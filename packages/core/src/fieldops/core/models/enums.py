"""枚举定义

包含 TaskStatus 状态机、TaskType、TaskPriority、通知类型/优先级、实时事件名，
以及 VALID_TRANSITIONS 合法流转映射和 TERMINAL_STATES 终态集合。
"""

from enum import StrEnum


class TaskStatus(StrEnum):
    """Task 状态机"""

    PENDING = "Pending"
    ASSIGNED = "Assigned"
    IN_PROGRESS = "In Progress"

    # 终态
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"


# 合法状态流转：只允许向前推进
VALID_TRANSITIONS: dict[TaskStatus, set[TaskStatus]] = {
    TaskStatus.PENDING: {TaskStatus.ASSIGNED},
    TaskStatus.ASSIGNED: {TaskStatus.IN_PROGRESS, TaskStatus.CANCELLED},
    TaskStatus.IN_PROGRESS: {TaskStatus.COMPLETED, TaskStatus.CANCELLED},
    # 终态不可再流转
    TaskStatus.COMPLETED: set(),
    TaskStatus.CANCELLED: set(),
}

TERMINAL_STATES: set[TaskStatus] = {
    TaskStatus.COMPLETED,
    TaskStatus.CANCELLED,
}

# update_status 可接受的目标状态（Pending 只能是入口状态）
UPDATABLE_STATUSES: set[TaskStatus] = {
    TaskStatus.ASSIGNED,
    TaskStatus.IN_PROGRESS,
    TaskStatus.COMPLETED,
    TaskStatus.CANCELLED,
}


class TaskType(StrEnum):
    """任务类型"""

    DELIVERY = "Delivery"
    SETUP = "Setup"
    PICKUP = "Pickup"
    MAINTENANCE = "Maintenance"


class TaskPriority(StrEnum):
    """任务优先级（有序：High > Medium > Low）"""

    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"


TASK_PRIORITY_RANK: dict[TaskPriority, int] = {
    TaskPriority.HIGH: 3,
    TaskPriority.MEDIUM: 2,
    TaskPriority.LOW: 1,
}


class NotificationType(StrEnum):
    """通知类型"""

    TASK = "task"
    SYSTEM = "system"
    PERSONAL = "personal"


class NotificationPriority(StrEnum):
    """通知优先级"""

    CRITICAL = "critical"
    HIGH = "high"
    NORMAL = "normal"
    LOW = "low"


NOTIFICATION_PRIORITY_RANK: dict[NotificationPriority, int] = {
    NotificationPriority.CRITICAL: 4,
    NotificationPriority.HIGH: 3,
    NotificationPriority.NORMAL: 2,
    NotificationPriority.LOW: 1,
}


class LiveEventType(StrEnum):
    """实时通道事件名"""

    TASK_NEW = "task:new"
    TASK_ASSIGNED = "task:assigned"
    TASK_CLAIMED = "task:claimed"
    TASK_UPDATED = "task:updated"
    TASK_COMPLETED = "task:completed"
    TASK_CANCELLED = "task:cancelled"
    NOTIFICATION_SYSTEM = "notification:system"
    NOTIFICATION_PERSONAL = "notification:personal"
    CONNECTION_ESTABLISHED = "connection:established"


class FailureKind(StrEnum):
    """引擎操作失败分类

    validation / business_rule 重试无意义；server_error 可能是瞬时故障。
    """

    VALIDATION = "validation"
    BUSINESS_RULE = "business_rule"
    SERVER_ERROR = "server_error"


def validate_transition(from_status: TaskStatus, to_status: TaskStatus) -> bool:
    """验证状态流转是否合法

    Args:
        from_status: 当前状态
        to_status: 目标状态

    Returns:
        True 如果流转合法，否则 False
    """
    allowed = VALID_TRANSITIONS.get(from_status, set())
    return to_status in allowed
