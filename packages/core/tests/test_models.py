"""Domain Models 单元测试

测试内容：
1. 枚举取值
2. Pydantic 模型校验
3. 结果对象构造
"""

from datetime import UTC, datetime

import pytest
from fieldops.core.models import (
    NOTIFICATION_PRIORITY_RANK,
    TASK_PRIORITY_RANK,
    AvailableTaskFilters,
    FailureKind,
    GeoPoint,
    LiveEventType,
    NotificationFilters,
    NotificationPriority,
    NotificationStats,
    NotificationTemplate,
    NotificationType,
    TaskOperationResult,
    TaskPriority,
    TaskStatus,
    TaskType,
)
from fieldops.core.models.payloads import TaskEventPayload
from pydantic import ValidationError


class TestEnums:
    """枚举取值测试"""

    def test_task_status_values(self):
        """TaskStatus 使用带空格的展示值"""
        assert TaskStatus.PENDING == "Pending"
        assert TaskStatus.IN_PROGRESS == "In Progress"
        assert TaskStatus("Completed") == TaskStatus.COMPLETED

    def test_task_type_values(self):
        assert {t.value for t in TaskType} == {
            "Delivery",
            "Setup",
            "Pickup",
            "Maintenance",
        }

    def test_priority_ranks_are_ordered(self):
        """优先级排序值 High > Medium > Low，critical > high > normal > low"""
        assert (
            TASK_PRIORITY_RANK[TaskPriority.HIGH]
            > TASK_PRIORITY_RANK[TaskPriority.MEDIUM]
            > TASK_PRIORITY_RANK[TaskPriority.LOW]
        )
        ranks = [NOTIFICATION_PRIORITY_RANK[p] for p in NotificationPriority]
        assert ranks == sorted(ranks, reverse=True)

    def test_live_event_names(self):
        assert LiveEventType.TASK_NEW == "task:new"
        assert LiveEventType.TASK_CLAIMED == "task:claimed"
        assert LiveEventType.CONNECTION_ESTABLISHED == "connection:established"


class TestTaskModel:
    """Task 模型校验"""

    def test_defaults(self, make_task):
        task = make_task()
        assert task.status == TaskStatus.PENDING
        assert task.assigned_contractors == []
        assert task.assigned_to is None
        assert task.completion_photos == []

    def test_is_assignee_checks_both_fields(self, make_task):
        """assigned_contractors 或 assigned_to 任一命中即为指派人"""
        assert make_task(assigned_contractors=["c-1"]).is_assignee("c-1")
        assert make_task(assigned_to="c-2").is_assignee("c-2")
        assert not make_task().is_assignee("c-1")

    def test_too_many_photos_rejected(self, make_task):
        with pytest.raises(ValidationError):
            make_task(completion_photos=[f"p{i}.jpg" for i in range(6)])

    def test_geo_point_range(self):
        with pytest.raises(ValidationError):
            GeoPoint(lng=200, lat=0)
        with pytest.raises(ValidationError):
            GeoPoint(lng=0, lat=-91)

    def test_event_payload_from_task(self, make_task):
        task = make_task(title="Install shelf")
        payload = TaskEventPayload.from_task(task)
        assert payload.task_id == task.task_id
        assert payload.order_id == task.order_id
        assert payload.title == "Install shelf"
        assert payload.status == TaskStatus.PENDING


class TestNotificationModels:
    """通知模型校验"""

    def test_template_requires_title_and_message(self):
        with pytest.raises(ValidationError):
            NotificationTemplate(type=NotificationType.SYSTEM, title="", message="m")
        with pytest.raises(ValidationError):
            NotificationTemplate(type=NotificationType.SYSTEM, title="t", message="")

    def test_template_length_limits(self):
        with pytest.raises(ValidationError):
            NotificationTemplate(
                type=NotificationType.SYSTEM, title="x" * 201, message="m"
            )
        with pytest.raises(ValidationError):
            NotificationTemplate(
                type=NotificationType.SYSTEM, title="t", message="x" * 1001
            )

    def test_template_default_priority(self):
        template = NotificationTemplate(
            type=NotificationType.PERSONAL, title="t", message="m"
        )
        assert template.priority == NotificationPriority.NORMAL

    def test_template_expiry_must_be_positive(self):
        with pytest.raises(ValidationError):
            NotificationTemplate(
                type=NotificationType.SYSTEM,
                title="t",
                message="m",
                expires_in_hours=0,
            )

    def test_filters_limit_bounds(self):
        with pytest.raises(ValidationError):
            NotificationFilters(limit=0)
        with pytest.raises(ValidationError):
            NotificationFilters(page=0)

    def test_stats_buckets_initialized(self):
        """统计的分类桶预置为 0"""
        stats = NotificationStats()
        assert stats.by_type == {"task": 0, "system": 0, "personal": 0}
        assert stats.by_priority == {"critical": 0, "high": 0, "normal": 0, "low": 0}


class TestResults:
    """结果对象测试"""

    def test_ok_result(self, make_task):
        task = make_task()
        result = TaskOperationResult.ok(task, "done")
        assert result.success is True
        assert result.failure_kind is None
        assert result.task == task

    def test_fail_result_defaults_to_business_rule(self):
        result = TaskOperationResult.fail("Task not found")
        assert result.success is False
        assert result.task is None
        assert result.failure_kind == FailureKind.BUSINESS_RULE

    def test_available_filters_coordinates(self):
        assert AvailableTaskFilters(lat=1.0, lng=2.0).has_coordinates
        assert not AvailableTaskFilters(lat=1.0).has_coordinates
        with pytest.raises(ValidationError):
            AvailableTaskFilters(radius_km=0)

    def test_timestamps_are_aware(self, make_task):
        task = make_task(created_at=datetime(2026, 1, 1, tzinfo=UTC))
        assert task.created_at.tzinfo is not None
