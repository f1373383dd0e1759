"""TaskService -- 任务派单引擎

状态机：Pending -> Assigned -> In Progress -> Completed，
Assigned / In Progress 可取消。认领是唯一的强一致写入（条件 UPDATE），
其余写入为先读后写。广播在提交之后进行，失败只记日志，不影响结果。
"""

from collections.abc import Awaitable
from datetime import UTC, datetime

import structlog
from fieldops.core.config import (
    COMPLETION_NOTES_MAX,
    DEFAULT_PAGE_LIMIT,
    DEFAULT_SEARCH_RADIUS_KM,
    MAX_COMPLETION_PHOTOS,
)
from fieldops.core.exceptions import TaskQueryError
from fieldops.core.matching import can_claim_task_type, matching_task_types
from fieldops.core.models import (
    UPDATABLE_STATUSES,
    AvailableTaskFilters,
    FailureKind,
    Task,
    TaskAccessResult,
    TaskDraft,
    TaskOperationResult,
    TaskPage,
    TaskStatus,
    validate_transition,
)
from fieldops.core.store import StoreGroup, save_task_and_commit
from ulid import ULID

from .broadcaster import RealtimeBroadcaster

log = structlog.get_logger()

# 可被管理端取消的状态
_CANCELLABLE_STATES = {TaskStatus.ASSIGNED, TaskStatus.IN_PROGRESS}


class TaskService:
    """任务业务服务"""

    def __init__(
        self,
        store_group: StoreGroup,
        broadcaster: RealtimeBroadcaster | None = None,
    ) -> None:
        self._stores = store_group
        self._broadcaster = broadcaster

    async def list_available(
        self,
        contractor_id: str,
        filters: AvailableTaskFilters,
    ) -> TaskPage:
        """可接任务列表

        有坐标时按距离排序，技能（未提供时取档案技能）只在能匹配到类型时过滤；
        无坐标时只列无人指派的 Pending 任务，提供的技能匹配不到类型则返回空页。

        Raises:
            TaskQueryError: 查询失败
        """
        try:
            if filters.has_coordinates:
                skills = filters.skills
                if not skills:
                    contractor = await self._stores.contractor_store.get_contractor(
                        contractor_id
                    )
                    skills = contractor.skills if contractor else []
                task_types = matching_task_types(skills)
                return await self._stores.task_store.list_available_near(
                    lat=filters.lat,
                    lng=filters.lng,
                    radius_km=filters.radius_km or DEFAULT_SEARCH_RADIUS_KM,
                    task_types=task_types or None,
                    exclude_contractor=contractor_id,
                    page=filters.page,
                    limit=filters.limit,
                )

            task_types = None
            if filters.skills:
                task_types = matching_task_types(filters.skills)
                if not task_types:
                    return TaskPage(tasks=[], total=0, page=filters.page, total_pages=0)
            return await self._stores.task_store.list_pending_unassigned(
                task_types=task_types,
                page=filters.page,
                limit=filters.limit,
            )
        except Exception as e:
            log.error(
                "list_available_failed",
                contractor_id=contractor_id,
                error=str(e),
            )
            raise TaskQueryError("Failed to retrieve available tasks", e) from e

    async def list_mine(
        self,
        contractor_id: str,
        statuses: list[TaskStatus] | None = None,
        page: int = 1,
        limit: int = DEFAULT_PAGE_LIMIT,
    ) -> TaskPage:
        """指派给该承包商的任务，按计划时间升序

        Raises:
            TaskQueryError: 查询失败
        """
        try:
            return await self._stores.task_store.list_for_contractor(
                contractor_id, statuses, page, limit
            )
        except Exception as e:
            log.error("list_mine_failed", contractor_id=contractor_id, error=str(e))
            raise TaskQueryError("Failed to retrieve contractor tasks", e) from e

    async def get_task(
        self,
        task_id: str,
        contractor_id: str | None = None,
    ) -> TaskAccessResult:
        """带访问控制的任务查询

        不带 contractor_id 视为管理端访问；Pending 任务对所有合格承包商可见，
        其他状态只对指派人可见。

        Raises:
            TaskQueryError: 查询失败（不是"任务不存在"）
        """
        try:
            task = await self._stores.task_store.get_task(task_id)
            if task is None:
                return TaskAccessResult(task=None, has_access=False, exists=False)

            if contractor_id is None:
                return TaskAccessResult(task=task, has_access=True, exists=True)

            contractor = await self._stores.contractor_store.get_contractor(contractor_id)
            if contractor is None or not contractor.can_take_work:
                log.info(
                    "task_access_denied_contractor",
                    task_id=task_id,
                    contractor_id=contractor_id,
                )
                return TaskAccessResult(task=None, has_access=False, exists=True)

            has_access = (
                task.status == TaskStatus.PENDING or task.is_assignee(contractor_id)
            )
            return TaskAccessResult(
                task=task if has_access else None,
                has_access=has_access,
                exists=True,
            )
        except Exception as e:
            log.error("get_task_failed", task_id=task_id, error=str(e))
            raise TaskQueryError("Failed to retrieve task", e) from e

    async def create_task(self, draft: TaskDraft) -> TaskOperationResult:
        """接单流程入口：写入 Pending 任务并广播给附近/对口的承包商"""
        try:
            now = datetime.now(UTC)
            task = Task(
                task_id=str(ULID()),
                created_at=now,
                updated_at=now,
                **draft.model_dump(),
            )
            await save_task_and_commit(
                self._stores.conn, self._stores.task_store, task, create=True
            )
            log.info(
                "task_created",
                task_id=task.task_id,
                order_id=task.order_id,
                type=task.type,
            )
        except Exception as e:
            log.error("task_create_failed", order_id=draft.order_id, error=str(e))
            return TaskOperationResult.fail(
                "Failed to create task", FailureKind.SERVER_ERROR
            )

        await self._run_side_effect(
            "broadcast_new_task",
            task.task_id,
            self._broadcaster.broadcast_new_task(task) if self._broadcaster else None,
        )
        return TaskOperationResult.ok(task, "Task created successfully")

    async def claim_task(self, task_id: str, contractor_id: str) -> TaskOperationResult:
        """认领任务

        预检查只用于给出明确的失败原因；最终裁决由条件 UPDATE 做出，
        并发认领中只有一个成功。
        """
        try:
            contractor = await self._stores.contractor_store.get_contractor(contractor_id)
            if contractor is None or not contractor.can_take_work:
                return TaskOperationResult.fail("Contractor not found or not authorized")

            existing = await self._stores.task_store.get_task(task_id)
            if existing is None:
                return TaskOperationResult.fail("Task not found")

            if existing.status != TaskStatus.PENDING:
                return TaskOperationResult.fail(
                    "Task is already assigned or not available"
                )

            if contractor_id in existing.assigned_contractors:
                return TaskOperationResult.fail("Task is already assigned to you")

            if not contractor.skills:
                log.info("claim_without_declared_skills", contractor_id=contractor_id)
            elif not can_claim_task_type(contractor.skills, existing.type.value):
                log.warning(
                    "claim_skill_mismatch",
                    task_id=task_id,
                    contractor_id=contractor_id,
                    task_type=existing.type,
                    skills=contractor.skills,
                )
                return TaskOperationResult.fail(
                    f"You do not have the required skills for this "
                    f"{existing.type.value} task. "
                    f"Your skills: [{', '.join(contractor.skills)}]"
                )

            task = await self._stores.task_store.claim_task(
                task_id, contractor_id, datetime.now(UTC)
            )
            if task is None:
                log.info(
                    "claim_lost_race",
                    task_id=task_id,
                    contractor_id=contractor_id,
                )
                return TaskOperationResult.fail(
                    "Task not available for claiming (may already be assigned)"
                )

            log.info("task_claimed", task_id=task_id, contractor_id=contractor_id)
        except Exception as e:
            log.error(
                "claim_task_failed",
                task_id=task_id,
                contractor_id=contractor_id,
                error=str(e),
            )
            return TaskOperationResult.fail(
                "Failed to claim task due to server error", FailureKind.SERVER_ERROR
            )

        await self._run_side_effect(
            "broadcast_task_claimed",
            task_id,
            (
                self._broadcaster.broadcast_task_claimed(task, contractor_id)
                if self._broadcaster
                else None
            ),
        )
        return TaskOperationResult.ok(task, "Task claimed successfully")

    async def update_status(
        self,
        task_id: str,
        contractor_id: str,
        new_status: str,
    ) -> TaskOperationResult:
        """指派人推进任务状态（先读后写，非条件写入）"""
        try:
            task = await self._stores.task_store.get_task(task_id)
            if task is None:
                return TaskOperationResult.fail("Task not found")

            if not task.is_assignee(contractor_id):
                return TaskOperationResult.fail("Task not assigned to you")

            try:
                target = TaskStatus(new_status)
            except ValueError:
                target = None
            if target is None or target not in UPDATABLE_STATUSES:
                return TaskOperationResult.fail(
                    "Invalid status value", FailureKind.VALIDATION
                )

            previous_status = task.status
            if not validate_transition(previous_status, target):
                return TaskOperationResult.fail(
                    f"Invalid status transition from {previous_status.value} "
                    f"to {target.value}"
                )

            now = datetime.now(UTC)
            task.status = target
            task.updated_at = now
            if target == TaskStatus.COMPLETED:
                task.completed_at = now
            await save_task_and_commit(self._stores.conn, self._stores.task_store, task)

            log.info(
                "task_status_updated",
                task_id=task_id,
                contractor_id=contractor_id,
                from_status=previous_status,
                to_status=target,
            )
        except Exception as e:
            log.error(
                "update_status_failed",
                task_id=task_id,
                contractor_id=contractor_id,
                error=str(e),
            )
            return TaskOperationResult.fail(
                "Failed to update task status", FailureKind.SERVER_ERROR
            )

        await self._run_side_effect(
            "broadcast_task_status_update",
            task_id,
            (
                self._broadcaster.broadcast_task_status_update(
                    task, previous_status, contractor_id
                )
                if self._broadcaster
                else None
            ),
        )
        return TaskOperationResult.ok(task, "Task status updated successfully")

    async def complete_task(
        self,
        task_id: str,
        contractor_id: str,
        notes: str | None = None,
        photos: list[str] | None = None,
    ) -> TaskOperationResult:
        """完成任务：仅 In Progress 可完成，最多 5 张照片"""
        try:
            task = await self._stores.task_store.get_task(task_id)
            if task is None:
                return TaskOperationResult.fail("Task not found")

            if not task.is_assignee(contractor_id):
                return TaskOperationResult.fail("not assigned to you")

            if task.status != TaskStatus.IN_PROGRESS:
                return TaskOperationResult.fail(
                    "Task must be in progress to be completed"
                )

            if photos and len(photos) > MAX_COMPLETION_PHOTOS:
                return TaskOperationResult.fail(
                    f"Maximum {MAX_COMPLETION_PHOTOS} photos allowed per task completion",
                    FailureKind.VALIDATION,
                )

            if notes and len(notes) > COMPLETION_NOTES_MAX:
                return TaskOperationResult.fail(
                    f"Completion notes must be at most {COMPLETION_NOTES_MAX} characters",
                    FailureKind.VALIDATION,
                )

            now = datetime.now(UTC)
            task.status = TaskStatus.COMPLETED
            task.completed_at = now
            task.updated_at = now
            if notes:
                task.completion_notes = notes
            if photos:
                task.completion_photos = list(photos)
            await save_task_and_commit(self._stores.conn, self._stores.task_store, task)

            log.info("task_completed", task_id=task_id, contractor_id=contractor_id)
        except Exception as e:
            log.error(
                "complete_task_failed",
                task_id=task_id,
                contractor_id=contractor_id,
                error=str(e),
            )
            return TaskOperationResult.fail(
                "Failed to complete task", FailureKind.SERVER_ERROR
            )

        await self._run_side_effect(
            "broadcast_task_completed",
            task_id,
            (
                self._broadcaster.broadcast_task_completed(task, contractor_id)
                if self._broadcaster
                else None
            ),
        )
        return TaskOperationResult.ok(task, "Task completed successfully")

    async def cancel_task(self, task_id: str, reason: str) -> TaskOperationResult:
        """管理端取消任务，逐个通知所有指派人"""
        try:
            task = await self._stores.task_store.get_task(task_id)
            if task is None:
                return TaskOperationResult.fail("Task not found")

            if task.status not in _CANCELLABLE_STATES:
                return TaskOperationResult.fail(
                    f"Task cannot be cancelled from status {task.status.value}"
                )

            task.status = TaskStatus.CANCELLED
            task.updated_at = datetime.now(UTC)
            await save_task_and_commit(self._stores.conn, self._stores.task_store, task)
            log.info("task_cancelled", task_id=task_id, reason=reason)
        except Exception as e:
            log.error("cancel_task_failed", task_id=task_id, error=str(e))
            return TaskOperationResult.fail(
                "Failed to cancel task", FailureKind.SERVER_ERROR
            )

        affected = list(task.assigned_contractors)
        if task.assigned_to and task.assigned_to not in affected:
            affected.append(task.assigned_to)
        await self._run_side_effect(
            "broadcast_task_cancelled",
            task_id,
            (
                self._broadcaster.broadcast_task_cancelled(task, reason, affected)
                if self._broadcaster
                else None
            ),
        )
        return TaskOperationResult.ok(task, "Task cancelled successfully")

    async def _run_side_effect(
        self,
        name: str,
        task_id: str,
        side_effect: Awaitable[None] | None,
    ) -> None:
        """执行提交后的旁路操作；失败只记日志"""
        if side_effect is None:
            return
        try:
            await side_effect
        except Exception as e:
            log.warning(
                "task_side_effect_failed",
                side_effect=name,
                task_id=task_id,
                error=str(e),
            )
