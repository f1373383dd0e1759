"""状态机流转单元测试

测试内容：
1. 合法流转通过
2. 回退和跳跃被拒绝
3. 终态不可再流转
"""

import pytest
from fieldops.core.models.enums import (
    TERMINAL_STATES,
    UPDATABLE_STATUSES,
    VALID_TRANSITIONS,
    TaskStatus,
    validate_transition,
)


class TestStateMachineTransitions:
    """状态机流转验证"""

    @pytest.mark.parametrize(
        "from_status,to_status",
        [
            (TaskStatus.PENDING, TaskStatus.ASSIGNED),
            (TaskStatus.ASSIGNED, TaskStatus.IN_PROGRESS),
            (TaskStatus.ASSIGNED, TaskStatus.CANCELLED),
            (TaskStatus.IN_PROGRESS, TaskStatus.COMPLETED),
            (TaskStatus.IN_PROGRESS, TaskStatus.CANCELLED),
        ],
    )
    def test_valid_transition(self, from_status: TaskStatus, to_status: TaskStatus):
        """合法流转应通过验证"""
        assert validate_transition(from_status, to_status) is True

    @pytest.mark.parametrize(
        "from_status,to_status",
        [
            (TaskStatus.PENDING, TaskStatus.IN_PROGRESS),
            (TaskStatus.PENDING, TaskStatus.COMPLETED),
            (TaskStatus.PENDING, TaskStatus.CANCELLED),
            (TaskStatus.ASSIGNED, TaskStatus.PENDING),
            (TaskStatus.ASSIGNED, TaskStatus.COMPLETED),
            (TaskStatus.IN_PROGRESS, TaskStatus.ASSIGNED),
            (TaskStatus.IN_PROGRESS, TaskStatus.IN_PROGRESS),
        ],
    )
    def test_invalid_transition(self, from_status: TaskStatus, to_status: TaskStatus):
        """回退、原地和跳跃流转应被拒绝"""
        assert validate_transition(from_status, to_status) is False

    def test_all_terminal_states_cannot_transition(self):
        """所有终态都不能再流转"""
        for terminal in TERMINAL_STATES:
            for target in TaskStatus:
                assert validate_transition(terminal, target) is False, (
                    f"终态 {terminal} 不应能流转到 {target}"
                )

    def test_every_status_has_transition_entry(self):
        """每个状态都在流转表中"""
        assert set(VALID_TRANSITIONS) == set(TaskStatus)

    def test_pending_is_not_updatable_target(self):
        """Pending 只能是入口状态"""
        assert TaskStatus.PENDING not in UPDATABLE_STATUSES
        assert UPDATABLE_STATUSES == set(TaskStatus) - {TaskStatus.PENDING}
