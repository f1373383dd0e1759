"""技能匹配规则

认领时的匹配刻意宽松：子串双向包含，外加若干手工维护的跨技能放行。
这些规则是业务约定，修改前需与运营确认，不要收紧成精确匹配。
"""

from collections.abc import Iterable

from .models.enums import TaskType


def _normalize(skills: Iterable[str]) -> list[str]:
    return [s.lower() for s in skills if isinstance(s, str)]


def skill_allows_task_type(skill: str, task_type: str) -> bool:
    """单个技能是否允许认领该类型任务

    Args:
        skill: 承包商声明的技能
        task_type: 任务类型（如 "Delivery"）

    Returns:
        True 如果放行
    """
    skill_lower = skill.lower()
    type_lower = task_type.lower()
    return (
        skill_lower in type_lower
        or type_lower in skill_lower
        # 配送与安装互通
        or (
            type_lower == "setup"
            and ("delivery" in skill_lower or "install" in skill_lower)
        )
        or (
            type_lower == "delivery"
            and ("setup" in skill_lower or "transport" in skill_lower)
        )
        # 维修/通用技能可接任何任务（注意 "install" 也包含 "all"）
        or "maintenance" in skill_lower
        or "general" in skill_lower
        or "all" in skill_lower
        # 取件与配送互通
        or (type_lower == "pickup" and "delivery" in skill_lower)
        or (type_lower == "delivery" and "pickup" in skill_lower)
    )


def can_claim_task_type(skills: list[str] | None, task_type: str) -> bool:
    """承包商是否具备认领该类型任务的技能

    未声明任何技能视为放行：缺少技能数据不是拒绝理由。
    """
    if not skills:
        return True
    return any(
        skill_allows_task_type(skill, task_type)
        for skill in skills
        if isinstance(skill, str)
    )


def matching_task_types(skills: Iterable[str]) -> list[TaskType]:
    """列出与技能子串匹配的任务类型（列表查询用，不含跨技能放行）"""
    normalized = _normalize(skills)
    matched: list[TaskType] = []
    for task_type in TaskType:
        type_lower = task_type.value.lower()
        if any(s in type_lower or type_lower in s for s in normalized if s):
            matched.append(task_type)
    return matched


def skills_overlap(required: Iterable[str], declared: Iterable[str]) -> bool:
    """两组技能是否有交集（不区分大小写，子串双向容错）"""
    declared_lower = [s for s in _normalize(declared) if s]
    for skill in _normalize(required):
        if not skill:
            continue
        if any(skill in d or d in skill for d in declared_lower):
            return True
    return False
