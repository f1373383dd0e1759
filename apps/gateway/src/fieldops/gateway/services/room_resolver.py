"""RoomResolver -- 在线承包商的内存索引

按身份、地理位置、技能解析广播目标。只是在线连接的缓存，
不是任何数据的权威来源，进程重启后由重连重新填充。
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime

import structlog
from fieldops.core.geo import haversine_km
from fieldops.core.matching import skills_overlap

log = structlog.get_logger()


@dataclass
class ConnectionRecord:
    """单个在线承包商的定向信息"""

    contractor_id: str
    skills: list[str] = field(default_factory=list)
    position: tuple[float, float] | None = None  # (lat, lng)
    connected_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = field(default_factory=lambda: datetime.now(UTC))


class RoomResolver:
    """在线承包商定向解析器

    所有方法只在事件循环内调用，不加锁。
    查询未知承包商时静默返回，不抛异常。
    """

    def __init__(self) -> None:
        self._records: dict[str, ConnectionRecord] = {}

    def register(
        self,
        contractor_id: str,
        skills: list[str] | None = None,
        position: tuple[float, float] | None = None,
    ) -> ConnectionRecord:
        """登记在线承包商（重复登记会覆盖旧记录）"""
        record = ConnectionRecord(
            contractor_id=contractor_id,
            skills=list(skills or []),
            position=position,
        )
        self._records[contractor_id] = record
        log.info(
            "resolver_registered",
            contractor_id=contractor_id,
            skills=record.skills,
            has_position=position is not None,
        )
        return record

    def unregister(self, contractor_id: str) -> None:
        if self._records.pop(contractor_id, None) is not None:
            log.info("resolver_unregistered", contractor_id=contractor_id)

    def update_position(self, contractor_id: str, lat: float, lng: float) -> bool:
        """更新位置；未登记的承包商返回 False"""
        record = self._records.get(contractor_id)
        if record is None:
            return False
        record.position = (lat, lng)
        record.updated_at = datetime.now(UTC)
        log.debug("resolver_position_updated", contractor_id=contractor_id)
        return True

    def update_skills(self, contractor_id: str, skills: list[str]) -> bool:
        """更新技能；未登记的承包商返回 False"""
        record = self._records.get(contractor_id)
        if record is None:
            return False
        record.skills = list(skills)
        record.updated_at = datetime.now(UTC)
        return True

    def contractors_in_location(
        self,
        lat: float,
        lng: float,
        radius_km: float,
    ) -> list[str]:
        """半径内有位置的在线承包商（线性扫描）"""
        result = []
        for contractor_id, record in self._records.items():
            if record.position is None:
                continue
            r_lat, r_lng = record.position
            if haversine_km(lat, lng, r_lat, r_lng) <= radius_km:
                result.append(contractor_id)
        return result

    def contractors_with_skills(self, skills: list[str]) -> list[str]:
        """技能与任一给定技能匹配的在线承包商（不区分大小写，子串双向）"""
        return [
            contractor_id
            for contractor_id, record in self._records.items()
            if skills_overlap(skills, record.skills)
        ]

    def connected_contractors(self) -> list[str]:
        return list(self._records)

    def is_connected(self, contractor_id: str) -> bool:
        return contractor_id in self._records

    def get_record(self, contractor_id: str) -> ConnectionRecord | None:
        return self._records.get(contractor_id)

    def stats(self) -> dict:
        """在线统计：连接数、有位置的数量、各技能人数"""
        skill_counts: dict[str, int] = {}
        for record in self._records.values():
            for skill in record.skills:
                key = skill.lower()
                skill_counts[key] = skill_counts.get(key, 0) + 1
        return {
            "connected": len(self._records),
            "with_position": sum(
                1 for r in self._records.values() if r.position is not None
            ),
            "skills": skill_counts,
        }
