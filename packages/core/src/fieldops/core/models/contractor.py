"""Contractor 目录记录

承包商资料由外部系统维护，此处只保留派单需要的字段。
"""

from datetime import datetime

from pydantic import BaseModel, Field


class Contractor(BaseModel):
    """承包商资料"""

    contractor_id: str = Field(description="承包商 ID")
    name: str = Field(default="", description="姓名")
    email: str = Field(default="", description="邮箱")
    skills: list[str] = Field(default_factory=list, description="声明的技能")
    is_active: bool = Field(default=True)
    is_verified: bool = Field(default=False)
    created_at: datetime

    @property
    def can_take_work(self) -> bool:
        return self.is_active and self.is_verified
