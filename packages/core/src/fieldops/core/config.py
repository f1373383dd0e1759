"""配置常量模块 -- 可通过环境变量覆盖

包含数据库路径、派单半径、通知保留期、实时通道参数等可配置常量。
"""

import os
from pathlib import Path


def _get_base_dir() -> Path:
    """获取项目 data 基础目录"""
    return Path(os.environ.get("FIELDOPS_DATA_DIR", "data"))


def get_db_path() -> str:
    """获取 SQLite 数据库路径"""
    return os.environ.get(
        "FIELDOPS_DB_PATH",
        str(_get_base_dir() / "sqlite" / "fieldops.db"),
    )


# 可接任务查询的默认半径（公里）
DEFAULT_SEARCH_RADIUS_KM: float = float(
    os.environ.get("FIELDOPS_DEFAULT_RADIUS_KM", "50")
)

# 新任务广播半径（公里）
NEW_TASK_BROADCAST_RADIUS_KM: float = float(
    os.environ.get("FIELDOPS_NEW_TASK_RADIUS_KM", "50")
)

# 新任务通知有效期（小时）
NEW_TASK_NOTIFICATION_TTL_HOURS: float = float(
    os.environ.get("FIELDOPS_NEW_TASK_TTL_HOURS", "24")
)

# 重连时回放的未送达通知上限
UNDELIVERED_REPLAY_CAP: int = int(os.environ.get("FIELDOPS_UNDELIVERED_CAP", "50"))

# 已读通知保留天数
NOTIFICATION_RETENTION_DAYS: int = int(
    os.environ.get("FIELDOPS_NOTIFICATION_RETENTION_DAYS", "30")
)

# SSE 心跳间隔（秒）
SSE_HEARTBEAT_INTERVAL: int = int(
    os.environ.get("FIELDOPS_SSE_HEARTBEAT_INTERVAL", "15")
)

# 每个实时连接的队列容量，满则视为投递失败
LIVE_QUEUE_MAXSIZE: int = int(os.environ.get("FIELDOPS_LIVE_QUEUE_MAXSIZE", "100"))

# 完成任务时最多附带的照片数
MAX_COMPLETION_PHOTOS: int = 5

# 完成备注长度上限
COMPLETION_NOTES_MAX: int = 2000

# 通知标题/正文长度上限
NOTIFICATION_TITLE_MAX: int = 200
NOTIFICATION_MESSAGE_MAX: int = 1000

# 默认分页大小
DEFAULT_PAGE_LIMIT: int = 20
