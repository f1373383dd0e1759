"""SQLite 数据库初始化

PRAGMA 配置 + 三张表 DDL + 索引创建 + haversine_km SQL 函数注册。
使用 aiosqlite 异步操作。
"""

import aiosqlite

from ..geo import sql_haversine_km

# tasks 表 DDL
_TASKS_DDL = """
CREATE TABLE IF NOT EXISTS tasks (
    task_id              TEXT PRIMARY KEY,
    order_id             TEXT NOT NULL,
    type                 TEXT NOT NULL,
    title                TEXT NOT NULL DEFAULT '',
    description          TEXT NOT NULL DEFAULT '',
    priority             TEXT NOT NULL DEFAULT 'Medium',
    status               TEXT NOT NULL DEFAULT 'Pending',
    assigned_contractors TEXT NOT NULL DEFAULT '[]',
    assigned_to          TEXT,
    lng                  REAL,
    lat                  REAL,
    address              TEXT NOT NULL DEFAULT '',
    scheduled_at         TEXT NOT NULL,
    completed_at         TEXT,
    completion_notes     TEXT,
    completion_photos    TEXT NOT NULL DEFAULT '[]',
    created_at           TEXT NOT NULL,
    updated_at           TEXT NOT NULL
);
"""

_TASKS_INDEXES = [
    "CREATE INDEX IF NOT EXISTS idx_tasks_status ON tasks(status);",
    "CREATE INDEX IF NOT EXISTS idx_tasks_order_id ON tasks(order_id);",
    "CREATE INDEX IF NOT EXISTS idx_tasks_assigned_to ON tasks(assigned_to, status);",
    (
        "CREATE INDEX IF NOT EXISTS idx_tasks_status_schedule "
        "ON tasks(status, priority, scheduled_at);"
    ),
]

# notifications 表 DDL
_NOTIFICATIONS_DDL = """
CREATE TABLE IF NOT EXISTS notifications (
    notification_id TEXT PRIMARY KEY,
    contractor_id   TEXT NOT NULL,
    type            TEXT NOT NULL,
    priority        TEXT NOT NULL DEFAULT 'normal',
    priority_rank   INTEGER NOT NULL DEFAULT 2,
    title           TEXT NOT NULL,
    message         TEXT NOT NULL,
    data            TEXT,
    delivered       INTEGER NOT NULL DEFAULT 0,
    delivered_at    TEXT,
    read            INTEGER NOT NULL DEFAULT 0,
    read_at         TEXT,
    created_at      TEXT NOT NULL,
    expires_at      TEXT
);
"""

_NOTIFICATIONS_INDEXES = [
    (
        "CREATE INDEX IF NOT EXISTS idx_notifications_contractor_created "
        "ON notifications(contractor_id, created_at DESC);"
    ),
    (
        "CREATE INDEX IF NOT EXISTS idx_notifications_contractor_read "
        "ON notifications(contractor_id, read, created_at DESC);"
    ),
    (
        "CREATE INDEX IF NOT EXISTS idx_notifications_contractor_delivered "
        "ON notifications(contractor_id, delivered, priority_rank DESC);"
    ),
    "CREATE INDEX IF NOT EXISTS idx_notifications_expires_at ON notifications(expires_at);",
]

# contractors 表 DDL（外部承包商目录的本地镜像）
_CONTRACTORS_DDL = """
CREATE TABLE IF NOT EXISTS contractors (
    contractor_id TEXT PRIMARY KEY,
    name          TEXT NOT NULL DEFAULT '',
    email         TEXT NOT NULL DEFAULT '',
    skills        TEXT NOT NULL DEFAULT '[]',
    is_active     INTEGER NOT NULL DEFAULT 1,
    is_verified   INTEGER NOT NULL DEFAULT 0,
    created_at    TEXT NOT NULL
);
"""


async def register_functions(conn: aiosqlite.Connection) -> None:
    """注册自定义 SQL 函数（每个连接都需要注册一次）"""
    await conn.create_function(
        "haversine_km", 4, sql_haversine_km, deterministic=True
    )


async def init_db(conn: aiosqlite.Connection) -> None:
    """初始化数据库：设置 PRAGMA + 创建表 + 创建索引

    Args:
        conn: aiosqlite 数据库连接
    """
    # 设置 PRAGMA
    await conn.execute("PRAGMA journal_mode = WAL;")
    await conn.execute("PRAGMA foreign_keys = ON;")
    await conn.execute("PRAGMA busy_timeout = 5000;")

    # 各 Store 按列名读取
    conn.row_factory = aiosqlite.Row
    await register_functions(conn)

    # 创建表
    await conn.execute(_TASKS_DDL)
    await conn.execute(_NOTIFICATIONS_DDL)
    await conn.execute(_CONTRACTORS_DDL)

    # 创建索引
    for idx_sql in _TASKS_INDEXES + _NOTIFICATIONS_INDEXES:
        await conn.execute(idx_sql)

    await conn.commit()


async def verify_wal_mode(conn: aiosqlite.Connection) -> bool:
    """验证 WAL 模式是否生效

    Returns:
        True 如果 WAL 模式已启用
    """
    cursor = await conn.execute("PRAGMA journal_mode;")
    row = await cursor.fetchone()
    return row is not None and row[0].lower() == "wal"
