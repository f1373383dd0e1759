"""健康检查路由

GET /health: Liveness 检查，永远返回 200。
GET /ready: Readiness 检查，包含 SQLite 连通性、磁盘空间、实时通道状态。
"""

import shutil
from pathlib import Path

import structlog
from fastapi import APIRouter, Request
from fieldops.core.config import get_db_path
from starlette.responses import JSONResponse

log = structlog.get_logger()

router = APIRouter()


@router.get("/health")
async def health():
    """Liveness 检查 -- 永远返回 200"""
    return {"status": "ok"}


@router.get("/ready")
async def ready(request: Request):
    """Readiness 检查 -- 验证核心依赖可用性

    检查项：
    1. sqlite: 数据库连通性
    2. disk_space_mb: 数据库所在磁盘剩余空间
    3. live_connections: 当前实时连接数（仅信息）
    """
    checks = {}
    all_ok = True

    # 1. SQLite 连通性检查
    try:
        store_group = request.app.state.store_group
        cursor = await store_group.conn.execute("SELECT 1")
        await cursor.fetchone()
        checks["sqlite"] = "ok"
    except Exception as e:
        log.warning("ready_sqlite_failed", error=str(e))
        checks["sqlite"] = f"error: {str(e)}"
        all_ok = False

    # 2. 磁盘空间检查
    try:
        db_dir = Path(get_db_path()).parent
        target = db_dir if db_dir.exists() else Path("/")
        checks["disk_space_mb"] = shutil.disk_usage(target).free // (1024 * 1024)
    except Exception:
        checks["disk_space_mb"] = 0
        all_ok = False

    # 3. 实时通道
    hub = getattr(request.app.state, "live_hub", None)
    checks["live_connections"] = hub.connection_count() if hub is not None else 0

    status_code = 200 if all_ok else 503
    return JSONResponse(
        status_code=status_code,
        content={
            "status": "ready" if all_ok else "not_ready",
            "checks": checks,
        },
    )
