"""TraceMiddleware -- 任务/承包商上下文绑定

/api/tasks/{task_id}... 路径绑定 trace_id，
携带 X-Contractor-ID 的请求绑定 contractor_id，贯穿该请求的全部日志。
"""

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from ..deps import CONTRACTOR_HEADER

# /api/tasks 下的固定子路由，不是 task_id
_RESERVED_SEGMENTS = {"available", "mine"}


def extract_task_id(path: str) -> str | None:
    """从 /api/tasks/{task_id}[/...] 提取 task_id"""
    parts = [p for p in path.split("/") if p]
    if len(parts) >= 3 and parts[0] == "api" and parts[1] == "tasks":
        candidate = parts[2]
        if candidate not in _RESERVED_SEGMENTS:
            return candidate
    return None


class TraceMiddleware(BaseHTTPMiddleware):
    """任务级追踪中间件"""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        task_id = extract_task_id(request.url.path)
        if task_id:
            structlog.contextvars.bind_contextvars(trace_id=f"trace-{task_id}")

        contractor_id = request.headers.get(CONTRACTOR_HEADER)
        if contractor_id:
            structlog.contextvars.bind_contextvars(contractor_id=contractor_id)

        return await call_next(request)
