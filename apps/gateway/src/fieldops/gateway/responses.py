"""HTTP 响应构造 -- 统一错误体 {"error": {"code", "message"}}

引擎结果映射：
- validation -> 400
- business_rule -> 404（任务不存在）/ 403（身份或指派不符）/ 409（其他）
- server_error -> 500
"""

from typing import Any

from fieldops.core.models import FailureKind, TaskOperationResult
from starlette.responses import JSONResponse

# 视为授权失败的原因片段
_FORBIDDEN_MARKERS = ("not assigned to you", "not authorized")


def error_response(status_code: int, code: str, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"error": {"code": code, "message": message}},
    )


def classify_failure(result: TaskOperationResult) -> tuple[int, str]:
    """失败结果 -> (HTTP 状态码, 错误码)"""
    if result.failure_kind == FailureKind.VALIDATION:
        return 400, "VALIDATION_ERROR"
    if result.failure_kind == FailureKind.SERVER_ERROR:
        return 500, "SERVER_ERROR"
    if result.message == "Task not found":
        return 404, "TASK_NOT_FOUND"
    if any(marker in result.message for marker in _FORBIDDEN_MARKERS):
        return 403, "FORBIDDEN"
    return 409, "CONFLICT"


def result_response(result: TaskOperationResult) -> JSONResponse | dict[str, Any]:
    """引擎结果 -> HTTP 响应"""
    if not result.success:
        status_code, code = classify_failure(result)
        return error_response(status_code, code, result.message)
    return {
        "success": True,
        "message": result.message,
        "task": result.task.model_dump(mode="json") if result.task else None,
    }
