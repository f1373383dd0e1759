"""FastAPI 应用主文件

app 创建 + lifespan 管理：DB 初始化/关闭 + 实时通道组件初始化 + 路由注册 + 错误映射。
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fieldops.core.config import get_db_path
from fieldops.core.exceptions import (
    NotificationStoreError,
    NotificationValidationError,
    TaskQueryError,
)
from fieldops.core.store import create_store_group

from .deps import CONTRACTOR_HEADER, MissingContractorError
from .middleware.logging_config import setup_logfire, setup_logging
from .middleware.logging_mw import LoggingMiddleware
from .middleware.trace_mw import TraceMiddleware
from .responses import error_response
from .routes import cancel, health, notifications, stream, tasks
from .services.broadcaster import RealtimeBroadcaster
from .services.live_hub import LiveHub
from .services.notification_service import NotificationLedger
from .services.room_resolver import RoomResolver
from .services.task_service import TaskService

log = structlog.get_logger()


def wire_services(app: FastAPI, store_group) -> None:
    """在 app.state 上组装全部服务实例（测试中可直接调用）"""
    app.state.store_group = store_group
    app.state.live_hub = LiveHub()
    app.state.room_resolver = RoomResolver()
    app.state.ledger = NotificationLedger(store_group)
    app.state.broadcaster = RealtimeBroadcaster(
        app.state.live_hub,
        app.state.room_resolver,
        app.state.ledger,
    )
    app.state.task_service = TaskService(store_group, app.state.broadcaster)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """应用生命周期管理：启动时初始化 DB 和实时组件，关闭时清理连接"""
    db_path = get_db_path()
    store_group = await create_store_group(db_path)
    wire_services(app, store_group)
    log.info("gateway_started", db_path=db_path)

    yield

    # 关闭：清理数据库连接
    if hasattr(app.state, "store_group") and app.state.store_group:
        await app.state.store_group.conn.close()
    log.info("gateway_stopped")


def register_error_handlers(app: FastAPI) -> None:
    """将领域异常映射为统一错误体"""

    @app.exception_handler(MissingContractorError)
    async def _missing_contractor(request: Request, exc: MissingContractorError):
        return error_response(
            401, "UNAUTHENTICATED", f"Missing {CONTRACTOR_HEADER} header"
        )

    @app.exception_handler(RequestValidationError)
    async def _validation(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        message = errors[0]["msg"] if errors else "Invalid request"
        return error_response(400, "VALIDATION_ERROR", message)

    @app.exception_handler(NotificationValidationError)
    async def _notification_validation(
        request: Request, exc: NotificationValidationError
    ):
        return error_response(400, "VALIDATION_ERROR", str(exc))

    @app.exception_handler(NotificationStoreError)
    async def _notification_store(request: Request, exc: NotificationStoreError):
        return error_response(500, "SERVER_ERROR", str(exc))

    @app.exception_handler(TaskQueryError)
    async def _task_query(request: Request, exc: TaskQueryError):
        return error_response(500, "SERVER_ERROR", str(exc))


def create_app() -> FastAPI:
    """创建 FastAPI 应用实例"""
    app = FastAPI(
        title="FieldOps Gateway",
        version="0.1.0",
        description="FieldOps 派单核心 API",
        lifespan=lifespan,
    )

    # 注册中间件（顺序：先 Trace 后 Logging）
    app.add_middleware(TraceMiddleware)
    app.add_middleware(LoggingMiddleware)

    # 初始化日志
    setup_logging()
    setup_logfire(app)

    register_error_handlers(app)

    # 注册路由（tasks 中的固定路径需先于 {task_id}）
    app.include_router(tasks.router, tags=["tasks"])
    app.include_router(cancel.router, tags=["tasks"])
    app.include_router(notifications.router, tags=["notifications"])
    app.include_router(stream.router, tags=["stream"])
    app.include_router(health.router, tags=["health"])

    return app


# 默认 app 实例（uvicorn 入口）
app = create_app()
