"""structlog 配置模块

FIELDOPS_LOG_FORMAT=json 输出结构化 JSON，其余取值输出可读的控制台格式。
每条日志带 service 字段，便于和接单/目录服务的日志混排检索。
Logfire APM 由 LOGFIRE_SEND_TO_LOGFIRE 控制，默认关闭。
"""

import logging
import os

import structlog
from fastapi import FastAPI

SERVICE_NAME = "fieldops-gateway"

# 高频且对派单排障无用的第三方 logger
_QUIET_LOGGERS = ("sse_starlette", "aiosqlite")


def _add_service(
    logger: logging.Logger, method_name: str, event_dict: structlog.types.EventDict
) -> structlog.types.EventDict:
    event_dict.setdefault("service", SERVICE_NAME)
    return event_dict


def _select_renderer(log_format: str) -> structlog.types.Processor:
    if log_format == "json":
        return structlog.processors.JSONRenderer(ensure_ascii=False)
    return structlog.dev.ConsoleRenderer()


def setup_logging() -> None:
    """初始化 structlog + 标准库 logging

    环境变量：
    - FIELDOPS_LOG_FORMAT: "json" | "dev"（默认）
    - FIELDOPS_LOG_LEVEL: 根 logger 级别，无法识别时回退到 INFO
    """
    log_format = os.environ.get("FIELDOPS_LOG_FORMAT", "dev").lower()
    log_level = os.environ.get("FIELDOPS_LOG_LEVEL", "INFO").upper()

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        _add_service,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    # uvicorn 等第三方库的标准库日志也走同一个渲染器
    handler = logging.StreamHandler()
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processor=_select_renderer(log_format),
            foreign_pre_chain=shared_processors,
        )
    )

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, log_level, logging.INFO))

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def setup_logfire(app: FastAPI) -> None:
    """可选启用 Logfire APM（LOGFIRE_SEND_TO_LOGFIRE=true 且已配置 LOGFIRE_TOKEN）

    logfire 属于 apm extra，未安装或初始化失败时只记一条告警。
    """
    if os.environ.get("LOGFIRE_SEND_TO_LOGFIRE", "false").lower() != "true":
        return
    try:
        import logfire

        logfire.configure(service_name=SERVICE_NAME)
        logfire.instrument_fastapi(app)
    except Exception as e:
        structlog.get_logger().warning(
            "logfire_init_failed",
            message="Logfire 初始化失败，降级为纯本地日志",
            error=str(e),
        )
