"""FieldOps 异常体系

任务引擎不抛业务异常（以 TaskOperationResult 返回），
这里只定义通知账本、任务列表查询需要向调用方传播的异常。
"""


class FieldOpsError(Exception):
    """FieldOps 基础异常"""

    def __init__(self, message: str, recoverable: bool = True) -> None:
        """
        Args:
            message: 错误描述
            recoverable: 是否可通过重试恢复
        """
        super().__init__(message)
        self.recoverable = recoverable


class NotificationValidationError(FieldOpsError):
    """通知内容不合法（标题/正文超长、缺少分类字段等），重试无意义"""

    def __init__(self, message: str) -> None:
        super().__init__(message, recoverable=False)


class NotificationStoreError(FieldOpsError):
    """通知持久化失败

    批量写入时整批回滚，调用方需整体重试。
    """

    def __init__(self, operation: str, original_error: Exception) -> None:
        """
        Args:
            operation: 失败的账本操作名
            original_error: 原始异常
        """
        super().__init__(f"Failed to {operation}", recoverable=True)
        self.operation = operation
        self.original_error = original_error


class TaskQueryError(FieldOpsError):
    """任务列表查询失败"""

    def __init__(self, message: str, original_error: Exception) -> None:
        super().__init__(message, recoverable=True)
        self.original_error = original_error
