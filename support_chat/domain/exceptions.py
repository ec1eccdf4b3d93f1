"""统一业务异常模型。

所有跨模块抛出的业务级错误都应该继承自 BusinessError，
便于在 API 层统一映射为 HTTP 响应。
"""


class BusinessError(Exception):
    """业务异常基类。

    Attributes:
        code: 机器可读错误码（如 "STORAGE_UNAVAILABLE"）。
        message: 用户可读错误信息。
        http_status: 映射到 HTTP 时可用的状态码，默认 400。
        extra: 其他补充字段（例如 conversation_id、provider 等）。
    """

    def __init__(self, code: str, message: str, http_status: int = 400, **extra):
        self.code = code
        self.message = message
        self.http_status = http_status
        self.extra = extra
        super().__init__(message)


class ValidationError(BusinessError):
    """请求参数或配置校验失败。"""

    def __init__(self, message: str, code: str = "VALIDATION_ERROR", **extra):
        super().__init__(code=code, message=message, http_status=400, **extra)


class InvalidArgument(BusinessError):
    """内部调用传入了非法参数（例如窗口大小 <= 0）。"""

    def __init__(self, message: str, **extra):
        super().__init__(code="INVALID_ARGUMENT", message=message, http_status=400, **extra)


class ConversationNotFound(BusinessError):
    """会话 ID 不存在。"""

    def __init__(self, conversation_id, **extra):
        super().__init__(
            code="CONVERSATION_NOT_FOUND",
            message=f"Conversation {conversation_id} not found",
            http_status=404,
            conversation_id=conversation_id,
            **extra,
        )


class StorageUnavailable(BusinessError):
    """持久层不可用（连接失败、I/O 错误等），不做重试。"""

    def __init__(self, message: str = "Storage is unavailable", **extra):
        super().__init__(code="STORAGE_UNAVAILABLE", message=message, http_status=500, **extra)


# ---- Provider 侧异常：只在 providers 与 ReplyGenerator 之间流动 ----


class NetworkError(BusinessError):
    """网络层错误，例如连接失败、超时等。"""


class ApiError(BusinessError):
    """第三方 API 返回非 2xx 错误或响应无法解析时抛出。"""


class AuthenticationError(ApiError):
    """Provider 认证失败（401/403），通常是 API Key 无效。"""


class RateLimitError(BusinessError):
    """Provider 限流或过载（429/529）。"""
