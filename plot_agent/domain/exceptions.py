"""统一业务异常模型。

所有跨模块抛出的业务级错误都继承自 BusinessError，
Provider 层抛出的异常在 CompletionClient 边界被转换为 TransportFailure 值，
只有启动期错误（如 Schema 加载失败）会一直向上传播。
"""


class BusinessError(Exception):
    """业务异常基类。

    Attributes:
        code: 机器可读错误码（如 "SESSION_NOT_FOUND"）。
        message: 用户可读错误信息。
        http_status: 映射到 HTTP 时可用的状态码，默认 400。
        extra: 其他补充字段（例如 session_id、provider 等）。
    """

    def __init__(self, code: str, message: str, http_status: int = 400, **extra):
        self.code = code
        self.message = message
        self.http_status = http_status
        self.extra = extra
        super().__init__(message)


class NetworkError(BusinessError):
    """网络层错误，例如连接失败、超时等。"""


class ApiError(BusinessError):
    """API 返回非 2xx/429 错误，或响应体缺少 choices 时抛出。"""


class RateLimitError(BusinessError):
    """Provider 限流错误（不做重试）。"""


class SchemaLoadError(BusinessError):
    """绘图 Schema 缺失或格式错误，属于致命的启动错误。"""
