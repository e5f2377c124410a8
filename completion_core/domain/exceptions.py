"""统一业务异常模型。

所有跨模块抛出的业务级错误都应该继承自 BusinessError，
便于在调用方（编辑器 / UI 层）做统一捕获与用户提示。

流式会话只会以“恰好一次”的方式抛出这些异常之一；
解码失败、提前收到 [DONE] 等可本地恢复的情况只记日志，不会出现在这里。
"""


class BusinessError(Exception):
    """业务异常基类。

    Attributes:
        code: 机器可读错误码（如 "MISSING_API_KEY"）。
        message: 用户可读错误信息。
        http_status: 映射到 HTTP 时可用的状态码，默认 400。
        extra: 其他补充字段（例如 provider、request_id 等）。
    """

    def __init__(self, code: str, message: str, http_status: int = 400, **extra):
        self.code = code
        self.message = message
        self.http_status = http_status
        self.extra = extra
        super().__init__(message)

    @property
    def provider(self):
        return self.extra.get("provider")


class TransportError(BusinessError):
    """传输层错误基类：非 2xx 状态、连接失败、读超时等。"""


class ApiError(TransportError):
    """服务端返回非 2xx，或在流中下发 error 事件时抛出。"""


class RateLimitError(ApiError):
    """Provider 限流错误（HTTP 429），由上层负责重试/退避策略。"""


class NetworkError(TransportError):
    """网络层错误，例如 DNS 失败、连接被重置、TLS 握手失败等。"""


class StreamTimeoutError(TransportError):
    """建立连接或等待下一段数据超时。"""


class StreamIncompleteError(TransportError):
    """连接已关闭，但流尚未到达终止状态。"""


class StreamCancelledError(BusinessError):
    """调用方主动中止了流式会话。"""


class ValidationError(BusinessError):
    """参数或配置校验失败（包括缺少 API Key）。"""


class NotInitializedError(BusinessError):
    """Provider 客户端在 init() 之前被调用。"""
