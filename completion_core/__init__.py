"""Completion Core 顶层包。

该包提供客户端流式补全核心：把对话与采样参数发送到远程文本生成 API，
在文本到达时增量地交给调用方，直到流到达终止状态。包括配置加载、
领域模型、流式协议解析、Provider 适配与对话编排等能力。
"""

from completion_core.api.service import ChatService, create_chat_service, describe_error
from completion_core.domain.conversation import Conversation
from completion_core.domain.models import CompletionResult, Message, SamplingParameters
from completion_core.providers import create_provider
from completion_core.streaming import StreamCallbacks, StreamSession

__all__ = [
    "ChatService",
    "CompletionResult",
    "Conversation",
    "Message",
    "SamplingParameters",
    "StreamCallbacks",
    "StreamSession",
    "create_chat_service",
    "create_provider",
    "describe_error",
]
