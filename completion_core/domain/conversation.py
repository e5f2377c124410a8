"""会话（对话历史）句柄。

会话在开始聊天时创建，只能通过追加消息或显式 reset() 修改：

- 发送请求前追加 user 消息；
- 流到达终止状态后追加 assistant 消息；
- reset() 会把整个序列替换为单条 system 消息。

会话本身不做并发互斥，同一会话上的并发请求由调用方（ChatService）串行化。
导出/导入到文件属于外部协作方的职责，这里只提供 to_payload/from_payload。
"""

from typing import Any, Dict, Iterable, List, Optional, Tuple

from completion_core.config.settings import settings
from completion_core.domain.exceptions import ValidationError
from completion_core.domain.models import ROLES, Message
from completion_core.prompts import load_system_prompt


class Conversation:
    """未给出 system_prompt 时，按 locale（默认取配置 system_prompt_locale）加载默认提示词。"""

    def __init__(
        self,
        system_prompt: Optional[str] = None,
        messages: Optional[Iterable[Message]] = None,
        locale: Optional[str] = None,
    ):
        if system_prompt is None:
            system_prompt = load_system_prompt(locale or getattr(settings, "system_prompt_locale", "en"))
        self._system_prompt = system_prompt
        if messages is None:
            self._messages: List[Message] = [Message(role="system", content=self._system_prompt)]
        else:
            self._messages = list(messages)

    def __len__(self) -> int:
        return len(self._messages)

    @property
    def messages(self) -> Tuple[Message, ...]:
        return tuple(self._messages)

    @property
    def system_prompt(self) -> str:
        return self._system_prompt

    def snapshot(self) -> List[Message]:
        """返回消息的独立副本，发给 Provider 后会话本身不受影响。"""

        return [Message(role=m.role, content=m.content) for m in self._messages]

    def append_user(self, content: str) -> Message:
        msg = Message(role="user", content=content)
        self._messages.append(msg)
        return msg

    def append_assistant(self, content: str) -> Message:
        msg = Message(role="assistant", content=content)
        self._messages.append(msg)
        return msg

    def reset(self, system_prompt: Optional[str] = None) -> None:
        if system_prompt is not None:
            self._system_prompt = system_prompt
        self._messages = [Message(role="system", content=self._system_prompt)]

    def to_payload(self) -> List[Dict[str, str]]:
        return [m.to_payload() for m in self._messages]

    @classmethod
    def from_payload(cls, payload: List[Dict[str, Any]]) -> "Conversation":
        """从 [{"role": ..., "content": ...}] 列表恢复会话。"""

        messages: List[Message] = []
        for idx, item in enumerate(payload):
            role = item.get("role") if isinstance(item, dict) else None
            if role not in ROLES:
                raise ValidationError(
                    code="INVALID_MESSAGE",
                    message=f"message #{idx} has unsupported role {role!r}",
                )
            messages.append(Message(role=role, content=str(item.get("content") or "")))
        system_prompt = next((m.content for m in messages if m.role == "system"), None)
        return cls(system_prompt=system_prompt, messages=messages)
