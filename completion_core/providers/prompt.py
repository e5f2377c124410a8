"""OpenAI 风格消息数组 <-> 累计型补全接口所需的单个 prompt 字符串。

拼接规则（按顺序）：

- system:    HUMAN_PROMPT + " " + content + SYSTEM_SUFFIX
- user:      HUMAN_PROMPT + " " + content
- assistant: AI_PROMPT + " " + content
- 最后追加 AI_PROMPT，提示模型开始下一轮回答。

prompt_to_messages() 做反向解析。消息内容本身包含轮次标记时无法无损还原。
"""

import re
from typing import List, Sequence

from completion_core.domain.models import Message


HUMAN_PROMPT = "\n\nHuman:"
AI_PROMPT = "\n\nAssistant:"
SYSTEM_SUFFIX = " (Follow these instructions for the rest of the conversation.)"

_TURN_RE = re.compile(r"(\n\nHuman:|\n\nAssistant:)")


def messages_to_prompt(messages: Sequence[Message]) -> str:
    parts: List[str] = []
    for m in messages:
        if m.role == "system":
            parts.append(f"{HUMAN_PROMPT} {m.content}{SYSTEM_SUFFIX}")
        elif m.role == "user":
            parts.append(f"{HUMAN_PROMPT} {m.content}")
        elif m.role == "assistant":
            parts.append(f"{AI_PROMPT} {m.content}")
    parts.append(AI_PROMPT)
    return "".join(parts)


def prompt_to_messages(prompt: str) -> List[Message]:
    if prompt.endswith(AI_PROMPT):
        prompt = prompt[: -len(AI_PROMPT)]
    tokens = _TURN_RE.split(prompt)
    messages: List[Message] = []
    # tokens: [前导文本, 标记, 内容, 标记, 内容, ...]
    for marker, body in zip(tokens[1::2], tokens[2::2]):
        if body.startswith(" "):
            body = body[1:]
        if marker == AI_PROMPT:
            messages.append(Message(role="assistant", content=body))
        elif body.endswith(SYSTEM_SUFFIX):
            messages.append(Message(role="system", content=body[: -len(SYSTEM_SUFFIX)]))
        else:
            messages.append(Message(role="user", content=body))
    return messages
