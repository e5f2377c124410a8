"""系统提示词加载工具。

按语言(locale) 从 prompts/<locale> 目录读取默认的 system prompt 文本，
用于构造会话开头的 Message(role="system")。
"""

from pathlib import Path


PROMPTS_DIR = Path(__file__).resolve().parent


def load_system_prompt(locale: str = "en") -> str:
    """根据语言加载系统提示词文本，找不到对应语言时回退到 en。"""

    fname = PROMPTS_DIR / locale / "system.md"
    if not fname.exists():
        fname = PROMPTS_DIR / "en" / "system.md"
    return fname.read_text(encoding="utf-8").strip()
