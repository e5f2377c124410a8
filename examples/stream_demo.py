"""Minimal demonstration of a streaming chat turn in the terminal."""

import asyncio
import sys

from completion_core import create_chat_service, describe_error


def _make_printer():
    printed = {"n": 0}

    def on_update(text: str):
        # on_update 收到的是累计文本，只打印新增部分
        sys.stdout.write(text[printed["n"]:])
        sys.stdout.flush()
        printed["n"] = len(text)

    return on_update


async def main(question: str) -> None:
    service = create_chat_service()
    try:
        await service.send(question, on_update=_make_printer())
    except Exception as e:
        print("\n" + describe_error(service.provider.name, e))
        return
    print()


if __name__ == "__main__":
    question = " ".join(sys.argv[1:]) or "Explain what a Python context manager is in two sentences."
    print("User:", question)
    asyncio.run(main(question))
