"""把任意切分的文本块重新拼装为按换行分隔的完整行。"""

from typing import Iterator


class LineReassembler:
    """维护一个残余缓冲区，跨块携带尚未以换行结尾的半行。

    feed() 是惰性的：调用方只消费了部分行就停止时，剩余的行仍留在缓冲区中，
    下一次 feed() 会先把它们吐出来。
    """

    def __init__(self) -> None:
        self._buffer = ""

    @property
    def pending(self) -> str:
        return self._buffer

    def reset(self) -> None:
        self._buffer = ""

    def feed(self, chunk: str) -> Iterator[str]:
        self._buffer += chunk
        while True:
            index = self._buffer.find("\n")
            if index < 0:
                return
            line = self._buffer[:index]
            self._buffer = self._buffer[index + 1 :]
            yield line
