"""Console I/O for the trap routines.

The machine only ever reads one byte at a time (GETC, IN) and writes bytes
that it flushes after every trap. ``Console`` wraps a pair of binary
streams; ``BufferConsole`` keeps both sides in memory so programs can be
driven deterministically from tests and the web demo.
"""

import sys
from collections import deque
from typing import BinaryIO, Callable, Optional, Union


class Console:
    """Blocking byte input and buffered byte output over binary streams.

    Attributes:
        input_stream: Source of keyboard bytes (default: stdin)
        output_stream: Sink for display bytes (default: stdout)
    """

    def __init__(
        self,
        input_stream: Optional[BinaryIO] = None,
        output_stream: Optional[BinaryIO] = None,
    ):
        self.input_stream = input_stream if input_stream is not None else sys.stdin.buffer
        self.output_stream = output_stream if output_stream is not None else sys.stdout.buffer

    def read_byte(self) -> Optional[int]:
        """Block until one byte is available.

        Returns:
            The byte, or None at end of input
        """
        data = self.input_stream.read(1)
        if not data:
            return None
        return data[0]

    def write_byte(self, value: int) -> None:
        self.output_stream.write(bytes((value & 0xFF,)))

    def write_text(self, text: str) -> None:
        self.output_stream.write(text.encode("ascii", errors="replace"))

    def flush(self) -> None:
        self.output_stream.flush()


class BufferConsole(Console):
    """In-memory console: queued input bytes, captured output bytes."""

    def __init__(self, input_data: Union[bytes, str] = b""):
        self.rx_buffer: deque = deque()
        self.tx_buffer = bytearray()
        self.flush_count = 0
        # Called with each byte the machine writes
        self.on_tx: Optional[Callable[[int], None]] = None
        self.inject_input(input_data)

    def inject_input(self, data: Union[bytes, str]) -> None:
        """Queue bytes for GETC/IN to read."""
        if isinstance(data, str):
            data = data.encode("ascii", errors="replace")
        for b in data:
            self.rx_buffer.append(b & 0xFF)

    @property
    def has_input(self) -> bool:
        return len(self.rx_buffer) > 0

    def read_byte(self) -> Optional[int]:
        if self.rx_buffer:
            return self.rx_buffer.popleft()
        return None

    def write_byte(self, value: int) -> None:
        value &= 0xFF
        self.tx_buffer.append(value)
        if self.on_tx:
            self.on_tx(value)

    def write_text(self, text: str) -> None:
        for b in text.encode("ascii", errors="replace"):
            self.write_byte(b)

    def flush(self) -> None:
        self.flush_count += 1

    @property
    def output(self) -> bytes:
        """Everything written so far."""
        return bytes(self.tx_buffer)

    def read_output(self) -> str:
        """Return captured output as text and clear it."""
        out = bytes(self.tx_buffer).decode("ascii", errors="replace")
        self.tx_buffer.clear()
        return out
