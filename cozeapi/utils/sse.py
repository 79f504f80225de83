from dataclasses import dataclass
from typing import AsyncIterator, Optional

# Constants
SSE_DONE_SIGNAL = "[DONE]"


@dataclass(frozen=True)
class SSEFrame:
    """One `event`/`data` unit of a Server-Sent-Events stream"""

    event: Optional[str] = None
    data: Optional[str] = None
    id: Optional[str] = None
    retry: Optional[int] = None

    @property
    def is_done_signal(self) -> bool:
        return self.data is not None and self.data.strip() == SSE_DONE_SIGNAL


class SSEFrameBuilder:
    """Accumulates field lines until a blank line dispatches a frame."""

    def __init__(self):
        self._reset()

    def _reset(self):
        self._event: Optional[str] = None
        self._data: list[str] = []
        self._id: Optional[str] = None
        self._retry: Optional[int] = None

    def feed(self, line: str) -> Optional[SSEFrame]:
        """Feed one line (without newline). Returns a frame on dispatch."""
        line = line.rstrip("\r")
        if not line:
            return self.flush()
        if line.startswith(":"):
            return None

        field, sep, value = line.partition(":")
        if sep and value.startswith(" "):
            value = value[1:]

        if field == "event":
            self._event = value
        elif field == "data":
            self._data.append(value)
        elif field == "id":
            self._id = value
        elif field == "retry":
            if value.isdigit():
                self._retry = int(value)
        return None

    def flush(self) -> Optional[SSEFrame]:
        """Dispatch the pending frame, if any field was seen."""
        if self._event is None and not self._data and self._id is None:
            self._reset()
            return None
        frame = SSEFrame(
            event=self._event,
            data="\n".join(self._data) if self._data else None,
            id=self._id,
            retry=self._retry,
        )
        self._reset()
        return frame


async def iter_sse_frames(lines: AsyncIterator[str]) -> AsyncIterator[SSEFrame]:
    """
    Group SSE lines into frames.

    Args:
        lines: Async iterator of decoded lines, e.g. httpx `Response.aiter_lines()`

    Yields:
        SSEFrame objects in arrival order; a trailing frame without a blank
        line terminator is still dispatched at end of stream.
    """
    builder = SSEFrameBuilder()
    async for line in lines:
        frame = builder.feed(line)
        if frame is not None:
            yield frame
    frame = builder.flush()
    if frame is not None:
        yield frame


def format_sse(event: str, data: str) -> str:
    """Format one frame in wire form"""
    return f"event: {event}\ndata: {data}\n\n"
