"""Line-oriented access to the raw smartctl output stream."""

from __future__ import annotations

from typing import IO

from smartctl2prom.core.errors import InputReadError


class LineReader:
    """Reads text lines from a binary or text stream, with pushback.

    Bytes are decoded as UTF-8 with replacement so that a stray byte in a
    vendor string never aborts a whole stream. A text stream that cannot
    decode its own input is reported as a read failure.

    ``line_number`` counts the lines handed out so far; pushed back lines are
    subtracted again until they are re-read.
    """

    def __init__(self, stream: IO[bytes] | IO[str], *, encoding: str = "utf-8") -> None:
        self._stream = stream
        self._encoding = encoding
        self._pending: list[str] = []
        self.line_number = 0

    def readline(self) -> str | None:
        """Return the next line including its newline, or None at end of stream."""
        if self._pending:
            self.line_number += 1
            return self._pending.pop()
        try:
            raw = self._stream.readline()
        except OSError as exc:
            raise InputReadError(f"Could not read input: {exc}") from exc
        except UnicodeDecodeError as exc:
            raise InputReadError(f"Could not decode input: {exc}") from exc
        if not raw:
            return None
        self.line_number += 1
        if isinstance(raw, bytes):
            return raw.decode(self._encoding, errors="replace")
        return raw

    def unread(self, text: str) -> None:
        """Push ``text`` back so that its lines are read again, in order."""
        for line in reversed(text.splitlines(keepends=True)):
            self._pending.append(line)
            self.line_number -= 1
