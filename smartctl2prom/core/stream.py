"""Pull-based driver that turns a smartctl output stream into DecodeResults."""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterator
from typing import IO, Literal, Protocol

from smartctl2prom.core.errors import DecodeError, InputReadError
from smartctl2prom.core.legacy import TextDecoder
from smartctl2prom.core.model import DecodeResult, Record
from smartctl2prom.core.reader import LineReader
from smartctl2prom.core.structured import JSONDecoder

LOGGER = logging.getLogger(__name__)

InputFormat = Literal["json", "text"]
FORMATS: tuple[str, ...] = ("json", "text")


class Decoder(Protocol):
    def decode(self) -> Record | None:
        """Return the next Record, or None once the input is cleanly exhausted."""


class DecodeStream:
    """Iterates over the reports of one input stream.

    Each report yields exactly one DecodeResult. Decoding only advances while
    the consumer asks for the next item, so an abandoned stream never leaves
    a producer behind. Iteration stops at clean end of input, after an
    InputReadError, after ``close()``, or once ``cancel`` is set.
    """

    def __init__(self, decoder: Decoder, *, cancel: threading.Event | None = None) -> None:
        self._decoder = decoder
        self._cancel = cancel or threading.Event()
        self._items = self._produce()

    def _produce(self) -> Iterator[DecodeResult]:
        while not self._cancel.is_set():
            try:
                record = self._decoder.decode()
            except InputReadError as exc:
                yield DecodeResult(error=exc)
                return
            except DecodeError as exc:
                LOGGER.debug("Report could not be decoded: %s", exc)
                yield DecodeResult(error=exc)
                continue
            if record is None:
                return
            yield DecodeResult(record=record)
        LOGGER.debug("Decoding cancelled")

    def __iter__(self) -> Iterator[DecodeResult]:
        return self

    def __next__(self) -> DecodeResult:
        return next(self._items)

    def __enter__(self) -> DecodeStream:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def cancel(self) -> None:
        self._cancel.set()

    def close(self) -> None:
        self._cancel.set()
        self._items.close()


def decoder_for(stream: IO[bytes] | IO[str], fmt: InputFormat) -> Decoder:
    reader = LineReader(stream)
    if fmt == "json":
        return JSONDecoder(reader)
    if fmt == "text":
        return TextDecoder(reader)
    raise ValueError(f"Unsupported input format {fmt!r}; expected one of {', '.join(FORMATS)}")


def decode(
    stream: IO[bytes] | IO[str],
    fmt: InputFormat = "json",
    *,
    cancel: threading.Event | None = None,
) -> DecodeStream:
    return DecodeStream(decoder_for(stream, fmt), cancel=cancel)


def decode_json(stream: IO[bytes] | IO[str], *, cancel: threading.Event | None = None) -> DecodeStream:
    return decode(stream, "json", cancel=cancel)


def decode_text(stream: IO[bytes] | IO[str], *, cancel: threading.Event | None = None) -> DecodeStream:
    return decode(stream, "text", cancel=cancel)
