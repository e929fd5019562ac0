from __future__ import annotations

import io
import json
import threading

import pytest

from smartctl2prom.core.errors import InputReadError
from smartctl2prom.core.model import Record
from smartctl2prom.core.stream import DecodeStream, decode, decode_json, decode_text


def _documents(*serials: str) -> str:
    return "".join(json.dumps({"serial_number": serial}) + "\n" for serial in serials)


class FailingStream:
    def __init__(self, lines: list[bytes]) -> None:
        self._lines = lines

    def readline(self) -> bytes:
        if self._lines:
            return self._lines.pop(0)
        raise OSError("device went away")


class CountingDecoder:
    def __init__(self, count: int) -> None:
        self.calls = 0
        self._count = count

    def decode(self) -> Record | None:
        self.calls += 1
        if self.calls > self._count:
            return None
        return Record(serial_number=str(self.calls))


def test_one_result_per_document() -> None:
    results = list(decode_json(io.StringIO(_documents("A", "B", "C"))))
    assert [r.record.serial_number for r in results if r.record] == ["A", "B", "C"]
    assert all(r.ok for r in results)


def test_binary_input_is_decoded() -> None:
    stream = io.BytesIO(_documents("A").encode("utf-8") + b'{"model_name": "caf\xff"}\n')
    results = list(decode(stream, "json"))
    assert results[0].record.serial_number == "A"
    assert results[1].record.model_name == "caf\ufffd"


def test_read_failure_ends_stream() -> None:
    stream = FailingStream([_documents("A").encode("utf-8")])
    results = list(decode(stream, "json"))

    assert len(results) == 2
    assert results[0].record.serial_number == "A"
    assert isinstance(results[1].error, InputReadError)
    assert not results[1].ok


def test_decoding_is_pulled_by_the_consumer() -> None:
    decoder = CountingDecoder(5)
    stream = DecodeStream(decoder)
    next(stream)
    next(stream)
    assert decoder.calls == 2


def test_cancel_stops_before_next_report() -> None:
    cancel = threading.Event()
    decoder = CountingDecoder(5)
    stream = DecodeStream(decoder, cancel=cancel)
    assert next(stream).record.serial_number == "1"
    cancel.set()
    assert list(stream) == []
    assert decoder.calls == 1


def test_close_releases_the_stream() -> None:
    decoder = CountingDecoder(5)
    with DecodeStream(decoder) as stream:
        next(stream)
    with pytest.raises(StopIteration):
        next(stream)
    assert decoder.calls == 1


def test_cancel_method() -> None:
    stream = DecodeStream(CountingDecoder(5))
    stream.cancel()
    assert list(stream) == []


def test_unknown_format() -> None:
    with pytest.raises(ValueError, match="Unsupported input format"):
        decode(io.StringIO(""), "xml")  # type: ignore[arg-type]


def test_undecodable_text_stream_ends_with_read_error() -> None:
    raw = b"=== START OF INFORMATION SECTION ===\nDevice Model: caf\xff\n\n=== END ===\n"
    stream = io.TextIOWrapper(io.BytesIO(raw), encoding="utf-8")
    results = list(decode_text(stream))

    assert len(results) == 1
    assert isinstance(results[0].error, InputReadError)
