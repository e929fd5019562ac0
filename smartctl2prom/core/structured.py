"""Decoder for ``smartctl --json`` output.

The input may hold several JSON documents back to back, pretty-printed the
way smartctl prints them, one per line, or indented by a wrapper script.
"""

from __future__ import annotations

import json
import logging
from dataclasses import fields, is_dataclass
from typing import Any, get_args, get_origin, get_type_hints

from jsonschema import ValidationError

from smartctl2prom.core.errors import (
    MalformedFieldError,
    MalformedSectionError,
    PrematureEndOfInputError,
)
from smartctl2prom.core.model import Record
from smartctl2prom.core.reader import LineReader
from smartctl2prom.core.schema import describe, load_schema_validator

LOGGER = logging.getLogger(__name__)

SCHEMA_NAME = "smartctl.schema.json"


def _convert(hint: Any, value: Any) -> Any:
    if is_dataclass(hint):
        return build(hint, value)
    if get_origin(hint) is tuple:
        item_hint = get_args(hint)[0]
        return tuple(_convert(item_hint, item) for item in value)
    if hint is int:
        return int(value)
    return value


def build(cls: Any, doc: dict[str, Any]) -> Any:
    """Instantiate dataclass ``cls`` from an already validated JSON object.

    Keys missing from ``doc`` keep the field's default.
    """
    hints = get_type_hints(cls)
    kwargs: dict[str, Any] = {}
    for f in fields(cls):
        key = f.metadata.get("json", f.name)
        if key in doc:
            kwargs[f.name] = _convert(hints[f.name], doc[key])
    return cls(**kwargs)


def record_from_document(doc: Any, *, line: int | None = None) -> Record:
    if not isinstance(doc, dict):
        raise MalformedSectionError(
            f"expected a JSON object at top level, got {type(doc).__name__}", line=line
        )
    validator = load_schema_validator(SCHEMA_NAME)
    try:
        validator.validate(doc)
    except ValidationError as exc:
        raise MalformedFieldError(f"schema validation failed: {describe(exc)}", line=line) from exc
    return build(Record, doc)


def _indent(line: str) -> int:
    return len(line) - len(line.lstrip(" \t"))


def _opens_document(line: str, indent: int) -> bool:
    return line.lstrip(" \t").startswith("{") and _indent(line) <= indent


def _incomplete(text: str, exc: json.JSONDecodeError) -> bool:
    # The parser ran out of text rather than hitting a bad character.
    return exc.pos >= len(text.rstrip()) or exc.msg.startswith("Unterminated")


class JSONDecoder:
    """Decodes one JSON document per call.

    Lines are buffered until ``raw_decode`` either completes a value or fails
    before the end of the buffer. After a syntax error decoding resumes at the
    next line, at or after the error, that opens an object no deeper than the
    broken document did.
    """

    def __init__(self, reader: LineReader) -> None:
        self._reader = reader
        self._json = json.JSONDecoder()

    def decode(self) -> Record | None:
        text = ""
        first_line = 0
        while True:
            line = self._reader.readline()
            if line is None:
                if not text:
                    return None
                return self._parse(text, first_line, at_eof=True)
            if not text:
                if not line.strip():
                    continue
                first_line = self._reader.line_number
            text += line
            if not line.rstrip().endswith(("}", "]")):
                continue
            record = self._parse(text, first_line, at_eof=False)
            if record is not None:
                return record

    def _parse(self, text: str, first_line: int, *, at_eof: bool) -> Record | None:
        start = _indent(text)
        try:
            doc, end = self._json.raw_decode(text, start)
        except json.JSONDecodeError as exc:
            if _incomplete(text, exc):
                if not at_eof:
                    return None
                raise PrematureEndOfInputError(
                    "input ended inside a JSON document", line=self._reader.line_number
                ) from exc
            line = first_line + text.count("\n", 0, exc.pos)
            self._resync(text, exc.pos)
            raise MalformedSectionError(f"malformed JSON document: {exc.msg}", line=line) from exc
        rest = text[end:]
        if rest.strip():
            self._reader.unread(rest)
        return record_from_document(doc, line=first_line)

    def _resync(self, text: str, error_pos: int) -> None:
        lines = text.splitlines(keepends=True)
        indent = _indent(lines[0])
        offset = len(lines[0])
        for index, line in enumerate(lines[1:], start=1):
            if offset + _indent(line) >= error_pos and _opens_document(line, indent):
                self._reader.unread("".join(lines[index:]))
                LOGGER.debug("Resuming JSON decoding at line %d", self._reader.line_number + 1)
                return
            offset += len(line)
        while (line := self._reader.readline()) is not None:
            if _opens_document(line, indent):
                self._reader.unread(line)
                LOGGER.debug("Resuming JSON decoding at line %d", self._reader.line_number + 1)
                return
