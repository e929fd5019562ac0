"""Domain-specific errors for smartctl2prom."""

from __future__ import annotations


class Smartctl2PromError(Exception):
    """Base error for smartctl2prom."""


class DecodeError(Smartctl2PromError):
    """Base error for reports that cannot be turned into a Record."""

    def __init__(self, message: str, *, line: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.line = line

    def __str__(self) -> str:
        if self.line is None:
            return self.message
        return f"line {self.line}: {self.message}"


class MalformedSectionError(DecodeError):
    """Raised when a line appears where a header was required or a section is missing."""


class MalformedFieldError(DecodeError):
    """Raised when a value does not match the grammar expected for its key."""


class DuplicateHeaderError(DecodeError):
    """Raised when the attribute table header or one of its columns repeats."""


class IncompleteHeaderError(DecodeError):
    """Raised when the attribute table header lacks a required column."""


class PrematureEndOfInputError(DecodeError):
    """Raised when the stream ends in the middle of a report."""


class InputReadError(Smartctl2PromError):
    """Raised when reading from the input source fails."""


class ConfigError(Smartctl2PromError):
    """Raised when the settings file cannot be read or does not validate."""


class ExportError(Smartctl2PromError):
    """Raised when the metrics textfile cannot be written."""
