"""Errors raised while decoding receiver data.

All decode errors are ``ValueError`` subclasses and keep the offending
bytes in ``raw`` for diagnostics.
"""

from __future__ import annotations


class DecodeError(ValueError):
    """Base class for receiver data that cannot be decoded."""

    def __init__(self, message: str, raw: bytes = b"") -> None:
        super().__init__(message)
        self.raw = bytes(raw)


class UnsupportedPageType(DecodeError):
    """No record layout is known for the page type."""

    def __init__(self, page_type, raw: bytes = b"") -> None:
        super().__init__(
            f"unmarshaling of {_page_name(page_type)} records is unimplemented: "
            f"{bytes(raw).hex(' ').upper()}",
            raw,
        )
        self.page_type = page_type


class LengthMismatch(DecodeError):
    """A fixed-length record payload has the wrong size."""

    def __init__(self, page_type, expected: int, actual: int, raw: bytes = b"") -> None:
        super().__init__(
            f"wrong length for {expected}-byte {_page_name(page_type)} record: "
            f"got {actual} bytes: {bytes(raw).hex(' ').upper()}",
            raw,
        )
        self.page_type = page_type
        self.expected = expected
        self.actual = actual


class TruncatedRecord(DecodeError):
    """A variable-length payload is shorter than its own contents claim."""


class ChecksumMismatch(DecodeError):
    """A page header or record CRC did not verify."""

    def __init__(self, what: str, expected: int, actual: int, raw: bytes = b"") -> None:
        super().__init__(
            f"{what} CRC mismatch: stored 0x{expected:04X}, computed 0x{actual:04X}",
            raw,
        )
        self.expected = expected
        self.actual = actual


def _page_name(page_type) -> str:
    return getattr(page_type, "name", None) or f"page type {page_type}"
