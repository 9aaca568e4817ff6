"""Response parsing for database reads.

A ReadDatabasePages response holds one or more pages. Each page starts
with a 28-byte header::

    +-------------+-------+------+----------+--------+----------+-----+
    | First index | Count | Type | Revision | Page # | Reserved | CRC |
    | u32         | u32   | u8   | u8       | u32    | 3 x u32  | u16 |
    +-------------+-------+------+----------+--------+----------+-----+

followed by ``Count`` record slots. A slot is the record payload plus a
CRC-16 of that payload.
"""

from __future__ import annotations

import logging
import struct
from dataclasses import dataclass

from ..errors import ChecksumMismatch, TruncatedRecord, UnsupportedPageType
from ..models.records import Record, layout_for, unmarshal_record
from ..models.values import PageType, coerce_enum
from ..utils.crc import crc16
from .framing import Packet

logger = logging.getLogger(__name__)

PAGE_HEADER = struct.Struct("<IIBBIIIIH")
PAGE_HEADER_SIZE = PAGE_HEADER.size  # 28
RECORD_CRC_SIZE = 2

# Record payload sizes of the variable layouts, CRC excluded
METADATA_RECORD_SIZE = 498
LEGACY_CALIBRATION_RECORD_SIZE = 146
CALIBRATION_RECORD_SIZE = 247

NO_PAGE = 0xFFFFFFFF


@dataclass(frozen=True)
class PageRange:
    """First and last page numbers of an on-device log."""

    first: int
    last: int

    @property
    def empty(self) -> bool:
        return self.first == NO_PAGE and self.last == NO_PAGE

    @property
    def pages(self) -> range:
        if self.empty:
            return range(0)
        return range(self.first, self.last + 1)


@dataclass(frozen=True)
class PageHeader:
    """Header of a database page."""

    first_index: int
    record_count: int
    page_type: PageType | int
    revision: int
    page_number: int


@dataclass(frozen=True)
class DatabasePage:
    """A database page and the records decoded from it."""

    header: PageHeader
    records: tuple[Record, ...]

    def __repr__(self) -> str:
        return (
            f"DatabasePage(type={getattr(self.header.page_type, 'name', self.header.page_type)}, "
            f"page={self.header.page_number}, records={len(self.records)})"
        )


def parse_ack(packet: Packet) -> bool:
    """Check whether a response packet is a plain ACK."""
    return packet.ok


def parse_page_range(packet: Packet) -> PageRange:
    """Parse a ReadDatabasePageRange response.

    Raises:
        TruncatedRecord: If the payload is shorter than two page numbers.
    """
    if len(packet.payload) < 8:
        raise TruncatedRecord(
            f"page range needs 8 bytes, got {len(packet.payload)}", packet.payload
        )
    first, last = struct.unpack_from("<II", packet.payload)
    return PageRange(first=first, last=last)


def record_size(page_type: PageType | int, revision: int) -> int:
    """Size of one record payload on a page, CRC excluded.

    Raises:
        UnsupportedPageType: If the page type has no known layout.
    """
    layout = layout_for(page_type)
    if layout.SIZE is not None:
        return layout.SIZE
    if page_type == PageType.CAL_SET:
        return LEGACY_CALIBRATION_RECORD_SIZE if revision < 2 else CALIBRATION_RECORD_SIZE
    return METADATA_RECORD_SIZE


def parse_page_header(data: bytes) -> PageHeader:
    """Parse and verify the 28-byte page header.

    Raises:
        TruncatedRecord: If ``data`` is shorter than a header.
        ChecksumMismatch: If the header CRC does not verify.
    """
    if len(data) < PAGE_HEADER_SIZE:
        raise TruncatedRecord(
            f"page header needs {PAGE_HEADER_SIZE} bytes, got {len(data)}", data
        )
    fields = PAGE_HEADER.unpack_from(data)
    stored_crc = fields[-1]
    actual_crc = crc16(data, 0, PAGE_HEADER_SIZE - RECORD_CRC_SIZE)
    if stored_crc != actual_crc:
        raise ChecksumMismatch("page header", stored_crc, actual_crc, data[:PAGE_HEADER_SIZE])
    return PageHeader(
        first_index=fields[0],
        record_count=fields[1],
        page_type=coerce_enum(PageType, fields[2]),
        revision=fields[3],
        page_number=fields[4],
    )


def parse_database_page(data: bytes) -> DatabasePage:
    """Parse one database page into its records.

    Args:
        data: The page bytes, header first.

    Raises:
        UnsupportedPageType: If the page's log has no known record layout.
        TruncatedRecord: If the page holds fewer bytes than its records need.
        ChecksumMismatch: If the header or a record CRC does not verify.
    """
    data = bytes(data)
    header = parse_page_header(data)
    try:
        size = record_size(header.page_type, header.revision)
    except UnsupportedPageType:
        raise UnsupportedPageType(header.page_type, data) from None

    slot = size + RECORD_CRC_SIZE
    needed = PAGE_HEADER_SIZE + header.record_count * slot
    if len(data) < needed:
        raise TruncatedRecord(
            f"page with {header.record_count} records needs {needed} bytes, "
            f"got {len(data)}",
            data,
        )

    records = []
    for i in range(header.record_count):
        start = PAGE_HEADER_SIZE + i * slot
        payload = data[start : start + size]
        stored_crc = int.from_bytes(data[start + size : start + slot], "little")
        actual_crc = crc16(payload)
        if stored_crc != actual_crc:
            raise ChecksumMismatch(f"record {i}", stored_crc, actual_crc, payload)
        records.append(unmarshal_record(header.page_type, payload))

    logger.debug(
        "Parsed page %d of %s: %d records",
        header.page_number,
        header.page_type.name,
        len(records),
    )
    return DatabasePage(header=header, records=tuple(records))
