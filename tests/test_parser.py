"""Tests for database page and response parsing."""

import struct

import pytest

from dexcom_receiver_mcp.errors import ChecksumMismatch, TruncatedRecord, UnsupportedPageType
from dexcom_receiver_mcp.models.records import CalibrationInfo, EGVInfo, MetadataInfo
from dexcom_receiver_mcp.models.values import PageType
from dexcom_receiver_mcp.protocol.framing import Packet, parse_packet
from dexcom_receiver_mcp.protocol.parser import (
    CALIBRATION_RECORD_SIZE,
    LEGACY_CALIBRATION_RECORD_SIZE,
    METADATA_RECORD_SIZE,
    PAGE_HEADER_SIZE,
    PageRange,
    parse_ack,
    parse_database_page,
    parse_page_range,
    record_size,
)
from dexcom_receiver_mcp.protocol.framing import marshal_packet
from dexcom_receiver_mcp.utils.crc import crc16


def _header(page_type, count, page_number=7, revision=1, first_index=100) -> bytes:
    body = struct.pack("<IIBBIIII", first_index, count, page_type, revision, page_number, 0, 0, 0)
    return body + struct.pack("<H", crc16(body))


def _slot(payload: bytes) -> bytes:
    return payload + struct.pack("<H", crc16(payload))


def _egv_payload(glucose: int, trend: int = 4) -> bytes:
    return struct.pack("<IIHB", 1000, 1060, glucose, trend)


def _page(page_type, payloads, **kwargs) -> bytes:
    data = _header(page_type, len(payloads), **kwargs)
    for payload in payloads:
        data += _slot(payload)
    return data


def test_header_size():
    assert PAGE_HEADER_SIZE == 28


def test_parse_egv_page():
    """Records come back in on-page order."""
    data = _page(PageType.EGV_DATA, [_egv_payload(100), _egv_payload(110), _egv_payload(5)])
    page = parse_database_page(data + b"\xFF" * 100)
    assert page.header.page_type is PageType.EGV_DATA
    assert page.header.page_number == 7
    assert page.header.first_index == 100
    assert [r.info.glucose for r in page.records] == [100, 110, 5]
    assert all(isinstance(r.info, EGVInfo) for r in page.records)
    assert page.records[2].info.is_special


def test_parse_empty_page():
    page = parse_database_page(_page(PageType.METER_DATA, []))
    assert page.records == ()


def test_parse_calibration_page_revisions():
    """Calibration slot size depends on the page revision."""
    cal = struct.pack("<IIddd", 1000, 1000, 1.0, 2.0, 3.0) + b"\x00" * 3
    cal += struct.pack("<d", 4.0) + b"\x00"
    for revision, size in ((1, LEGACY_CALIBRATION_RECORD_SIZE), (2, CALIBRATION_RECORD_SIZE)):
        payload = cal.ljust(size, b"\x00")
        page = parse_database_page(_page(PageType.CAL_SET, [payload, payload], revision=revision))
        assert len(page.records) == 2
        assert isinstance(page.records[1].info, CalibrationInfo)
        assert page.records[1].info.decay == 4.0


def test_parse_metadata_page():
    text = b"<FirmwareHeader FirmwareVersion='4.0.1.048'/>"
    payload = struct.pack("<II", 0, 0) + text.ljust(METADATA_RECORD_SIZE - 8, b"\x00")
    page = parse_database_page(_page(PageType.MANUFACTURING_DATA, [payload]))
    info = page.records[0].info
    assert isinstance(info, MetadataInfo)
    assert info.element().get("FirmwareVersion") == "4.0.1.048"


def test_bad_header_crc():
    data = bytearray(_page(PageType.EGV_DATA, [_egv_payload(100)]))
    data[26] ^= 0x01
    with pytest.raises(ChecksumMismatch):
        parse_database_page(bytes(data))


def test_bad_record_crc():
    data = bytearray(_page(PageType.EGV_DATA, [_egv_payload(100), _egv_payload(120)]))
    data[PAGE_HEADER_SIZE + 13 + 8] ^= 0x40
    with pytest.raises(ChecksumMismatch) as excinfo:
        parse_database_page(bytes(data))
    assert "record 1" in str(excinfo.value)


def test_truncated_page():
    data = _page(PageType.SENSOR_DATA, [bytes(18), bytes(18)])
    with pytest.raises(TruncatedRecord):
        parse_database_page(data[:-1])
    with pytest.raises(TruncatedRecord):
        parse_database_page(data[:10])


def test_unsupported_page():
    data = _page(PageType.USER_EVENT_DATA, [bytes(20)])
    with pytest.raises(UnsupportedPageType):
        parse_database_page(data)


def test_record_size():
    assert record_size(PageType.SENSOR_DATA, 1) == 18
    assert record_size(PageType.EGV_DATA, 1) == 11
    assert record_size(PageType.PC_SOFTWARE_PARAMETER, 1) == METADATA_RECORD_SIZE
    with pytest.raises(UnsupportedPageType):
        record_size(PageType.DEVIATION, 1)


def test_parse_page_range():
    packet = parse_packet(marshal_packet(1, struct.pack("<II", 3, 9)))
    assert packet is not None
    page_range = parse_page_range(packet)
    assert page_range == PageRange(first=3, last=9)
    assert list(page_range.pages) == [3, 4, 5, 6, 7, 8, 9]
    assert not page_range.empty


def test_parse_page_range_empty_log():
    page_range = parse_page_range(Packet(command=1, payload=b"\xFF" * 8))
    assert page_range.empty
    assert list(page_range.pages) == []


def test_parse_page_range_short():
    with pytest.raises(TruncatedRecord):
        parse_page_range(Packet(command=1, payload=b"\x00" * 4))


def test_parse_ack():
    assert parse_ack(Packet(command=1, payload=b""))
    assert not parse_ack(Packet(command=2, payload=b""))
