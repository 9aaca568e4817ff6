"""CRC-16 used by the receiver for packets, page headers and records.

This is the CCITT polynomial 0x1021 with a zero initial value and no
reflection (often called CRC-16/XMODEM). The checksum is transmitted
little-endian.
"""

from __future__ import annotations

POLYNOMIAL = 0x1021


def _make_table() -> list[int]:
    table = []
    for i in range(256):
        crc = i << 8
        for _ in range(8):
            if crc & 0x8000:
                crc = ((crc << 1) ^ POLYNOMIAL) & 0xFFFF
            else:
                crc = (crc << 1) & 0xFFFF
        table.append(crc)
    return table


CRC16_TABLE = _make_table()


def crc16(data: bytes, start: int = 0, end: int | None = None) -> int:
    """Compute the CRC-16 of ``data[start:end]``."""
    if end is None:
        end = len(data)
    crc = 0
    for byte in data[start:end]:
        crc = ((crc << 8) & 0xFFFF) ^ CRC16_TABLE[((crc >> 8) ^ byte) & 0xFF]
    return crc
