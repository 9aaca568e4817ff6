"""Packet builder and parser for the receiver's serial protocol.

Packet layout::

    +-----+---------+---------+------------------+----------+
    | SOF | Length  | Command |      Params      | Checksum |
    | 1 B | 2 bytes | 1 byte  |  variable length |  2 bytes |
    +-----+---------+---------+------------------+----------+

- SOF: always 0x01
- Length: little-endian size of the whole packet, checksum included
- Checksum: CRC-16 over every preceding byte, little-endian

Requests and responses share this layout; in a response the command
byte carries the status (ACK, NAK, ...).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from ..utils.crc import crc16

logger = logging.getLogger(__name__)

SOF = 0x01
HEADER_SIZE = 4  # sof(1) + length(2) + command(1)
CRC_SIZE = 2
MIN_PACKET_SIZE = HEADER_SIZE + CRC_SIZE
MAX_PACKET_SIZE = 1590
MAX_PAYLOAD = MAX_PACKET_SIZE - MIN_PACKET_SIZE

ACK = 0x01


@dataclass(frozen=True)
class Packet:
    """A parsed protocol packet."""

    command: int
    payload: bytes

    @property
    def ok(self) -> bool:
        return self.command == ACK

    def __repr__(self) -> str:
        return (
            f"Packet(command=0x{self.command:02X}, "
            f"payload={self.payload.hex(' ') if self.payload else '(empty)'})"
        )


def marshal_packet(command: int, params: bytes = b"") -> bytes:
    """Build a request packet for ``command`` with opaque ``params``.

    Args:
        command: Single-byte command code.
        params: Command-specific parameter bytes.

    Returns:
        The framed packet, ready to hand to the transport.
    """
    length = MIN_PACKET_SIZE + len(params)
    body = bytes([SOF]) + length.to_bytes(2, "little") + bytes([command]) + bytes(params)
    return body + crc16(body).to_bytes(2, "little")


def parse_packet(data: bytes) -> Packet | None:
    """Parse a complete packet received from the device.

    Returns:
        A ``Packet`` if ``data`` is one well-formed packet, or ``None`` if
        the start byte, length field or checksum is wrong.
    """
    if len(data) < MIN_PACKET_SIZE:
        logger.debug("Packet too short: %d bytes", len(data))
        return None

    if data[0] != SOF:
        logger.debug("Bad start of frame 0x%02X", data[0])
        return None

    length = int.from_bytes(data[1:3], "little")
    if not MIN_PACKET_SIZE <= length <= MAX_PACKET_SIZE or length != len(data):
        logger.debug("Bad packet length %d for %d bytes", length, len(data))
        return None

    expected_checksum = int.from_bytes(data[length - CRC_SIZE : length], "little")
    actual_checksum = crc16(data, 0, length - CRC_SIZE)
    if actual_checksum != expected_checksum:
        logger.debug(
            "Packet CRC mismatch: stored 0x%04X, computed 0x%04X",
            expected_checksum,
            actual_checksum,
        )
        return None

    return Packet(command=data[3], payload=bytes(data[HEADER_SIZE : length - CRC_SIZE]))
