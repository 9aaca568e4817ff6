"""Command codes and request builders.

Each request is a single packet whose command byte selects the device
operation. The low codes (0-7) are the status values the receiver puts
in the command byte of its responses.
"""

from __future__ import annotations

from enum import IntEnum

from ..models.values import PageType
from .framing import marshal_packet


class Command(IntEnum):
    """Receiver command and response codes."""

    NULL = 0
    ACK = 1
    NAK = 2
    INVALID_COMMAND = 3
    INVALID_PARAM = 4
    INCOMPLETE_PACKET_RECEIVED = 5
    RECEIVER_ERROR = 6
    INVALID_MODE = 7
    PING = 10
    READ_FIRMWARE_HEADER = 11
    READ_DATABASE_PARTITION_INFO = 15
    READ_DATABASE_PAGE_RANGE = 16
    READ_DATABASE_PAGES = 17
    READ_DATABASE_PAGE_HEADER = 18
    READ_TRANSMITTER_ID = 25
    WRITE_TRANSMITTER_ID = 26
    READ_LANGUAGE = 27
    WRITE_LANGUAGE = 28
    READ_DISPLAY_TIME_OFFSET = 29
    WRITE_DISPLAY_TIME_OFFSET = 30
    READ_RTC = 31
    RESET_RECEIVER = 32
    READ_BATTERY_LEVEL = 33
    READ_SYSTEM_TIME = 34
    READ_SYSTEM_TIME_OFFSET = 35
    WRITE_SYSTEM_TIME = 36
    READ_GLUCOSE_UNIT = 37
    WRITE_GLUCOSE_UNIT = 38
    READ_BLINDED_MODE = 39
    WRITE_BLINDED_MODE = 40
    READ_CLOCK_MODE = 41
    WRITE_CLOCK_MODE = 42
    READ_DEVICE_MODE = 43
    ERASE_DATABASE = 45
    SHUTDOWN_RECEIVER = 46
    WRITE_PC_PARAMETERS = 47
    READ_BATTERY_STATE = 48
    READ_HARDWARE_BOARD_ID = 49
    READ_FIRMWARE_SETTINGS = 54
    READ_ENABLE_SETUP_WIZARD_FLAG = 55
    READ_SETUP_WIZARD_STATE = 57


def build_command(command: Command, params: bytes = b"") -> bytes:
    """Build a single request packet for a command."""
    return marshal_packet(int(command), params)


def build_ping() -> bytes:
    """Build a Ping command; the receiver answers with an empty ACK."""
    return build_command(Command.PING)


def build_read_transmitter_id() -> bytes:
    return build_command(Command.READ_TRANSMITTER_ID)


def build_read_firmware_header() -> bytes:
    return build_command(Command.READ_FIRMWARE_HEADER)


def build_read_battery_level() -> bytes:
    return build_command(Command.READ_BATTERY_LEVEL)


def build_read_system_time() -> bytes:
    return build_command(Command.READ_SYSTEM_TIME)


def build_read_display_time_offset() -> bytes:
    return build_command(Command.READ_DISPLAY_TIME_OFFSET)


def _page_type_byte(page_type: int) -> bytes:
    if not 0 <= page_type <= 255:
        raise ValueError(f"Page type must be 0-255, got {page_type}")
    return bytes([int(page_type)])


def build_read_database_page_range(page_type: PageType | int) -> bytes:
    """Build a request for the first and last page numbers of a log.

    Args:
        page_type: Which on-device log to query.
    """
    return build_command(Command.READ_DATABASE_PAGE_RANGE, _page_type_byte(page_type))


def build_read_database_pages(
    page_type: PageType | int, first_page: int, count: int = 1
) -> bytes:
    """Build a request for ``count`` consecutive pages of a log.

    Args:
        page_type: Which on-device log to read.
        first_page: Page number of the first page (unsigned 32-bit).
        count: Number of pages, 1-255.
    """
    if not 0 <= first_page <= 0xFFFFFFFF:
        raise ValueError(f"Page number must fit in 32 bits, got {first_page}")
    if not 1 <= count <= 255:
        raise ValueError(f"Page count must be 1-255, got {count}")
    params = _page_type_byte(page_type) + first_page.to_bytes(4, "little") + bytes([count])
    return build_command(Command.READ_DATABASE_PAGES, params)


def build_write_display_time_offset(seconds: int) -> bytes:
    """Build a request to set the display time offset.

    Args:
        seconds: Signed offset of display time from system time.
    """
    if not -(2**31) <= seconds < 2**31:
        raise ValueError(f"Display time offset must fit in 32 bits, got {seconds}")
    return build_command(
        Command.WRITE_DISPLAY_TIME_OFFSET, seconds.to_bytes(4, "little", signed=True)
    )
