"""Primitive field decoders and the enumerations used by log records.

Multi-byte integers and doubles are little-endian. Device times are
unsigned second counts from the receiver epoch, 2009-01-01 00:00:00.
"""

from __future__ import annotations

import struct
from datetime import datetime, timedelta
from enum import IntEnum

DEXCOM_EPOCH = datetime(2009, 1, 1)

# Four 0xFF bytes in a time field mean "no time recorded"
INVALID_TIME = b"\xFF\xFF\xFF\xFF"


class PageType(IntEnum):
    """On-device log (database partition) identifiers."""

    MANUFACTURING_DATA = 0
    FIRMWARE_PARAMETER_DATA = 1
    PC_SOFTWARE_PARAMETER = 2
    SENSOR_DATA = 3
    EGV_DATA = 4
    CAL_SET = 5
    DEVIATION = 6
    INSERTION_TIME = 7
    RECEIVER_LOG_DATA = 8
    RECEIVER_ERROR_DATA = 9
    METER_DATA = 10
    USER_EVENT_DATA = 11
    USER_SETTING_DATA = 12


class Trend(IntEnum):
    """Directional arrow displayed by the receiver."""

    UP_UP = 1
    UP = 2
    UP_45 = 3
    FLAT = 4
    DOWN_45 = 5
    DOWN = 6
    DOWN_DOWN = 7
    NOT_COMPUTABLE = 8
    OUT_OF_RANGE = 9

    @property
    def symbol(self) -> str:
        return TREND_SYMBOLS[self]


TREND_SYMBOLS: dict[int, str] = {
    Trend.UP_UP: "⇈",
    Trend.UP: "↑",
    Trend.UP_45: "↗",
    Trend.FLAT: "→",
    Trend.DOWN_45: "↘",
    Trend.DOWN: "↓",
    Trend.DOWN_DOWN: "⇊",
    Trend.NOT_COMPUTABLE: "⁇",
    Trend.OUT_OF_RANGE: "⋯",
}


def trend_symbol(code: int) -> str:
    """Glyph for a trend code, or ``""`` for codes with no arrow."""
    return TREND_SYMBOLS.get(code, "")


class SpecialGlucose(IntEnum):
    """Glucose values that encode a receiver condition, not a reading."""

    SENSOR_NOT_ACTIVE = 1
    MINIMAL_DEVIATION = 2
    NO_ANTENNA = 3
    SENSOR_NOT_CALIBRATED = 5
    COUNTS_DEVIATION = 6
    ABSOLUTE_DEVIATION = 9
    POWER_DEVIATION = 10
    BAD_RF = 12


_SPECIAL_VALUES = frozenset(int(s) for s in SpecialGlucose)


def is_special(glucose: int) -> bool:
    """Check whether a glucose value is one of the special condition codes.

    Callers must check this before treating a value as a measurement.
    """
    return glucose in _SPECIAL_VALUES


class SensorChange(IntEnum):
    """Sensor insertion events."""

    STOPPED = 1
    STARTED = 7


def coerce_enum(enum_cls, value: int):
    """Return the ``enum_cls`` member for ``value``, or ``value`` unchanged."""
    try:
        return enum_cls(value)
    except ValueError:
        return value


def enum_name(value) -> str | int:
    return getattr(value, "name", value)


def unmarshal_uint16(data: bytes) -> int:
    return int.from_bytes(data[:2], "little")


def unmarshal_uint32(data: bytes) -> int:
    return int.from_bytes(data[:4], "little")


def unmarshal_int32(data: bytes) -> int:
    return int.from_bytes(data[:4], "little", signed=True)


def unmarshal_float64(data: bytes) -> float:
    return struct.unpack_from("<d", data)[0]


def unmarshal_time(data: bytes) -> datetime:
    """Convert a 4-byte device time to a naive ``datetime``."""
    return DEXCOM_EPOCH + timedelta(seconds=unmarshal_uint32(data))


def device_seconds(t: datetime) -> int:
    """Inverse of :func:`unmarshal_time`: seconds since the device epoch."""
    return int((t - DEXCOM_EPOCH).total_seconds())
