"""Log record model: decode one page-record payload into a ``Record``.

Every payload starts with an 8-byte timestamp::

    +-------------+--------------+---------------------------+
    | System time | Display time |  layout-specific fields   |
    | u32         | u32          |                           |
    +-------------+--------------+---------------------------+

The rest of the payload is selected by the page type the record was
read from. Payload sizes below exclude the 2-byte CRC that follows each
record on a database page.
"""

from __future__ import annotations

import logging
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import ClassVar, Union

from ..errors import LengthMismatch, TruncatedRecord, UnsupportedPageType
from .values import (
    INVALID_TIME,
    PageType,
    SensorChange,
    SpecialGlucose,
    Trend,
    coerce_enum,
    device_seconds,
    enum_name,
    is_special,
    trend_symbol,
    unmarshal_float64,
    unmarshal_int32,
    unmarshal_time,
    unmarshal_uint16,
    unmarshal_uint32,
)

logger = logging.getLogger(__name__)

TIMESTAMP_SIZE = 8

# EGV glucose word
EGV_DISPLAY_ONLY = 1 << 15
EGV_VALUE_MASK = 0x3FF
# EGV trend/noise byte
EGV_NOISE_MASK = 0x70
EGV_NOISE_SHIFT = 4
EGV_TREND_ARROW_MASK = 0x0F

# Calibration set offsets
OFF_CAL_SLOPE = 8
OFF_CAL_INTERCEPT = 16
OFF_CAL_SCALE = 24
OFF_CAL_DECAY = 35        # bytes 32-34 are reserved
OFF_CAL_COUNT = 43
OFF_CAL_ENTRIES = 44
CAL_ENTRY_SIZE = 17       # last byte of each entry is reserved


def _isoformat(t: datetime | None) -> str | None:
    return t.isoformat() if t is not None else None


@dataclass(frozen=True)
class Timestamp:
    """System (raw device clock) and display (user-adjusted) times."""

    system_time: datetime
    display_time: datetime

    @property
    def offset(self) -> timedelta:
        """Clock adjustment in effect when the record was written."""
        return self.display_time - self.system_time

    @property
    def system_secs(self) -> int:
        return device_seconds(self.system_time)

    @property
    def display_secs(self) -> int:
        return device_seconds(self.display_time)

    @classmethod
    def from_bytes(cls, data: bytes) -> Timestamp:
        return cls(
            system_time=unmarshal_time(data[0:4]),
            display_time=unmarshal_time(data[4:8]),
        )

    def to_dict(self) -> dict:
        return {
            "system_time": self.system_time.isoformat(),
            "display_time": self.display_time.isoformat(),
        }


@dataclass(frozen=True)
class SensorInfo:
    """Raw sensor counts (18 bytes)."""

    SIZE: ClassVar[int | None] = 18
    unfiltered: int
    filtered: int
    rssi: int
    reserved: int = 0

    @classmethod
    def from_bytes(cls, data: bytes, timestamp: Timestamp) -> SensorInfo:
        rssi = data[16]
        return cls(
            unfiltered=unmarshal_uint32(data[8:12]),
            filtered=unmarshal_uint32(data[12:16]),
            rssi=rssi - 256 if rssi & 0x80 else rssi,
            reserved=data[17],
        )

    def to_dict(self) -> dict:
        return {
            "unfiltered": self.unfiltered,
            "filtered": self.filtered,
            "rssi": self.rssi,
            "reserved": self.reserved,
        }


@dataclass(frozen=True)
class EGVInfo:
    """Estimated glucose value (11 bytes).

    Byte 8-9 packs the glucose value (bits 0-9) and the display-only flag
    (bit 15). Byte 10 packs the noise level (bits 4-6) and the trend code
    (bits 0-3).
    """

    SIZE: ClassVar[int | None] = 11
    glucose: int
    display_only: bool
    noise: int
    trend: Trend | int

    @property
    def is_special(self) -> bool:
        return is_special(self.glucose)

    @property
    def special(self) -> SpecialGlucose | None:
        return SpecialGlucose(self.glucose) if self.is_special else None

    @property
    def trend_symbol(self) -> str:
        return trend_symbol(self.trend)

    @classmethod
    def from_bytes(cls, data: bytes, timestamp: Timestamp) -> EGVInfo:
        word = unmarshal_uint16(data[8:10])
        flags = data[10]
        return cls(
            glucose=word & EGV_VALUE_MASK,
            display_only=word & EGV_DISPLAY_ONLY != 0,
            noise=(flags & EGV_NOISE_MASK) >> EGV_NOISE_SHIFT,
            trend=coerce_enum(Trend, flags & EGV_TREND_ARROW_MASK),
        )

    def to_dict(self) -> dict:
        special = self.special
        return {
            "glucose": self.glucose,
            "special": special.name if special is not None else None,
            "display_only": self.display_only,
            "noise": self.noise,
            "trend": enum_name(self.trend),
            "trend_symbol": self.trend_symbol,
        }


@dataclass(frozen=True)
class CalibrationData:
    """One meter reading used by a calibration set."""

    time_entered: datetime
    glucose: int
    raw: int
    time_applied: datetime

    @classmethod
    def from_bytes(cls, data: bytes) -> CalibrationData:
        return cls(
            time_entered=unmarshal_time(data[0:4]),
            glucose=unmarshal_int32(data[4:8]),
            raw=unmarshal_int32(data[8:12]),
            time_applied=unmarshal_time(data[12:16]),
        )

    def shifted(self, offset: timedelta) -> CalibrationData:
        return CalibrationData(
            time_entered=self.time_entered + offset,
            glucose=self.glucose,
            raw=self.raw,
            time_applied=self.time_applied + offset,
        )

    def to_dict(self) -> dict:
        return {
            "time_entered": self.time_entered.isoformat(),
            "glucose": self.glucose,
            "raw": self.raw,
            "time_applied": self.time_applied.isoformat(),
        }


@dataclass(frozen=True)
class CalibrationInfo:
    """Calibration curve and the readings it was fitted to (variable size).

    Entry times are stored on the device in system time; they are moved to
    display time using the record's own clock offset.
    """

    SIZE: ClassVar[int | None] = None
    slope: float
    intercept: float
    scale: float
    decay: float
    data: tuple[CalibrationData, ...] = ()

    @classmethod
    def from_bytes(cls, data: bytes, timestamp: Timestamp) -> CalibrationInfo:
        if len(data) < OFF_CAL_ENTRIES:
            raise TruncatedRecord(
                f"calibration record needs at least {OFF_CAL_ENTRIES} bytes, "
                f"got {len(data)}",
                data,
            )
        count = data[OFF_CAL_COUNT]
        needed = OFF_CAL_ENTRIES + count * CAL_ENTRY_SIZE
        if len(data) < needed:
            raise TruncatedRecord(
                f"calibration record with {count} entries needs {needed} bytes, "
                f"got {len(data)}",
                data,
            )

        offset = timestamp.offset
        entries = []
        for i in range(count):
            start = OFF_CAL_ENTRIES + i * CAL_ENTRY_SIZE
            entry = CalibrationData.from_bytes(data[start : start + CAL_ENTRY_SIZE])
            entries.append(entry.shifted(offset))

        return cls(
            slope=unmarshal_float64(data[OFF_CAL_SLOPE:OFF_CAL_INTERCEPT]),
            intercept=unmarshal_float64(data[OFF_CAL_INTERCEPT:OFF_CAL_SCALE]),
            scale=unmarshal_float64(data[OFF_CAL_SCALE : OFF_CAL_SCALE + 8]),
            decay=unmarshal_float64(data[OFF_CAL_DECAY:OFF_CAL_COUNT]),
            data=tuple(entries),
        )

    def to_dict(self) -> dict:
        return {
            "slope": self.slope,
            "intercept": self.intercept,
            "scale": self.scale,
            "decay": self.decay,
            "data": [entry.to_dict() for entry in self.data],
        }


@dataclass(frozen=True)
class InsertionInfo:
    """Sensor insertion or removal event (13 bytes)."""

    SIZE: ClassVar[int | None] = 13
    system_time: datetime | None
    event: SensorChange | int

    @classmethod
    def from_bytes(cls, data: bytes, timestamp: Timestamp) -> InsertionInfo:
        raw_time = bytes(data[8:12])
        system_time = None
        if raw_time != INVALID_TIME:
            system_time = unmarshal_time(raw_time)
        return cls(system_time=system_time, event=coerce_enum(SensorChange, data[12]))

    def to_dict(self) -> dict:
        return {
            "system_time": _isoformat(self.system_time),
            "event": enum_name(self.event),
        }


@dataclass(frozen=True)
class MeterInfo:
    """Blood glucose meter entry (14 bytes)."""

    SIZE: ClassVar[int | None] = 14
    glucose: int
    meter_time: datetime

    @classmethod
    def from_bytes(cls, data: bytes, timestamp: Timestamp) -> MeterInfo:
        return cls(
            glucose=unmarshal_uint16(data[8:10]),
            meter_time=unmarshal_time(data[10:14]),
        )

    def to_dict(self) -> dict:
        return {"glucose": self.glucose, "meter_time": self.meter_time.isoformat()}


@dataclass(frozen=True)
class MetadataInfo:
    """Manufacturing, firmware or PC software parameters.

    The bytes after the timestamp are kept as-is. On the receivers seen so
    far they hold a NUL-padded XML fragment, exposed through ``text`` and
    ``element()``.
    """

    SIZE: ClassVar[int | None] = None
    raw: bytes = b""

    @classmethod
    def from_bytes(cls, data: bytes, timestamp: Timestamp) -> MetadataInfo:
        return cls(raw=bytes(data[TIMESTAMP_SIZE:]))

    @property
    def text(self) -> str:
        return self.raw.decode("ascii", errors="replace").replace("\x00", "")

    def element(self) -> ET.Element:
        """Parse ``text`` as XML.

        Raises:
            xml.etree.ElementTree.ParseError: If the text is not XML.
        """
        return ET.fromstring(self.text)

    def to_dict(self) -> dict:
        return {"text": self.text, "raw_length": len(self.raw)}


RecordInfo = Union[SensorInfo, EGVInfo, CalibrationInfo, InsertionInfo, MeterInfo, MetadataInfo]


@dataclass(frozen=True)
class Record:
    """A decoded log record: a timestamp and exactly one layout variant."""

    page_type: PageType
    timestamp: Timestamp
    info: RecordInfo

    @property
    def time(self) -> datetime:
        """The record's display time."""
        return self.timestamp.display_time

    def to_dict(self) -> dict:
        return {
            "page_type": self.page_type.name,
            "timestamp": self.timestamp.to_dict(),
            "info": self.info.to_dict(),
        }


def layout_for(page_type: PageType | int) -> type[RecordInfo]:
    """Select the record layout class for a page type.

    Raises:
        UnsupportedPageType: If no layout is known for ``page_type``.
    """
    match coerce_enum(PageType, page_type):
        case PageType.SENSOR_DATA:
            return SensorInfo
        case PageType.EGV_DATA:
            return EGVInfo
        case PageType.CAL_SET:
            return CalibrationInfo
        case PageType.INSERTION_TIME:
            return InsertionInfo
        case PageType.METER_DATA:
            return MeterInfo
        case (
            PageType.MANUFACTURING_DATA
            | PageType.FIRMWARE_PARAMETER_DATA
            | PageType.PC_SOFTWARE_PARAMETER
        ):
            return MetadataInfo
        case _:
            raise UnsupportedPageType(page_type)


def unmarshal_record(page_type: PageType | int, payload: bytes) -> Record:
    """Decode one record payload read from a ``page_type`` log page.

    Args:
        page_type: The log the payload was read from.
        payload: Record bytes, without the trailing CRC.

    Raises:
        UnsupportedPageType: If the page type has no known layout.
        LengthMismatch: If a fixed-size layout gets the wrong number of bytes.
        TruncatedRecord: If a variable-size payload is shorter than it claims.
    """
    payload = bytes(payload)
    try:
        layout = layout_for(page_type)
    except UnsupportedPageType:
        raise UnsupportedPageType(page_type, payload) from None

    page_type = PageType(page_type)
    if layout.SIZE is not None and len(payload) != layout.SIZE:
        raise LengthMismatch(page_type, layout.SIZE, len(payload), payload)
    if len(payload) < TIMESTAMP_SIZE:
        raise TruncatedRecord(
            f"{page_type.name} record needs at least {TIMESTAMP_SIZE} bytes, "
            f"got {len(payload)}",
            payload,
        )

    timestamp = Timestamp.from_bytes(payload)
    info = layout.from_bytes(payload, timestamp)
    logger.debug("Decoded %s record at %s", page_type.name, timestamp.display_time)
    return Record(page_type=page_type, timestamp=timestamp, info=info)
