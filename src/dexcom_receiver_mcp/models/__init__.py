"""Data models for receiver log records and their field values."""

from .values import PageType, SensorChange, SpecialGlucose, Trend, is_special, trend_symbol
from .records import (
    Record,
    Timestamp,
    SensorInfo,
    EGVInfo,
    CalibrationInfo,
    CalibrationData,
    InsertionInfo,
    MeterInfo,
    MetadataInfo,
    unmarshal_record,
)
