"""Tests for primitive decoders and enumerations."""

from datetime import datetime

from dexcom_receiver_mcp.models.values import (
    DEXCOM_EPOCH,
    SensorChange,
    SpecialGlucose,
    Trend,
    coerce_enum,
    device_seconds,
    is_special,
    trend_symbol,
    unmarshal_float64,
    unmarshal_int32,
    unmarshal_time,
    unmarshal_uint16,
    unmarshal_uint32,
)


def test_is_special_codes():
    """Exactly the defined condition codes are special."""
    for code in (1, 2, 3, 5, 6, 9, 10, 12):
        assert is_special(code)


def test_is_special_readings():
    """Zero and values above the last code are readings."""
    assert not is_special(0)
    for value in (13, 39, 100, 400, 1023):
        assert not is_special(value)


def test_special_glucose_names():
    assert SpecialGlucose(3) is SpecialGlucose.NO_ANTENNA
    assert SpecialGlucose.BAD_RF == 12


def test_trend_symbols():
    """Every known trend has a glyph."""
    assert Trend.FLAT.symbol == "→"
    assert Trend.UP_UP.symbol == "⇈"
    assert trend_symbol(Trend.DOWN_DOWN) == "⇊"
    assert trend_symbol(9) == "⋯"
    for trend in Trend:
        assert trend_symbol(trend) != ""


def test_trend_symbol_unknown():
    """Unmapped trend codes give an empty symbol rather than an error."""
    assert trend_symbol(0) == ""
    assert trend_symbol(15) == ""


def test_coerce_enum():
    """Known codes become members, unknown codes stay plain ints."""
    assert coerce_enum(SensorChange, 7) is SensorChange.STARTED
    assert coerce_enum(SensorChange, 3) == 3
    assert not isinstance(coerce_enum(SensorChange, 3), SensorChange)


def test_integer_decoders():
    assert unmarshal_uint16(b"\x34\x12") == 0x1234
    assert unmarshal_uint32(b"\x78\x56\x34\x12") == 0x12345678
    assert unmarshal_uint32(b"\xFF\xFF\xFF\xFF") == 0xFFFFFFFF
    assert unmarshal_int32(b"\xFF\xFF\xFF\xFF") == -1
    assert unmarshal_int32(b"\x10\x00\x00\x00") == 16


def test_float64_decoder():
    assert unmarshal_float64(bytes.fromhex("000000000000F03F")) == 1.0
    assert unmarshal_float64(bytes.fromhex("00000000000000C0")) == -2.0


def test_time_decoder():
    """Device times count seconds from 2009-01-01."""
    assert unmarshal_time(b"\x00\x00\x00\x00") == DEXCOM_EPOCH
    assert unmarshal_time((86400).to_bytes(4, "little")) == datetime(2009, 1, 2)
    assert device_seconds(datetime(2009, 1, 2)) == 86400
