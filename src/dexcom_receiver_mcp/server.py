"""MCP server entry point for the Dexcom receiver protocol.

Exposes packet building and record decoding as tools via the Model
Context Protocol using the official Python MCP SDK with stdio transport.
The tools work on hex strings only; talking to a receiver is left to
the caller.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from mcp.server.fastmcp import FastMCP

from .errors import DecodeError
from .models.records import unmarshal_record
from .models.values import PageType, SpecialGlucose, is_special
from .models.values import trend_symbol as _trend_symbol
from .protocol.commands import Command, build_command
from .protocol.framing import parse_packet as _parse_packet
from .protocol.parser import parse_database_page

logger = logging.getLogger(__name__)

mcp = FastMCP(
    "dexcom-receiver",
    instructions="Build request packets for and decode log records from Dexcom CGM receivers",
)


def _from_hex(text: str) -> bytes:
    """Accept hex with or without spaces, colons or a 0x prefix."""
    cleaned = text.strip().lower().replace("0x", "")
    for sep in (" ", ":", "-", "\n"):
        cleaned = cleaned.replace(sep, "")
    return bytes.fromhex(cleaned)


def _resolve(enum_cls, value: str | int):
    if isinstance(value, int):
        return enum_cls(value)
    key = value.strip().upper().replace(" ", "_")
    if key.isdigit():
        return enum_cls(int(key))
    return enum_cls[key]


# ─── PACKET TOOLS ────────────────────────────────────────────────────

@mcp.tool()
def build_packet(command: str | int, params_hex: str = "") -> dict[str, Any]:
    """Build a framed request packet.

    Args:
        command: Command name (e.g. "PING", "READ_DATABASE_PAGES") or code.
        params_hex: Parameter bytes as hex, empty for none.
    """
    try:
        cmd = _resolve(Command, command)
        params = _from_hex(params_hex) if params_hex else b""
    except (KeyError, ValueError) as e:
        return {"error": f"Invalid input: {e}"}

    packet = build_command(cmd, params)
    return {
        "command": cmd.name,
        "length": len(packet),
        "packet_hex": packet.hex(" ").upper(),
    }


@mcp.tool()
def parse_packet(packet_hex: str) -> dict[str, Any]:
    """Parse a response packet and verify its checksum.

    Args:
        packet_hex: The full packet as hex.
    """
    try:
        data = _from_hex(packet_hex)
    except ValueError as e:
        return {"error": f"Invalid hex: {e}"}

    packet = _parse_packet(data)
    if packet is None:
        return {"error": "Not a valid packet (bad start byte, length or CRC)"}

    try:
        status = Command(packet.command).name
    except ValueError:
        status = packet.command
    return {
        "command": status,
        "ok": packet.ok,
        "payload_hex": packet.payload.hex(" ").upper(),
    }


# ─── RECORD TOOLS ────────────────────────────────────────────────────

@mcp.tool()
def decode_record(page_type: str | int, payload_hex: str) -> dict[str, Any]:
    """Decode one record payload (without its CRC).

    Args:
        page_type: Page type name (e.g. "EGV_DATA") or code.
        payload_hex: Record bytes as hex.
    """
    try:
        data = _from_hex(payload_hex)
    except ValueError as e:
        return {"error": f"Invalid hex: {e}"}

    try:
        kind = _resolve(PageType, page_type)
    except (KeyError, ValueError):
        kind = page_type if isinstance(page_type, int) else None
        if kind is None:
            return {"error": f"Unknown page type {page_type!r}"}

    try:
        record = unmarshal_record(kind, data)
    except DecodeError as e:
        logger.debug("decode_record failed: %s", e)
        return {"error": str(e)}
    return record.to_dict()


@mcp.tool()
def decode_page(page_hex: str) -> dict[str, Any]:
    """Decode a whole database page (header and records).

    Args:
        page_hex: Page bytes as hex, as returned by ReadDatabasePages.
    """
    try:
        data = _from_hex(page_hex)
    except ValueError as e:
        return {"error": f"Invalid hex: {e}"}

    try:
        page = parse_database_page(data)
    except DecodeError as e:
        logger.debug("decode_page failed: %s", e)
        return {"error": str(e)}

    header = page.header
    return {
        "page_type": header.page_type.name,
        "page_number": header.page_number,
        "first_index": header.first_index,
        "revision": header.revision,
        "records": [record.to_dict() for record in page.records],
    }


@mcp.tool()
def describe_glucose(value: int) -> dict[str, Any]:
    """Tell whether a glucose value is a reading or a special condition code.

    Args:
        value: Raw glucose value in mg/dL.
    """
    if is_special(value):
        return {"glucose": value, "special": True, "condition": SpecialGlucose(value).name}
    return {"glucose": value, "special": False}


@mcp.tool()
def trend_symbol(code: int) -> dict[str, Any]:
    """Map a trend code to its arrow glyph (empty for unknown codes)."""
    return {"trend": code, "symbol": _trend_symbol(code)}


# ─── RESOURCES ───────────────────────────────────────────────────────

@mcp.resource("dexcom://commands")
def resource_commands() -> str:
    """All receiver command and response codes."""
    return json.dumps({c.name: c.value for c in Command})


@mcp.resource("dexcom://page-types")
def resource_page_types() -> str:
    """All database page types."""
    return json.dumps({p.name: p.value for p in PageType})


# ─── ENTRY POINT ─────────────────────────────────────────────────────

def main():
    """Run the MCP server with stdio transport."""
    logging.basicConfig(level=logging.INFO)
    mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
