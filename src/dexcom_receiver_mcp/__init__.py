"""Binary protocol for Dexcom CGM receivers, with an MCP server front end."""

__version__ = "0.1.0"
