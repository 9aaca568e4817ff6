"""Protocol layer: packet framing, CRC, command builders, and response parsing."""

from .framing import Packet, marshal_packet, parse_packet
from .commands import Command, build_command
from .parser import DatabasePage, PageRange, parse_database_page, parse_page_range
