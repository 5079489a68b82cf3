"""
Transport handle shared by all MCP transport implementations.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Any


@dataclass
class TransportHandle:
    """
    An open channel to one MCP server.

    ``read_stream``/``write_stream`` are what ``mcp.ClientSession`` consumes.
    ``terminated`` is set by the transport when the channel ends on its own
    (for stdio: the server process exited).
    """

    transport_type: str
    read_stream: Any
    write_stream: Any
    description: str = ""
    terminated: asyncio.Event = field(default_factory=asyncio.Event)

    @property
    def is_terminated(self) -> bool:
        return self.terminated.is_set()
