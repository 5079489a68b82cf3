"""
Stdio transport: the MCP server runs as a child process and speaks
JSON-RPC over its stdin/stdout.
"""

import asyncio
import logging
import os
import re
import threading
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from typing import TextIO

from mcp import StdioServerParameters
from mcp.client.stdio import stdio_client

from ..config import MCPTransportConfig
from .base import TransportHandle

logger = logging.getLogger(__name__)

DEFAULT_ERROR_PATTERN = re.compile(r"error|exception|traceback|fatal", re.IGNORECASE)


class StderrFilter:
    """
    Forwards a server's stderr to the log, keeping only error lines visible.

    Verbose servers (npx installers, Playwright, etc.) write progress chatter to
    stderr; only lines matching ``pattern`` are logged at ERROR, the rest at DEBUG.
    """

    def __init__(
        self,
        server_name: str,
        pattern: re.Pattern[str] = DEFAULT_ERROR_PATTERN,
        on_eof: Callable[[], None] | None = None,
    ):
        self.server_name = server_name
        self.pattern = pattern
        self.on_eof = on_eof
        self.surfaced = 0
        self._thread: threading.Thread | None = None

    def handle_line(self, line: str) -> bool:
        """Log one stderr line. Returns True if it was surfaced as an error."""
        line = line.rstrip()
        if not line:
            return False
        if self.pattern.search(line):
            self.surfaced += 1
            logger.error("%s stderr: %s", self.server_name, line)
            return True
        logger.debug("%s stderr: %s", self.server_name, line)
        return False

    def pump(self, stream: TextIO) -> None:
        """Read ``stream`` until EOF, then fire ``on_eof``."""
        try:
            for line in stream:
                self.handle_line(line)
        except (OSError, ValueError) as e:
            logger.debug("%s stderr reader stopped: %s", self.server_name, e)
        finally:
            stream.close()
            if self.on_eof:
                self.on_eof()

    def start(self, stream: TextIO) -> None:
        self._thread = threading.Thread(
            target=self.pump,
            args=(stream,),
            name=f"mcp-stderr-{self.server_name}",
            daemon=True,
        )
        self._thread.start()


def build_server_parameters(config: MCPTransportConfig) -> StdioServerParameters:
    """Server parameters with the declared env merged over the host environment."""
    env = dict(os.environ)
    if config.env:
        env.update(config.env)
    return StdioServerParameters(
        command=config.command,
        args=list(config.args or []),
        env=env,
    )


@asynccontextmanager
async def create_stdio_transport(
    config: MCPTransportConfig, server_name: str = "mcp"
) -> AsyncIterator[TransportHandle]:
    """
    Spawn the server process and yield a handle wired to its stdio.

    Leaving the context terminates the process.
    """
    params = build_server_parameters(config)
    loop = asyncio.get_running_loop()
    terminated = asyncio.Event()

    def _on_eof() -> None:
        try:
            loop.call_soon_threadsafe(terminated.set)
        except RuntimeError:
            # Loop already closed during interpreter shutdown
            pass

    read_fd, write_fd = os.pipe()
    errlog = os.fdopen(write_fd, "w")
    stderr_filter = StderrFilter(server_name, on_eof=_on_eof)
    stderr_filter.start(os.fdopen(read_fd, "r", errors="replace"))

    description = " ".join([params.command, *params.args])
    logger.info("Starting stdio transport for %s: %s", server_name, description)

    try:
        async with stdio_client(params, errlog=errlog) as (read_stream, write_stream):
            # The child holds its own copy of the pipe; EOF now means it exited
            errlog.close()
            yield TransportHandle(
                transport_type="stdio",
                read_stream=read_stream,
                write_stream=write_stream,
                description=description,
                terminated=terminated,
            )
    finally:
        if not errlog.closed:
            errlog.close()
        logger.info("Stdio transport for %s stopped", server_name)
