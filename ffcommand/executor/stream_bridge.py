"""Bridges between in-process byte streams and ffmpeg.

A :class:`NamedPipeStream` listens on a uniquely named local endpoint (a
Unix socket, or a named pipe on Windows) whose address can be passed to
ffmpeg in place of a file name. The first connection ffmpeg makes is
relayed to or from the in-process stream; no further connections are
accepted.

Supported streams are ``asyncio.StreamReader``/``asyncio.StreamWriter``
and binary file objects. Blocking file objects are driven from a worker
thread.
"""

import asyncio
import inspect
import logging
import os
import socket
import sys
import tempfile
import uuid
from typing import Any, Awaitable, Callable, Optional

from ..errors import BridgeError
from .specs import PipeOptions

logger = logging.getLogger("ffcommand")

ConnectionHandler = Callable[[asyncio.StreamReader, asyncio.StreamWriter], Awaitable[None]]

CHUNK_SIZE = 64 * 1024
CLOSE_POLL_INTERVAL = 0.1


def _remove_stale(path: str) -> None:
    """Remove a leftover endpoint file, ignoring any failure."""
    try:
        if os.path.lexists(path):
            os.unlink(path)
    except OSError:
        pass


def stream_is_closed(stream: Any) -> bool:
    """Whether an in-process stream has been closed."""
    if isinstance(stream, asyncio.StreamReader):
        return stream.at_eof() or stream.exception() is not None
    if hasattr(stream, "is_closing"):
        return stream.is_closing()
    return bool(getattr(stream, "closed", False))


async def read_chunk(stream: Any) -> bytes:
    if inspect.iscoroutinefunction(stream.read):
        return await stream.read(CHUNK_SIZE)
    return await asyncio.to_thread(stream.read, CHUNK_SIZE)


async def write_chunk(stream: Any, data: bytes) -> None:
    if isinstance(stream, asyncio.StreamWriter):
        stream.write(data)
        await stream.drain()
    else:
        await asyncio.to_thread(stream.write, data)


async def close_stream(stream: Any) -> None:
    if isinstance(stream, asyncio.StreamWriter):
        stream.close()
        try:
            await stream.wait_closed()
        except ConnectionError:
            pass
    else:
        await asyncio.to_thread(stream.close)


class NamedPipeStream:
    """A single-use local endpoint bound to an in-process stream.

    The endpoint is bound synchronously by the constructor, which must run
    inside an event loop. Closing the bridged stream closes the endpoint;
    :meth:`close` does the same explicitly. Closing is idempotent.

    Args:
        stream: The in-process stream being bridged.
        on_connection: Coroutine run with the reader/writer pair of the one
            accepted connection.
        directory: Directory for the socket file (POSIX only). Defaults to
            the system temporary directory.

    Raises:
        BridgeError: If the endpoint cannot be bound.
    """

    def __init__(
        self,
        stream: Any,
        on_connection: Optional[ConnectionHandler] = None,
        directory: Optional[str] = None,
    ):
        self.id = str(uuid.uuid4())
        self.stream = stream
        self._on_connection = on_connection
        self._closed = False
        self._accepted = False
        self._server: Optional[asyncio.AbstractServer] = None
        self._pipe_servers: list = []

        loop = asyncio.get_running_loop()

        if sys.platform == "win32":
            self._path = self._url = rf"\\.\pipe\{self.id}.sock"
            self._serve_task = loop.create_task(self._serve_pipe())
        else:
            self._path = os.path.join(directory or tempfile.gettempdir(), f"{self.id}.sock")
            self._url = "unix:" + self._path
            _remove_stale(self._path)
            sock = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
            try:
                sock.bind(self._path)
                sock.listen(1)
                sock.setblocking(False)
            except OSError as e:
                sock.close()
                raise BridgeError(e.errno, f"Cannot bind stream endpoint {self._path}: {e.strerror or e}") from e
            self._serve_task = loop.create_task(self._serve_unix(sock))

        self._watch_task = loop.create_task(self._watch_stream())
        logger.debug("Stream endpoint %s listening", self._url)

    @property
    def url(self) -> str:
        """Address to hand to ffmpeg."""
        return self._url

    @property
    def path(self) -> str:
        """Filesystem (or pipe namespace) address of the endpoint."""
        return self._path

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def accepted(self) -> bool:
        return self._accepted

    async def _serve_unix(self, sock: socket.socket) -> None:
        if self._closed:
            sock.close()
            return
        server = await asyncio.start_unix_server(self._handle_connection, sock=sock)
        if self._closed or self._accepted:
            server.close()
        else:
            self._server = server

    async def _serve_pipe(self) -> None:
        loop = asyncio.get_running_loop()

        def factory():
            reader = asyncio.StreamReader()
            return asyncio.StreamReaderProtocol(reader, self._handle_connection)

        try:
            servers = await loop.start_serving_pipe(factory, self._path)
        except OSError:
            logger.error("Cannot serve named pipe %s", self._path, exc_info=True)
            self.close()
            return
        if self._closed:
            for server in servers:
                server.close()
        else:
            self._pipe_servers = servers

    async def _handle_connection(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        if self._accepted or self._closed:
            writer.close()
            return
        self._accepted = True
        logger.debug("Stream endpoint %s connected", self._url)
        # One peer per endpoint: stop listening right away
        self._close_acceptor()
        if self._on_connection is not None:
            await self._on_connection(reader, writer)

    async def _watch_stream(self) -> None:
        while not stream_is_closed(self.stream):
            await asyncio.sleep(CLOSE_POLL_INTERVAL)
        logger.debug("Bridged stream closed, closing endpoint %s", self._url)
        self.close()

    def _close_acceptor(self) -> None:
        # A socket not yet handed to a server is closed by _serve_unix
        if self._server is not None:
            self._server.close()
            self._server = None
        for server in self._pipe_servers:
            server.close()
        self._pipe_servers = []
        if sys.platform != "win32":
            _remove_stale(self._path)

    def close(self) -> None:
        """Stop accepting connections. Safe to call more than once.

        A relay already in progress is left to finish.
        """
        if self._closed:
            return
        self._closed = True
        self._close_acceptor()
        if self._watch_task is not asyncio.current_task() and not self._watch_task.done():
            self._watch_task.cancel()
        logger.debug("Stream endpoint %s closed", self._url)


def stream_input(stream: Any, directory: Optional[str] = None) -> NamedPipeStream:
    """Expose a readable in-process stream to ffmpeg as an input."""

    async def relay(reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        try:
            while True:
                data = await read_chunk(stream)
                if not data:
                    break
                writer.write(data)
                await writer.drain()
            if writer.can_write_eof():
                writer.write_eof()
        except ConnectionError as e:
            logger.debug("ffmpeg closed input endpoint early: %s", e)
        finally:
            writer.close()

    return NamedPipeStream(stream, relay, directory=directory)


def stream_output(
    stream: Any,
    pipe_options: Optional[PipeOptions] = None,
    directory: Optional[str] = None,
) -> NamedPipeStream:
    """Expose a writable in-process stream to ffmpeg as an output."""
    pipe_options = pipe_options or PipeOptions()

    async def relay(reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        try:
            while True:
                data = await reader.read(CHUNK_SIZE)
                if not data:
                    break
                await write_chunk(stream, data)
        except ConnectionError as e:
            logger.debug("ffmpeg dropped output endpoint: %s", e)
        finally:
            writer.close()
        if pipe_options.end:
            await close_stream(stream)

    return NamedPipeStream(stream, relay, directory=directory)
