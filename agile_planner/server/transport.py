"""
Line-delimited message transport over byte streams (normally stdin/stdout).

One JSON value per line in each direction. Partial reads are buffered
until a newline arrives. The output stream carries protocol messages only;
all diagnostics go through logging, which writes to stderr.
"""

import json
import logging
import threading
from typing import BinaryIO, Callable, Optional

from agile_planner.server.lifecycle import TransportFSM

logger = logging.getLogger(__name__)

READ_CHUNK = 65536

MessageHandler = Callable[[str], None]


class ServerShutdown(Exception):
    """Raised from a signal handler to break out of a blocking read."""
    pass


class StdioTransport:
    """Frames messages on a byte stream and hands complete lines to a handler."""

    def __init__(self, input_stream: BinaryIO, output_stream: BinaryIO):
        self.input = input_stream
        self.output = output_stream
        self.fsm = TransportFSM()
        self._buffer = bytearray()
        self._handler: Optional[MessageHandler] = None

    @property
    def state(self) -> str:
        return self.fsm.state

    def on_message(self, handler: MessageHandler) -> None:
        """Register the handler and start delivering messages."""
        self._handler = handler
        if self.fsm.state == "idle":
            self.fsm.listen()
        self._drain()

    def feed(self, chunk: bytes) -> None:
        """Append raw bytes and deliver every complete line."""
        self._buffer.extend(chunk)
        self._drain()

    def _drain(self) -> None:
        if self.fsm.state != "listening":
            return
        while True:
            newline = self._buffer.find(b"\n")
            if newline == -1:
                return
            line = bytes(self._buffer[:newline])
            del self._buffer[:newline + 1]
            self._deliver(line)

    def _deliver(self, line: bytes) -> None:
        try:
            text = line.decode("utf-8")
        except UnicodeDecodeError as e:
            logger.error(f"Dropping message that is not valid UTF-8: {e}")
            return
        text = text.strip()
        if not text:
            return
        self._handler(text)

    def send(self, message: dict) -> None:
        """Write one message as a single JSON line and flush.

        Non-ASCII text is escaped, so strings decoded from lone surrogate
        escapes can always be written back out.
        """
        line = json.dumps(message, separators=(",", ":")) + "\n"
        self.output.write(line.encode("ascii"))
        self.output.flush()

    def _read_chunk(self) -> bytes:
        read = getattr(self.input, "read1", None) or self.input.read
        return read(READ_CHUNK)

    def serve(self, shutdown: threading.Event, exit_on_eof: bool = False) -> None:
        """Read until shutdown is signalled.

        End of input does not stop the server unless exit_on_eof is set; the
        loop then waits on the shutdown event instead.
        """
        if self._handler is None:
            raise RuntimeError("No message handler registered")

        try:
            while not shutdown.is_set():
                chunk = self._read_chunk()
                if chunk:
                    self.feed(chunk)
                    continue

                # EOF: a trailing message without newline is still a message
                if self._buffer:
                    self.feed(b"\n")
                if exit_on_eof:
                    logger.info("Input closed, exiting")
                    break
                logger.info("Input closed, waiting for shutdown signal")
                shutdown.wait()
        except ServerShutdown:
            logger.info("Shutdown requested")
        finally:
            if self.fsm.state != "closed":
                self.fsm.close()
