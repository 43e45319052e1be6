import asyncio
import collections
import json
import logging
import os
from collections.abc import AsyncIterator
from pathlib import Path

from voice_to_text.ports.control import ControlCommand

logger = logging.getLogger(__name__)

DEFAULT_SOCKET_PATH = "/tmp/voice-to-text.sock"


class UnixSocketControlServer:
    """Accepts one JSON command per connection and replies with one JSON line.

    Commands are handed out in arrival order by ``commands()``; the consumer
    answers each with ``send_response()`` in the same order.
    """

    def __init__(self, socket_path: str = DEFAULT_SOCKET_PATH, response_timeout: float = 5.0) -> None:
        self._socket_path = socket_path
        self._response_timeout = response_timeout
        self._server: asyncio.Server | None = None
        self._command_queue: asyncio.Queue[ControlCommand] = asyncio.Queue()
        self._pending: collections.deque[asyncio.Future] = collections.deque()

    async def start(self) -> None:
        socket_file = Path(self._socket_path)
        if socket_file.exists():
            socket_file.unlink()

        self._server = await asyncio.start_unix_server(
            self._handle_client,
            path=self._socket_path,
        )
        os.chmod(self._socket_path, 0o600)
        logger.info("Control socket listening at %s", self._socket_path)

    async def stop(self) -> None:
        if self._server:
            self._server.close()
            await self._server.wait_closed()
            self._server = None
        socket_file = Path(self._socket_path)
        if socket_file.exists():
            socket_file.unlink()

    async def commands(self) -> AsyncIterator[ControlCommand]:
        while True:
            cmd = await self._command_queue.get()
            yield cmd

    async def send_response(self, data: dict) -> None:
        if not self._pending:
            return
        future = self._pending.popleft()
        if not future.done():
            future.set_result(data)

    async def _handle_client(
        self,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
    ) -> None:
        try:
            raw = await asyncio.wait_for(reader.readline(), timeout=5.0)
            if not raw:
                return

            request = json.loads(raw.decode().strip())
            action = request.get("action", "")

            future: asyncio.Future = asyncio.get_running_loop().create_future()
            self._pending.append(future)
            await self._command_queue.put(ControlCommand(action=action))

            try:
                response = await asyncio.wait_for(future, timeout=self._response_timeout)
            except asyncio.TimeoutError:
                response = {"status": "pending", "action": action}
            writer.write((json.dumps(response) + "\n").encode())
            await writer.drain()
        except asyncio.TimeoutError:
            logger.warning("Client connection timed out")
        except json.JSONDecodeError:
            logger.warning("Invalid JSON from client")
        except Exception:
            logger.exception("Error handling control client")
        finally:
            writer.close()
            await writer.wait_closed()


class UnixSocketControlClient:
    def __init__(self, socket_path: str = DEFAULT_SOCKET_PATH) -> None:
        self._socket_path = socket_path

    async def send_command(self, action: str) -> dict:
        reader, writer = await asyncio.open_unix_connection(self._socket_path)
        try:
            request = {"action": action}
            writer.write((json.dumps(request) + "\n").encode())
            await writer.drain()

            raw = await asyncio.wait_for(reader.readline(), timeout=10.0)
            return json.loads(raw.decode().strip())
        finally:
            writer.close()
            await writer.wait_closed()
