"""Fire-and-forget command channel to embedded display surfaces.

Surfaces are grouped by key. A public display subscribes under its slug and
the admin preview subscribes under ``surface_key(slug, preview=True)``, so a
command meant for the preview never reaches public screens. Any peer on a
socket may post to its own group; there is no origin check and no
acknowledgement.
"""

import json
import logging
from collections.abc import Awaitable, Callable

from fastapi import WebSocket
from pydantic import ValidationError

from menu_display_service.models.sync_models import DisplayCommand

logger = logging.getLogger(__name__)

CommandHandler = Callable[[DisplayCommand], Awaitable[None]]

PREVIEW_SUFFIX = ":preview"


def surface_key(slug: str, preview: bool = False) -> str:
    """Channel key for the public displays or the admin preview of a slug."""
    return f"{slug}{PREVIEW_SUFFIX}" if preview else slug


class DisplayControlChannel:
    """Per-key fan-out of display commands."""

    def __init__(self) -> None:
        self._handlers: dict[str, list[CommandHandler]] = {}
        self._socket_handlers: dict[WebSocket, tuple[str, CommandHandler]] = {}

    def subscribe(self, key: str, handler: CommandHandler) -> None:
        """Register a surface for commands posted to ``key``."""
        self._handlers.setdefault(key, []).append(handler)

    def unsubscribe(self, key: str, handler: CommandHandler) -> None:
        handlers = self._handlers.get(key)
        if not handlers or handler not in handlers:
            return
        handlers.remove(handler)
        if not handlers:
            del self._handlers[key]

    def subscriber_count(self, key: str) -> int:
        return len(self._handlers.get(key, []))

    async def post(self, key: str, command: DisplayCommand) -> int:
        """Deliver a command to every surface subscribed to a key.

        Handlers that fail are dropped. Nothing is queued for surfaces that
        connect later.

        Args:
            key: Slug, or preview key, addressed by the command
            command: Command to deliver

        Returns:
            Number of surfaces the command reached
        """
        handlers = list(self._handlers.get(key, []))
        if not handlers:
            logger.debug(f"No display surfaces for {key}, dropping {command.action} command")
            return 0

        delivered = 0
        for handler in handlers:
            try:
                await handler(command)
                delivered += 1
            except Exception as e:
                logger.warning(f"Dropping display surface for {key}: {e}")
                self.unsubscribe(key, handler)

        logger.info(f"Posted {command.action} command to {delivered} surface(s) for {key}")
        return delivered

    async def connect(self, websocket: WebSocket, key: str) -> None:
        """Accept a display surface socket and subscribe it to ``key``."""
        await websocket.accept()

        async def send(command: DisplayCommand) -> None:
            await websocket.send_json(command.model_dump())

        self._socket_handlers[websocket] = (key, send)
        self.subscribe(key, send)
        logger.info(f"Display surface connected for {key}")

    def disconnect(self, websocket: WebSocket) -> None:
        entry = self._socket_handlers.pop(websocket, None)
        if entry is None:
            logger.warning("Attempted to disconnect unknown display socket")
            return
        key, handler = entry
        self.unsubscribe(key, handler)
        logger.info(f"Display surface disconnected for {key}")

    async def serve(self, websocket: WebSocket, key: str) -> None:
        """Run a control socket until the peer disconnects.

        Every valid command received is re-posted to the key's surfaces,
        including the sender. Binary frames, malformed JSON and unknown
        actions are logged and skipped without closing the socket.
        """
        await self.connect(websocket, key)
        try:
            while True:
                message = await websocket.receive()
                if message["type"] == "websocket.disconnect":
                    break
                command = self._parse(message.get("text"), key)
                if command is not None:
                    await self.post(key, command)
        finally:
            self.disconnect(websocket)

    @staticmethod
    def _parse(text: str | None, key: str) -> DisplayCommand | None:
        if text is None:
            logger.warning(f"Ignoring non-text frame on control socket for {key}")
            return None
        try:
            return DisplayCommand.model_validate(json.loads(text))
        except (ValueError, ValidationError) as e:
            logger.warning(f"Ignoring invalid display command for {key}: {e}")
            return None
