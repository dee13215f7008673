"""
Speech capture port.

The microphone lives in the browser, so the server-side capture only asks
clients to listen for a player and waits for the transcript (or an error) to
come back over the WebSocket.
"""

import logging
import uuid
from typing import Callable, Optional

from ..errors import CaptureError
from ..websockets.connection_manager import ConnectionManager, topic

logger = logging.getLogger(__name__)

TranscriptCallback = Callable[[str], None]
ErrorCallback = Callable[[CaptureError], None]


class SpeechCapture:
    """Interface: start(player, on_transcript, on_error) / stop()."""

    async def start(self, player: int, on_transcript: TranscriptCallback, on_error: ErrorCallback) -> None:
        raise NotImplementedError

    async def stop(self) -> None:
        raise NotImplementedError


class RemoteSpeechCapture(SpeechCapture):
    CAPTURE_START_TOPIC = topic("capture_start")
    CAPTURE_STOP_TOPIC = topic("capture_stop")

    def __init__(self, connection_manager: ConnectionManager):
        self.connection_manager = connection_manager
        self.capture_id: Optional[str] = None
        self.player: Optional[int] = None
        self._on_transcript: Optional[TranscriptCallback] = None
        self._on_error: Optional[ErrorCallback] = None

    @property
    def listening(self) -> bool:
        return self.capture_id is not None

    async def start(self, player: int, on_transcript: TranscriptCallback, on_error: ErrorCallback) -> None:
        self.capture_id = uuid.uuid4().hex
        self.player = player
        self._on_transcript = on_transcript
        self._on_error = on_error
        logger.info(f"Requesting speech capture {self.capture_id} for player {player}")
        try:
            await self.connection_manager.broadcast_message(
                self.CAPTURE_START_TOPIC,
                {"capture_id": self.capture_id, "player": player}
            )
        except Exception as e:
            self.deliver_error(self.capture_id, f"Could not request capture: {e}")
        if self.connection_manager.connection_count == 0:
            self.deliver_error(self.capture_id, "No client connected to capture speech")

    async def stop(self) -> None:
        if not self.listening:
            return
        capture_id = self.capture_id
        self._clear()
        await self.connection_manager.broadcast_message(self.CAPTURE_STOP_TOPIC, {"capture_id": capture_id})

    def deliver_transcript(self, capture_id: str, text: str) -> bool:
        """Route a transcript from the browser. Fires at most once per start()."""
        if capture_id != self.capture_id or self._on_transcript is None:
            logger.warning(f"Ignoring transcript for stale capture {capture_id}")
            return False
        callback = self._on_transcript
        self._clear()
        callback(text)
        return True

    def deliver_error(self, capture_id: str, message: str) -> bool:
        if capture_id != self.capture_id or self._on_error is None:
            logger.warning(f"Ignoring capture error for stale capture {capture_id}: {message}")
            return False
        callback = self._on_error
        self._clear()
        callback(CaptureError(message))
        return True

    def _clear(self):
        self.capture_id = None
        self.player = None
        self._on_transcript = None
        self._on_error = None
