import logging
from typing import Dict, Optional
from fastapi import WebSocket
import uuid

logger = logging.getLogger(__name__)

TOPIC_PREFIX = "jeopardy.duel"


def topic(name: str) -> str:
    return f"{TOPIC_PREFIX}.{name}"


class ConnectionManager:
    def __init__(self):
        self.active_connections: Dict[str, WebSocket] = {}

    @property
    def connection_count(self) -> int:
        return len(self.active_connections)

    async def connect(self, websocket: WebSocket) -> str:
        """Connect a websocket and return its client_id"""
        await websocket.accept()
        client_id = str(uuid.uuid4())
        self.active_connections[client_id] = websocket
        logger.info(f"Client {client_id} connected ({self.connection_count} total)")
        return client_id

    def find_client_id(self, websocket: WebSocket) -> Optional[str]:
        for client_id, conn in self.active_connections.items():
            if conn is websocket:
                return client_id
        return None

    async def disconnect(self, websocket: WebSocket) -> None:
        """Disconnect a websocket"""
        client_id = self.find_client_id(websocket)
        if client_id:
            del self.active_connections[client_id]
            logger.info(f"Client {client_id} disconnected")

    async def send_personal_message(self, websocket: WebSocket, topic: str, payload: dict):
        """Send a message to a specific client"""
        message = {"topic": topic, "payload": payload}
        await websocket.send_json(message)

    async def broadcast_message(self, topic: str, payload: dict):
        """Broadcast a message to all connected clients"""
        message = {"topic": topic, "payload": payload}
        disconnected = []

        for client_id, connection in list(self.active_connections.items()):
            try:
                await connection.send_json(message)
            except Exception as e:
                logger.error(f"Failed to send {topic} to {client_id}: {e}")
                disconnected.append(client_id)

        # Clean up disconnected clients
        for client_id in disconnected:
            self.active_connections.pop(client_id, None)
