"""WebSocket connection registry and order event broadcasting."""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from fastapi import WebSocket, status

logger = logging.getLogger(__name__)

ORDERS_CHANNEL = "orders"


class ConnectionManager:
    """Manages WebSocket connections for real-time updates."""

    MAX_CONNECTIONS_PER_CHANNEL = 200

    def __init__(self):
        self.active_connections: Dict[str, List[WebSocket]] = {}
        self.connection_metadata: Dict[int, Dict[str, Any]] = {}

    async def connect(
        self,
        websocket: WebSocket,
        channel: str = ORDERS_CHANNEL,
        user_id: Optional[int] = None,
    ) -> bool:
        """Accept and register a socket. Returns False if the channel is full."""
        if len(self.active_connections.get(channel, [])) >= self.MAX_CONNECTIONS_PER_CHANNEL:
            logger.warning(f"WebSocket connection rejected: channel '{channel}' at capacity")
            await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
            return False

        await websocket.accept()
        self.active_connections.setdefault(channel, []).append(websocket)
        now = datetime.now(timezone.utc)
        self.connection_metadata[id(websocket)] = {
            "connected_at": now,
            "user_id": user_id,
            "channel": channel,
            "last_ping": now,
        }
        logger.debug(f"WebSocket connected to channel '{channel}', user_id={user_id}")
        return True

    def disconnect(self, websocket: WebSocket, channel: str = ORDERS_CHANNEL):
        connections = self.active_connections.get(channel, [])
        if websocket in connections:
            connections.remove(websocket)
        self.connection_metadata.pop(id(websocket), None)
        logger.debug(f"WebSocket disconnected from channel '{channel}'")

    def update_ping(self, websocket: WebSocket):
        meta = self.connection_metadata.get(id(websocket))
        if meta:
            meta["last_ping"] = datetime.now(timezone.utc)

    async def broadcast(self, message: Dict[str, Any], channel: str = ORDERS_CHANNEL):
        """Send to every socket on a channel, dropping the ones that fail."""
        disconnected = []
        for connection in list(self.active_connections.get(channel, [])):
            try:
                await connection.send_json(message)
            except Exception as e:
                logger.debug(f"WebSocket send failed: {e}")
                disconnected.append(connection)

        for conn in disconnected:
            self.disconnect(conn, channel)

    def get_connection_count(self, channel: Optional[str] = None) -> int:
        if channel:
            return len(self.active_connections.get(channel, []))
        return sum(len(conns) for conns in self.active_connections.values())


ws_manager = ConnectionManager()


def get_ws_manager() -> ConnectionManager:
    return ws_manager


def order_event(action: str, order: Any) -> Dict[str, Any]:
    """Event payload for an order change. ``order`` is an Order row."""
    return {
        "type": "order",
        "action": action,
        "data": {
            "id": order.id,
            "orderNumber": order.order_number,
            "tableId": order.table_id,
            "status": order.status,
            "total": order.total,
            "version": order.version,
        },
    }


async def broadcast_order_event(event: Dict[str, Any]):
    """Push an order event to every terminal. Run as a background task."""
    try:
        await get_ws_manager().broadcast(event, ORDERS_CHANNEL)
    except Exception as e:
        logger.warning(f"WebSocket broadcast error: {e}")
