"""
WebSocket Notifications

Live connections join topics on the notification transport. Every connection
is on the broadcast topic; role and owner topics are requested via the
``topic`` query parameter or join/leave messages.
"""
import logging
from typing import List

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect, status

from claimflow.notifications.events import NotificationEvent, is_valid_topic
from claimflow.notifications.hub import NotificationTransport, SubscriberDisconnected

logger = logging.getLogger(__name__)

router = APIRouter(tags=["notifications"])


class WebSocketSubscriber:
    """Subscriber handle backed by a WebSocket connection."""

    def __init__(self, websocket: WebSocket):
        self.websocket = websocket
        client = websocket.client
        self.name = f"{client.host}:{client.port}" if client else "websocket"

    async def send(self, event: NotificationEvent) -> None:
        try:
            await self.websocket.send_json(event.model_dump(mode="json"))
        except (WebSocketDisconnect, RuntimeError) as e:
            raise SubscriberDisconnected(self.name) from e

    def __repr__(self) -> str:
        return f"WebSocketSubscriber({self.name})"


async def _handle_message(
    transport: NotificationTransport,
    subscriber: WebSocketSubscriber,
    joined: set[str],
    broadcast_topic: str,
    message: dict,
) -> dict:
    action = message.get("action")
    topic = message.get("topic")
    if not isinstance(topic, str) or not is_valid_topic(topic, broadcast_topic):
        return {"kind": "Error", "message": f"Unknown topic: {topic!r}"}
    if action == "join":
        transport.subscribe(topic, subscriber)
        joined.add(topic)
        return {"kind": "Joined", "topic": topic}
    if action == "leave":
        transport.unsubscribe(topic, subscriber)
        joined.discard(topic)
        return {"kind": "Left", "topic": topic}
    return {"kind": "Error", "message": f"Unknown action: {action!r}"}


@router.websocket("/ws/notifications")
async def notifications_socket(websocket: WebSocket, topic: List[str] = Query(default=[])):
    """
    Subscribe to claim notifications.

    Example: ``/ws/notifications?topic=Managers&topic=Lecturer_7``.
    Send ``{"action": "join", "topic": "HR"}`` or ``{"action": "leave", ...}``
    to change membership while connected.
    """
    service = websocket.app.state.workflow_service
    transport: NotificationTransport = service.transport
    broadcast_topic: str = service.broadcast_topic

    invalid = [t for t in topic if not is_valid_topic(t, broadcast_topic)]
    if invalid:
        logger.warning(f"Refusing websocket with unknown topics {invalid}")
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await websocket.accept()
    subscriber = WebSocketSubscriber(websocket)
    requested = [broadcast_topic] + [t for t in topic if t != broadcast_topic]
    for name in requested:
        transport.subscribe(name, subscriber)
    joined = set(requested)
    await websocket.send_json({"kind": "Subscribed", "topics": requested})

    try:
        while True:
            try:
                message = await websocket.receive_json()
            except ValueError:
                await websocket.send_json({"kind": "Error", "message": "Messages must be JSON objects"})
                continue
            if not isinstance(message, dict):
                await websocket.send_json({"kind": "Error", "message": "Messages must be JSON objects"})
                continue
            reply = await _handle_message(transport, subscriber, joined, broadcast_topic, message)
            await websocket.send_json(reply)
    except WebSocketDisconnect:
        logger.info(f"{subscriber!r} disconnected")
    finally:
        for name in joined:
            transport.unsubscribe(name, subscriber)
