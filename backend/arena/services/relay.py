import logging
from typing import Any, Callable, Dict, List, NamedTuple, Optional

from arena.errors import ValidationError

logger = logging.getLogger(__name__)

# Relay kind -> event name pushed to the target connection
RELAY_EVENTS = {
    'offer': 'webrtc-offer',
    'answer': 'webrtc-answer',
    'ice-candidate': 'webrtc-ice-candidate',
    'generic-signal': 'webrtc-signal',
    'pong': 'room-pong',
}


class Delivery(NamedTuple):
    target: str
    event: str
    payload: Dict[str, Any]


class SignalingRelay:
    """Room-scoped delivery of signaling messages.

    The relay never talks to the transport directly; it builds `Delivery`
    intents and hands each to `send`.
    """

    def __init__(self, tracker, send: Callable[[Delivery], None]):
        self.tracker = tracker
        self.send = send

    def relay(self, kind, from_id, target_id, payload=None) -> Optional[Delivery]:
        event = RELAY_EVENTS.get(kind)
        if event is None:
            raise ValidationError(f"Unknown relay kind: {kind!r}")
        sender_room = self.tracker.room_of(from_id)
        target_room = self.tracker.room_of(target_id) if target_id else None
        if sender_room is None or target_room is None or sender_room != target_room:
            logger.info(
                f"[relay-drop] kind={kind} from={from_id} target={target_id} "
                f"sender_room={sender_room} target_room={target_room}"
            )
            return None
        delivery = Delivery(target_id, event, dict(payload or {}, fromConnectionId=from_id))
        self._dispatch(delivery)
        return delivery

    def broadcast_to_room(self, room_id, from_id, event, payload=None) -> List[Delivery]:
        body = dict(payload or {})
        if from_id is not None:
            body['fromConnectionId'] = from_id
        deliveries = [
            Delivery(p.connection_id, event, dict(body))
            for p in self.tracker.list_participants(room_id, excluding=from_id)
        ]
        for delivery in deliveries:
            self._dispatch(delivery)
        return deliveries

    def _dispatch(self, delivery: Delivery) -> None:
        try:
            self.send(delivery)
        except Exception as exc:
            logger.warning(f"[relay-send-failed] event={delivery.event} target={delivery.target} error={exc}")
