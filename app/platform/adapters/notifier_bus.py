import logging
from datetime import datetime, timezone
from app.platform.ports.event_bus import EventBusPort
from app.platform.ports.notifier import NotifierPort

log = logging.getLogger("notifier.bus")

NOTIFICATION_TOPIC = "vetsched.notifications"

class EventBusNotifier(NotifierPort):
    """Hands notifications to the event bus; delivery (SMS/email/push) is owned by downstream consumers."""

    def __init__(self, bus: EventBusPort, topic: str = NOTIFICATION_TOPIC):
        self.bus = bus
        self.topic = topic

    async def notify(self, event_type: str, subject_id: str, payload: dict) -> None:
        await self.bus.publish(topic=self.topic, key=subject_id, value={
            "event_type": event_type,
            "subject_id": subject_id,
            "payload": payload,
            "occurred_at": datetime.now(timezone.utc).isoformat(),
        })
        log.debug("Notification %s queued for %s", event_type, subject_id)
