import json
import logging
from collections import deque
from app.platform.ports.event_bus import EventBusPort

log = logging.getLogger("bus.noop")

class NoopEventBus(EventBusPort):
    """Logs messages instead of shipping them; keeps the most recent ones for inspection."""

    def __init__(self, keep: int = 1000):
        self.published: deque[dict] = deque(maxlen=keep)

    async def publish(self, topic: str, key: str, value: dict, headers: dict | None = None) -> None:
        self.published.append({"topic": topic, "key": key, "value": value, "headers": headers or {}})
        log.info(f"[NOOP BUS] topic={topic} key={key} value={json.dumps(value, default=str)} headers={headers or {}}")
