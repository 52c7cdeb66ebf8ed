import logging
from app.modules.events.hub import BackgroundTasks
from app.platform.ports.notifier import NotifierPort

log = logging.getLogger(__name__)

class NotificationsService:
    """Fire-and-forget front for the notifier collaborator.

    ``send`` returns immediately; delivery runs as a background task and a
    failure there is logged, never reported back to the scheduling core.
    """

    def __init__(self, notifier: NotifierPort, tasks: BackgroundTasks | None = None):
        self.notifier = notifier
        self.tasks = tasks or BackgroundTasks("notify")

    def send(self, event_type: str, subject_id, payload: dict) -> None:
        self.tasks.spawn(self._deliver(event_type, str(subject_id), payload), label=event_type)

    async def _deliver(self, event_type: str, subject_id: str, payload: dict):
        try:
            await self.notifier.notify(event_type, subject_id, payload)
        except Exception:
            log.exception("Notifier failed for %s %s", event_type, subject_id)

    async def drain(self):
        await self.tasks.drain()
