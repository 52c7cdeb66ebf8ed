from typing import Protocol, runtime_checkable

@runtime_checkable
class NotifierPort(Protocol):
    async def notify(self, event_type: str, subject_id: str, payload: dict) -> None: ...
