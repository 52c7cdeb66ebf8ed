import uuid
from datetime import datetime
from typing import AsyncContextManager, Iterable, Protocol, runtime_checkable
from app.modules.bookings.schemas import Booking, Resource, ResourceKind

@runtime_checkable
class BookingTransactionPort(Protocol):
    """One atomic unit of work scoped to a fixed set of resource ids.

    Writes become visible only when the owning context manager exits cleanly;
    an exception (including task cancellation) discards them.
    """
    async def resource(self, resource_id: str) -> Resource | None: ...
    async def active_bookings(self, resource_id: str) -> list[Booking]: ...
    async def get(self, booking_id: uuid.UUID) -> Booking | None: ...
    async def add(self, booking: Booking) -> None: ...
    async def save(self, booking: Booking) -> None: ...

@runtime_checkable
class BookingStorePort(Protocol):
    async def register_resource(self, resource: Resource) -> Resource: ...
    async def get_resource(self, resource_id: str) -> Resource | None: ...
    async def list_resources(self, kind: ResourceKind | None = None) -> list[Resource]: ...
    async def get(self, booking_id: uuid.UUID) -> Booking | None: ...
    async def snapshot(self, resource_ids: Iterable[str], start: datetime, end: datetime) -> dict[str, list[Booking]]: ...
    async def version(self, resource_id: str) -> int: ...
    def transaction(self, resource_ids: Iterable[str], timeout: float | None = None) -> AsyncContextManager[BookingTransactionPort]: ...
