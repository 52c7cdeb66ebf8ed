from app.core.config import settings
from app.platform.ports.event_bus import EventBusPort
from app.platform.adapters.bus_noop import NoopEventBus
from app.platform.adapters.bus_redis import RedisEventBus
from app.platform.ports.notifier import NotifierPort
from app.platform.adapters.notifier_bus import EventBusNotifier
from app.platform.ports.booking_store import BookingStorePort
from app.platform.ports.schedule_store import AppointmentStorePort, WaitlistStorePort
from app.platform.adapters.store_memory import InMemoryAppointmentStore, InMemoryBookingStore, InMemoryWaitlistStore

Stores = tuple[BookingStorePort, AppointmentStorePort, WaitlistStorePort]

class ProviderRegistry:
    _event_bus: EventBusPort | None = None
    _notifier: NotifierPort | None = None

    @classmethod
    def event_bus(cls) -> EventBusPort:
        if cls._event_bus is None:
            prov = (settings.EVENT_BUS_PROVIDER or "noop").lower()
            if prov == "redis":
                cls._event_bus = RedisEventBus()
            else:
                cls._event_bus = NoopEventBus()
        return cls._event_bus

    @classmethod
    def notifier(cls) -> NotifierPort:
        if cls._notifier is None:
            cls._notifier = EventBusNotifier(cls.event_bus())
        return cls._notifier

    @classmethod
    def stores(cls, provider: str | None = None) -> Stores:
        # a fresh set per call; the in-memory stores hold the state themselves
        prov = (provider or settings.STORE_PROVIDER or "memory").lower()
        if prov == "sql":
            from app.core.db import SessionLocal
            from app.platform.adapters.store_sql import SqlAppointmentStore, SqlBookingStore, SqlWaitlistStore
            return SqlBookingStore(SessionLocal), SqlAppointmentStore(SessionLocal), SqlWaitlistStore(SessionLocal)
        return InMemoryBookingStore(), InMemoryAppointmentStore(), InMemoryWaitlistStore()

    @classmethod
    async def close(cls):
        bus = cls._event_bus
        if isinstance(bus, RedisEventBus):
            await bus.close()
        cls._event_bus = None
        cls._notifier = None

registry = ProviderRegistry()
