from dataclasses import dataclass
from fastapi import Request
from app.core.config import settings
from app.modules.appointments.service import AppointmentLifecycle
from app.modules.availability.service import AvailabilityFinder
from app.modules.bookings.events import BookingReserved, BookingRescheduled, ResourceFreed
from app.modules.bookings.ledger import BookingLedger
from app.modules.calendar.policy import PolicyProvider, policy_from_settings
from app.modules.events.hub import BackgroundTasks, EventHub
from app.modules.notifications.service import NotificationsService
from app.modules.waitlist.service import WaitlistManager
from app.platform.ports.booking_store import BookingStorePort
from app.platform.ports.notifier import NotifierPort
from app.platform.ports.schedule_store import AppointmentStorePort, WaitlistStorePort
from app.platform.provider_registry import registry

@dataclass
class Scheduling:
    policy: PolicyProvider
    hub: EventHub
    notifications: NotificationsService
    ledger: BookingLedger
    finder: AvailabilityFinder
    waitlist: WaitlistManager
    lifecycle: AppointmentLifecycle

    async def drain(self):
        """Wait for waitlist scans and notifications spawned so far."""
        await self.waitlist.drain()
        await self.notifications.drain()

    async def shutdown(self):
        await self.waitlist.tasks.cancel_all()
        await self.notifications.drain()

def build_scheduling(
    *,
    bookings: BookingStorePort | None = None,
    appointments: AppointmentStorePort | None = None,
    waitlist: WaitlistStorePort | None = None,
    notifier: NotifierPort | None = None,
    policy: PolicyProvider | None = None,
    **ledger_opts,
) -> Scheduling:
    if bookings is None or appointments is None or waitlist is None:
        default_bookings, default_appointments, default_waitlist = registry.stores()
        bookings = bookings or default_bookings
        appointments = appointments or default_appointments
        waitlist = waitlist or default_waitlist
    policy = policy or PolicyProvider(policy_from_settings(), source=settings.CALENDAR_POLICY_FILE)
    hub = EventHub()
    notifications = NotificationsService(notifier or registry.notifier(), BackgroundTasks("notify"))
    ledger = BookingLedger(bookings, policy, hub=hub, notifications=notifications, **ledger_opts)
    finder = AvailabilityFinder(bookings, policy)
    manager = WaitlistManager(waitlist, ledger, finder, tasks=BackgroundTasks("waitlist"), notifications=notifications)
    lifecycle = AppointmentLifecycle(appointments, ledger)

    # appointment bookkeeping first, so a promotion scan sees the cancelled appointment
    hub.subscribe(BookingReserved, lifecycle.create_for)
    hub.subscribe(BookingRescheduled, lifecycle.on_rescheduled)
    hub.subscribe(ResourceFreed, lifecycle.on_resource_freed)
    hub.subscribe(ResourceFreed, manager.handle_freed)
    return Scheduling(policy, hub, notifications, ledger, finder, manager, lifecycle)

def get_scheduling(request: Request) -> Scheduling:
    return request.app.state.scheduling
