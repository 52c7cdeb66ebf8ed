from fastapi import APIRouter
from app.modules.bookings.router import router as bookings_router
from app.modules.availability.router import router as availability_router
from app.modules.waitlist.router import router as waitlist_router
from app.modules.appointments.router import router as appointments_router

api_router = APIRouter()
api_router.include_router(bookings_router, tags=["bookings"])
# availability_router already includes /availability/...
api_router.include_router(availability_router, tags=["availability"])
api_router.include_router(waitlist_router, prefix="/waitlist", tags=["waitlist"])
api_router.include_router(appointments_router, prefix="/appointments", tags=["appointments"])

@api_router.get("/health", tags=["health"])
async def health():
    return {"status": "ok"}
