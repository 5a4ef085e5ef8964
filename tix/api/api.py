from fastapi import APIRouter

from .endpoints import (
    admin,
    auth,
    bookings,
    categories,
    dashboard,
    events,
    payments,
    tickets,
    uploads,
)

api_router = APIRouter()
api_router.include_router(auth.router, prefix="/auth", tags=["auth"])
api_router.include_router(events.router, prefix="/events", tags=["events"])
api_router.include_router(tickets.router, prefix="/tickets", tags=["tickets"])
api_router.include_router(bookings.router, prefix="/bookings", tags=["bookings"])
api_router.include_router(payments.router, tags=["payments"])
api_router.include_router(dashboard.router, prefix="/dashboard", tags=["dashboard"])
api_router.include_router(admin.router, prefix="/admin", tags=["admin"])
api_router.include_router(categories.router, prefix="/categories", tags=["events"])
api_router.include_router(uploads.router, tags=["uploads"])
