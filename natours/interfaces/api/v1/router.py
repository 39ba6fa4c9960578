from fastapi import APIRouter

from natours.interfaces.api.v1.routes.bookings import router as bookings_router
from natours.interfaces.api.v1.routes.ping import router as ping_router
from natours.interfaces.api.v1.routes.reviews import router as reviews_router
from natours.interfaces.api.v1.routes.reviews import tour_reviews_router
from natours.interfaces.api.v1.routes.tours import router as tours_router
from natours.interfaces.api.v1.routes.users import router as users_router

api_router = APIRouter(prefix="/api/v1")
api_router.include_router(ping_router)
api_router.include_router(tour_reviews_router)
api_router.include_router(tours_router)
api_router.include_router(users_router)
api_router.include_router(reviews_router)
api_router.include_router(bookings_router)
