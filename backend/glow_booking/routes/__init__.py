from .appointments import router as appointments_router
from .payments import router as payments_router

__all__ = ["appointments_router", "payments_router"]
