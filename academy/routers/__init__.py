from .admin import router as admin_router
from .auth import router as auth_router
from .courses import router as courses_router
from .enrollments import router as enrollments_router
from .payments import router as payments_router

__all__ = ["admin_router", "auth_router", "courses_router", "enrollments_router", "payments_router"]
