from aidfusion.web.routers.admin import router as admin_router
from aidfusion.web.routers.auth import router as auth_router
from aidfusion.web.routers.two_factor import router as two_factor_router

__all__ = [
    "admin_router",
    "auth_router",
    "two_factor_router",
]
