"""API routers."""
from taxportal.api.admin_routes import router as admin_router
from taxportal.api.return_routes import router as return_router
from taxportal.api.routes import api_router

__all__ = ["api_router", "return_router", "admin_router"]
