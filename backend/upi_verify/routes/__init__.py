from upi_verify.routes.upi_payments import router as upi_payments_router
from upi_verify.routes.admin import router as admin_router

__all__ = ["upi_payments_router", "admin_router"]
