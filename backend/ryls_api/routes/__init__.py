from ryls_api.routes.registration import router as registration_router
from ryls_api.routes.payment import router as payment_router
from ryls_api.routes.upload import router as upload_router
from ryls_api.routes.admin import router as admin_router

__all__ = ["registration_router", "payment_router", "upload_router", "admin_router"]
