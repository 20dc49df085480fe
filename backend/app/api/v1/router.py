from fastapi import APIRouter

from app.api.v1 import admin, approvals, auth, invoices

api_router = APIRouter()

api_router.include_router(auth.router, prefix="/auth", tags=["auth"])
api_router.include_router(invoices.router, prefix="/invoices", tags=["invoices"])
api_router.include_router(approvals.router, prefix="/approvals", tags=["approvals"])
api_router.include_router(admin.router, prefix="/admin", tags=["admin"])
