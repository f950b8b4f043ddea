"""Routes API / API routes."""

from fastapi import APIRouter

from eter_reports.api import auth, forms, pdf

api_router = APIRouter(prefix="/api")

api_router.include_router(auth.router, prefix="/auth", tags=["auth"])
api_router.include_router(forms.router, prefix="/forms", tags=["forms"])
api_router.include_router(pdf.router, prefix="/pdf", tags=["pdf"])
