from fastapi import APIRouter

from app.api.v1.endpoints import documents, revisions, verifications

api_router = APIRouter()

api_router.include_router(revisions.router, prefix="/submissions", tags=["Revisions"])
api_router.include_router(documents.router, prefix="/submissions", tags=["Documents"])
api_router.include_router(verifications.router, prefix="/submissions", tags=["Verification"])

__all__ = ["api_router"]
