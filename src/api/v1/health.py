"""Health check."""

from fastapi import APIRouter

router = APIRouter(prefix="/api/v1", tags=["health"])

VERSION = "0.1.0"


@router.get("/health")
async def health_check() -> dict:
    """Health check endpoint."""
    return {"status": "ok", "version": VERSION}
