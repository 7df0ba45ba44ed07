"""Health check endpoint."""

from fastapi import APIRouter

router = APIRouter(prefix="/_relay", tags=["health"])


@router.get("/health")
def health() -> dict:
    """Return gateway health status."""
    return {"status": "ok"}
