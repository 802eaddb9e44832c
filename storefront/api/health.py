"""
Health check endpoint
"""
from fastapi import APIRouter
from storefront import __version__
from storefront.utils.helpers import utcnow

router = APIRouter()


@router.get("/health")
async def health_check():
    """Health check endpoint"""
    return {
        "status": "healthy",
        "timestamp": utcnow().isoformat(),
        "version": __version__
    }
