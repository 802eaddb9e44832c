"""
RBS Storefront
Main FastAPI application
"""
from contextlib import asynccontextmanager

from fastapi import FastAPI
from starlette.middleware.gzip import GZipMiddleware

from storefront import __version__
from storefront.api import auth, health
from storefront.api.error_handling import register_exception_handlers
from storefront.config import get_settings
from storefront.middleware.auth_gate import AuthGateMiddleware
from storefront.utils.logger import log

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events"""
    log.info(f"Starting {settings.app_name} v{__version__}")
    log.info(f"Environment: {settings.environment}")

    if not settings.auth_secret:
        log.error("AUTH_SECRET is not configured - logins will fail until it is set")

    # Initialize database
    from storefront.models.base import init_db, SessionLocal
    init_db()
    log.info("Database initialized")

    # Seed initial admin user if configured
    from storefront.services import auth_service
    db = SessionLocal()
    try:
        auth_service.seed_initial_admin(db)
    finally:
        db.close()

    yield

    log.info("Shutting down application")


app = FastAPI(
    title=settings.app_name,
    version=__version__,
    description="Storefront authentication, sessions and route-level access control",
    lifespan=lifespan
)

# Cookie-based route gate (runs before every non-API handler)
app.add_middleware(AuthGateMiddleware)

app.add_middleware(GZipMiddleware, minimum_size=500)

register_exception_handlers(app)

app.include_router(auth.router)
app.include_router(health.router, tags=["health"])


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "storefront.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.debug,
    )
