"""
ShellGate - Main Application

FastAPI application with:
- JWT identity (header, cookie or query token)
- Role/permission checks per organization
- WebSocket to SSH terminal bridge
- Audit trail of terminal sessions
"""

from contextlib import asynccontextmanager
from typing import Optional
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger
import sys

from shellgate.core.config import settings
from shellgate.core.database import init_db, close_db, AsyncSessionLocal
from shellgate.api.v1.router import api_router
from shellgate.services.container import Services, build_services
from shellgate.services.seed_service import seed_defaults
from shellgate.terminal.config import BridgeConfig


def configure_logging():
    logger.remove()
    logger.add(
        sys.stdout,
        format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>",
        level=settings.LOG_LEVEL,
    )

    if not settings.DEBUG:
        logger.add(
            settings.LOG_FILE,
            rotation="500 MB",
            retention="10 days",
            compression="zip",
            level=settings.LOG_LEVEL,
        )


def create_app(
    services: Optional[Services] = None,
    bridge_config: Optional[BridgeConfig] = None,
    initialize_database: bool = True,
) -> FastAPI:
    """
    Build the application

    Args:
        services: Pre-built collaborators (tests); built on startup otherwise
        bridge_config: Bridge settings; derived from Settings otherwise
        initialize_database: Create tables and seed defaults on startup
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan manager"""

        # Startup
        logger.info(f"🚀 Starting {settings.APP_NAME}...")
        logger.info(f"📍 Environment: {settings.ENVIRONMENT}")
        logger.info(f"📍 Version: {settings.APP_VERSION}")

        try:
            if initialize_database:
                logger.info("🔌 Connecting to database...")
                await init_db()
                logger.info("✅ Database ready")

                if settings.SEED_DEFAULTS:
                    async with AsyncSessionLocal() as db:
                        await seed_defaults(db)

            app.state.services = services or build_services(
                AsyncSessionLocal,
                default_port=settings.SSH_DEFAULT_PORT,
            )
            app.state.bridge_config = bridge_config or BridgeConfig.from_settings(settings)
            logger.info(
                f"🔐 Host key policy: {app.state.bridge_config.host_key_policy.name}, "
                f"required permission: {app.state.bridge_config.required_permission.value}"
            )

            logger.info("🎉 Application started successfully!")

        except Exception as e:
            logger.error(f"❌ Startup failed: {e}")
            raise

        yield

        # Shutdown
        logger.info(f"⏹️  Shutting down {settings.APP_NAME}...")
        if initialize_database:
            await close_db()
        logger.info("👋 Application stopped")

    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        description="Browser terminal to SSH bridge",
        docs_url="/api/docs" if settings.DEBUG else None,
        redoc_url="/api/redoc" if settings.DEBUG else None,
        openapi_url="/api/openapi.json" if settings.DEBUG else None,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """Global exception handler"""
        logger.opt(exception=exc).error(f"❌ Unhandled exception: {exc}")
        return JSONResponse(
            status_code=500,
            content={
                "detail": "Internal server error",
                "error": str(exc) if settings.DEBUG else "An error occurred"
            }
        )

    @app.get("/health")
    async def health_check():
        """Health check endpoint"""
        return {
            "status": "healthy",
            "version": settings.APP_VERSION,
            "environment": settings.ENVIRONMENT,
        }

    @app.get("/")
    async def root():
        """Root endpoint"""
        return {
            "message": f"{settings.APP_NAME} API",
            "version": settings.APP_VERSION,
            "docs": "/api/docs" if settings.DEBUG else "Docs disabled in production",
        }

    app.include_router(api_router, prefix=settings.API_V1_PREFIX)
    return app


configure_logging()
app = create_app()


def run():
    import uvicorn

    uvicorn.run(
        "shellgate.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
        log_level=settings.LOG_LEVEL.lower(),
    )


if __name__ == "__main__":
    run()
