# schooldesk/__init__.py
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from schooldesk.core.config import settings
from schooldesk.core.database import close_db, get_db_context, init_db
from schooldesk.core.errors import register_exception_handlers
from schooldesk.core.logging import logger
from schooldesk.middleware import AuthMiddleware, RequestIDMiddleware
from schooldesk.routes import auth, discounts, families, fees, health, super_admin, users
from schooldesk.services.auth_service import AuthService


@asynccontextmanager
async def lifespan(app: FastAPI):
    await init_db()
    async with get_db_context() as db:
        await AuthService(db).seed_super_admin()
    logger.info("Application startup completed")
    yield
    await close_db()
    logger.info("Application shutdown completed")


def create_app() -> FastAPI:
    app = FastAPI(
        title=settings.APP_NAME,
        description="Multi-tenant school administration API",
        version=settings.VERSION,
        docs_url="/api/docs" if settings.DEBUG else None,
        redoc_url="/api/redoc" if settings.DEBUG else None,
        lifespan=lifespan,
    )

    register_exception_handlers(app)

    # Middleware runs bottom-up: request id, then CORS, then auth
    app.add_middleware(AuthMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestIDMiddleware)

    # Include routers
    app.include_router(health.router, prefix="/api")
    app.include_router(auth.router, prefix="/api/v1/auth")
    app.include_router(super_admin.router, prefix="/api/v1/super-admin")
    app.include_router(users.router, prefix="/api/v1/users")
    app.include_router(discounts.router, prefix="/api/v1/discounts")
    app.include_router(families.router, prefix="/api/v1/families")
    app.include_router(fees.router, prefix="/api/v1/fees")

    return app
