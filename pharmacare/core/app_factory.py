from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import timedelta
from typing import Any, AsyncIterator, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.sessions import SessionMiddleware

from .config import Settings
from .container import ApplicationContainer
from .logging import configure_logging
from ..application.services.account_service import AccountService
from ..application.services.provisioning import ensure_default_admin
from ..infrastructure.repositories.user_repository import UserRepository
from ..presentation.api.errors import register_error_handlers
from ..presentation.api.routers import account as account_router
from ..services.email_service import EmailService
from ..services.password_hasher import PasswordHasher

logger = logging.getLogger(__name__)

NO_CACHE_HEADERS = {
    "Cache-Control": "no-cache, no-store, must-revalidate",
    "Pragma": "no-cache",
    "Expires": "0",
}


def create_application(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or Settings()

    if settings.session_secret == "change-me":
        logger.warning(
            "SESSION_SECRET is using the default value. Configure a strong secret in production."
        )

    app = FastAPI(title="PharmaCare Accounts", lifespan=_create_lifespan(settings))

    app.add_middleware(
        SessionMiddleware,
        secret_key=settings.session_secret,
        session_cookie=settings.session_cookie_name,
        max_age=settings.session_max_age_seconds,
        same_site="lax",
        https_only=settings.session_https_only,
    )
    if settings.cors_allow_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.cors_allow_origins,
            allow_credentials=True,
            allow_methods=["GET", "POST"],
            allow_headers=["*"],
        )

    @app.middleware("http")
    async def no_cache_for_account_pages(request: Request, call_next):
        response = await call_next(request)
        if request.url.path.startswith(account_router.router.prefix):
            response.headers.update(NO_CACHE_HEADERS)
        return response

    register_error_handlers(app)
    app.include_router(account_router.router)

    @app.get("/health")
    async def health() -> Dict[str, Any]:
        container: ApplicationContainer = app.state.container  # type: ignore[attr-defined]
        return {"ok": True, "email_enabled": container.email_service.enabled}

    return app


def build_container(settings: Settings) -> ApplicationContainer:
    hasher = PasswordHasher()
    user_repository = UserRepository(settings.database_path, hasher)
    email_service = EmailService(
        smtp_host=settings.smtp_host,
        smtp_port=settings.smtp_port,
        smtp_username=settings.smtp_username,
        smtp_password=settings.smtp_password,
        from_email=settings.smtp_from_email,
        from_name=settings.smtp_from_name,
    )
    account_service = AccountService(
        user_repository,
        email_service,
        hasher,
        otp_ttl=timedelta(minutes=settings.otp_ttl_minutes),
        reset_token_ttl=timedelta(minutes=settings.reset_token_ttl_minutes),
        privileged_landing_route=settings.privileged_landing_url,
        standard_landing_route=settings.standard_landing_url,
        reset_link_base_url=settings.reset_link_base_url,
    )
    return ApplicationContainer(
        settings=settings,
        password_hasher=hasher,
        user_repository=user_repository,
        email_service=email_service,
        account_service=account_service,
    )


def _create_lifespan(settings: Settings):
    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        configure_logging()
        container = build_container(settings)
        ensure_default_admin(
            container.user_repository,
            container.password_hasher,
            settings.admin_default_email,
            settings.admin_default_password,
        )
        if not container.email_service.enabled:
            logger.warning("SMTP is not configured; emails will be written to the log.")

        app.state.container = container  # type: ignore[attr-defined]
        yield

    return lifespan
