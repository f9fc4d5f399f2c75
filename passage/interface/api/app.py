"""FastAPI application.

The service is single-tenant: one process holds one SessionStateMachine, so
the session it reports and edits is the one of whoever signed in last. Run
one process per user, e.g. as a local companion to a desktop or mobile
client. Multi-user session handling is out of scope.
"""

from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import logfire
from dishka import AsyncContainer
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from passage.application.session import SessionStateMachine
from passage.config import Settings
from passage.interface.api.routes import auth, health, profile
from passage.util.di.container import create_container, setup_di
from passage.util.observability import instrument_fastapi, instrument_httpx


def create_app(container: Optional[AsyncContainer] = None) -> FastAPI:
    """Create FastAPI application.

    Note: Logfire should be configured before calling this function.
    In production, start_app.py handles this.

    Args:
        container: DI container to use; the production container if None
    """
    settings = Settings()

    # Instrument httpx for outbound HTTP requests
    # (Logfire must be configured before instrumentation)
    instrument_httpx()

    container = container or create_container()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        # The session machine owns the redirect handler and the authority
        # subscription for the lifetime of the process
        machine = await container.get(SessionStateMachine)
        outcome = await machine.start()
        logfire.info(
            "Session machine started",
            state=machine.state.value,
            error=outcome.error,
        )
        try:
            yield
        finally:
            await machine.stop()
            await container.close()

    app_instance = FastAPI(
        title="Passage API",
        description="Identity reconciliation and session management for federated and password sign-in",
        version="0.1.0",
        lifespan=lifespan,
    )

    # Instrument FastAPI for automatic tracing of HTTP requests
    instrument_fastapi(app_instance)

    app_instance.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.api.base_url],
        allow_credentials=True,
        allow_methods=["GET", "POST", "PATCH", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type", "Accept", "Origin"],
        max_age=600,
    )

    setup_di(app_instance, container)

    # Register routes
    app_instance.include_router(health.router)
    app_instance.include_router(auth.router)
    app_instance.include_router(profile.router)

    return app_instance


# Create app instance for uvicorn
# Note: Logfire must be configured before this module is imported
# In production: start_app.py handles this
app = create_app()
