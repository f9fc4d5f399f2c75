"""Observability configuration using Logfire.

Services, adapters and the session machine emit structured events and spans
directly:

    import logfire

    logfire.info("Profile created", profile_id=str(profile.id))

    with logfire.span("reconciliation_service.sign_in_with_identity", provider=...):
        ...

Refused callbacks (state mismatch, replay) are logged at warning level with
`security=True` so they can be filtered on.
"""

import logfire
from fastapi import FastAPI
from sqlalchemy.ext.asyncio import AsyncEngine

from passage.config import Settings


def configure_logfire(settings: Settings) -> None:
    """Configure Logfire for observability.

    Sends to Logfire cloud when explicitly enabled, or when a token is set
    and sending is not explicitly disabled. Otherwise console only.

    Args:
        settings: Application settings
    """
    if settings.observability.send_to_logfire is not None:
        send_to_logfire = settings.observability.send_to_logfire
    else:
        send_to_logfire = bool(settings.observability.logfire_token)

    config_kwargs = {
        "service_name": "passage",
        "service_version": settings.git_sha,
        "environment": settings.environment,
        "send_to_logfire": send_to_logfire,
        "console": logfire.ConsoleOptions(
            colors="auto",
            span_style="show-parents",
            include_timestamps=True,
            verbose=settings.debug,
        ),
    }
    if settings.observability.logfire_token:
        config_kwargs["token"] = settings.observability.logfire_token

    logfire.configure(**config_kwargs)

    logfire.info(
        "Observability configured",
        environment=settings.environment,
        debug=settings.debug,
        send_to_logfire=send_to_logfire,
    )


def instrument_fastapi(app: FastAPI) -> None:
    """Instrument FastAPI application with Logfire.

    Parsed arguments of redirect callbacks are dropped from the span
    attributes: they carry authorization codes and state tokens.
    """

    def _map_request_attributes(request, attributes):
        path = request.url.path
        if path.startswith("/auth/callback/"):
            attributes = {k: v for k, v in attributes.items() if k != "values"}
        return {**attributes, "method": request.method, "path": path}

    logfire.instrument_fastapi(
        app,
        capture_headers=False,
        request_attributes_mapper=_map_request_attributes,
    )
    logfire.info("FastAPI instrumented")


def instrument_sqlalchemy(engine: AsyncEngine) -> None:
    """Instrument SQLAlchemy engine with Logfire.

    Args:
        engine: SQLAlchemy async engine
    """
    logfire.instrument_sqlalchemy(engine=engine.sync_engine, enable_commenter=True)
    logfire.info("SQLAlchemy instrumented")


def instrument_httpx() -> None:
    """Instrument outbound httpx calls (providers, credential authority)."""
    logfire.instrument_httpx()
    logfire.info("httpx instrumented")
