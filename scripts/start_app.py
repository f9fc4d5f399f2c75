#!/usr/bin/env python3
"""Start the Passage API with Logfire error tracking for startup errors."""

import sys

import logfire
import uvicorn

from passage.config import Settings
from passage.util.logging import setup_logging
from passage.util.observability import configure_logfire


def main() -> int:
    """Start the application and log any startup errors to Logfire."""
    settings = Settings()

    # Configure Logfire early to catch startup errors
    setup_logging(settings)
    configure_logfire(settings)

    try:
        logfire.info("Starting Passage API", host=settings.host, port=settings.port)

        # The app module builds the container and instruments on import
        uvicorn.run(
            "passage.interface.api.app:app",
            host="0.0.0.0",
            port=settings.port,
            log_level="debug" if settings.debug else "info",
        )

        return 0

    except Exception as e:
        logfire.error(
            "Application startup failed",
            error=str(e),
            error_type=type(e).__name__,
            _exc_info=sys.exc_info(),
        )
        # Re-raise so the process exits non-zero
        raise


if __name__ == "__main__":
    sys.exit(main())
