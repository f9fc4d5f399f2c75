"""Redirect channel between the callback endpoint and the session machine."""

import asyncio
import webbrowser
from typing import Awaitable, Callable, Optional

import logfire

from passage.application.session.state import AuthOutcome

RedirectHandler = Callable[[str], Awaitable[AuthOutcome]]
BrowserOpener = Callable[[str], Awaitable[None]]


async def open_system_browser(url: str) -> None:
    """Open `url` in the default browser without blocking the event loop."""
    opened = await asyncio.to_thread(webbrowser.open, url)
    if not opened:
        logfire.warn("No browser available for authorization URL", url=url)


class RedirectListener:
    """Delivers provider redirects to exactly one handler.

    `install` replaces any previous handler; it never stacks. The session
    machine installs itself on start and tears itself down on stop.
    """

    def __init__(self) -> None:
        self._handler: Optional[RedirectHandler] = None

    @property
    def installed(self) -> bool:
        return self._handler is not None

    def install(self, handler: RedirectHandler) -> None:
        if self._handler is not None:
            logfire.info("Replacing installed redirect handler")
        self._handler = handler

    def teardown(self, handler: Optional[RedirectHandler] = None) -> None:
        """Remove the handler; with `handler` given, only if it is the installed one."""
        if handler is None or handler == self._handler:
            self._handler = None

    async def deliver(self, url: str) -> Optional[AuthOutcome]:
        """Hand `url` to the installed handler.

        Returns:
            The handler's outcome, or None when no handler is installed and
            the redirect was dropped
        """
        if self._handler is None:
            logfire.warn("Redirect received with no handler installed")
            return None
        return await self._handler(url)
