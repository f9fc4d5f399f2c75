"""Test configuration and fixtures."""

import logfire

# Keep spans and events local during tests
logfire.configure(send_to_logfire=False, console=False)
