"""Base service class for domain services."""


class Service:
    """Base class for domain services.

    Domain services hold logic that spans the credential authority, the
    profile directory and the federated providers, and so does not belong
    to a single entity.
    """
