"""Strongly typed identifiers.

Profile ids are assigned by the credential authority at first successful
authentication and reused verbatim as the profile directory's primary key.
"""

from typing import NewType
from uuid import UUID

ProfileId = NewType("ProfileId", UUID)
