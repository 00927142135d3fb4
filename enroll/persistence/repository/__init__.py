"""File-backed repository implementations."""

from enroll.persistence.repository.identity import FileIdentityRepository

__all__ = [
    "FileIdentityRepository",
]
