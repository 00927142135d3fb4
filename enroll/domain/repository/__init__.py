"""Repository interfaces for the invitation completion engine.

Repository interfaces are defined in the domain layer (dependency inversion).
Implementations live in the persistence layer.
"""

from enroll.domain.repository.identity import IdentityRepository

__all__ = [
    "IdentityRepository",
]
