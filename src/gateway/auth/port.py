"""Session validator port — abstract interface for turning a credential into a principal.

The gateway programs against the port; adapters are swapped via configuration.
Authentication itself belongs to the identity service, never to this one.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class Principal:
    """Authenticated identity, scoped to a single request. Never persisted."""

    id: str
    email_verified: bool = False


class SessionValidatorPort(ABC):
    """Abstract interface for session validator adapters."""

    @abstractmethod
    def validate(self, credential: str | None) -> Principal | None:
        """Resolve a session credential.

        Returns:
            the Principal the credential belongs to, or None when it is
            missing, unknown, expired, or cannot be checked right now.
        """
        ...
