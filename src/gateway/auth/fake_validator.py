"""Fake session validator — in-memory sessions for testing and development."""

from uuid import uuid4

from gateway.auth.port import Principal, SessionValidatorPort


class FakeSessionValidator(SessionValidatorPort):
    """Knows only the sessions issued through ``issue`` (or ``register``)."""

    def __init__(self):
        self._sessions: dict[str, Principal] = {}

    def issue(self, user_id: str, email_verified: bool = True) -> str:
        token = f"fake-{uuid4().hex}"
        self.register(token, Principal(id=user_id, email_verified=email_verified))
        return token

    def register(self, token: str, principal: Principal) -> None:
        self._sessions[token] = principal

    def revoke(self, token: str) -> None:
        self._sessions.pop(token, None)

    def validate(self, credential: str | None) -> Principal | None:
        if not credential:
            return None
        return self._sessions.get(credential)
