"""Remote session validator — asks the identity service who owns a session.

Calls ``GET {identity_url}/api/users/session`` with the credential forwarded
both as the session cookie and as a bearer token, and expects
``{"user": {"id": ..., "emailVerified": ...}}`` back. Transport errors are
retried with exponential backoff; every failure resolves to "no principal",
so an unreachable identity service rejects writes rather than admitting them.
"""

import time
from collections.abc import Callable

import httpx
import structlog

from gateway.auth.port import Principal, SessionValidatorPort

logger = structlog.get_logger(__name__)

SESSION_PATH = "/api/users/session"


class RemoteSessionValidator(SessionValidatorPort):
    def __init__(
        self,
        base_url: str,
        timeout: float = 2.0,
        cookie_name: str = "session_token",
        max_attempts: int = 3,
        base_backoff_seconds: float = 0.1,
        transport: httpx.BaseTransport | None = None,
        sleep: Callable[[float], object] = time.sleep,
    ):
        self.cookie_name = cookie_name
        self.max_attempts = max_attempts
        self.base_backoff_seconds = base_backoff_seconds
        self._sleep = sleep
        self._client = httpx.Client(base_url=base_url, timeout=timeout, transport=transport)

    def close(self) -> None:
        self._client.close()

    def validate(self, credential: str | None) -> Principal | None:
        if not credential:
            return None

        response = self._fetch_session(credential)
        if response is None:
            return None
        if response.status_code in (401, 403, 404):
            return None
        if response.status_code != 200:
            logger.warning("Identity service returned unexpected status", status=response.status_code)
            return None

        try:
            user = response.json()["user"]
            return Principal(id=str(user["id"]), email_verified=bool(user.get("emailVerified", False)))
        except (ValueError, KeyError, TypeError) as exc:
            logger.warning("Identity service returned a malformed session", error=str(exc))
            return None

    def _fetch_session(self, credential: str) -> httpx.Response | None:
        for attempt in range(1, self.max_attempts + 1):
            try:
                return self._client.get(
                    SESSION_PATH,
                    headers={
                        "Cookie": f"{self.cookie_name}={credential}",
                        "Authorization": f"Bearer {credential}",
                    },
                )
            except httpx.TransportError as exc:
                logger.warning(
                    "Identity service unreachable",
                    attempt=attempt,
                    max_attempts=self.max_attempts,
                    error=str(exc),
                )
                if attempt < self.max_attempts:
                    self._sleep(self.base_backoff_seconds * (2 ** (attempt - 1)))
        return None
