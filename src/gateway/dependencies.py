"""FastAPI dependencies: service lookup, authentication, conditional writes."""

from fastapi import Depends, Header, Request

from gateway.auth.port import Principal
from services import Services
from shared.exceptions import UnauthenticatedError, ValidationError


def get_services(request: Request) -> Services:
    return request.app.state.services


def session_credential(request: Request, services: Services) -> str | None:
    """Bearer token if present, otherwise the session cookie."""
    authorization = request.headers.get("Authorization", "")
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() == "bearer" and token.strip():
        return token.strip()
    return request.cookies.get(services.settings.session_cookie_name)


def require_principal(request: Request, services: Services = Depends(get_services)) -> Principal:
    """Resolve the caller for a write. Declared sync so remote validation runs off the event loop."""
    principal = services.session_validator.validate(session_credential(request, services))
    if principal is None:
        raise UnauthenticatedError()
    return principal


def expected_version(if_match: str | None = Header(None)) -> int | None:
    """Parse ``If-Match: "3"`` (or a bare ``3``) into an expected product version."""
    if if_match is None:
        return None
    value = if_match.strip()
    if value.startswith("W/"):
        value = value[2:]
    value = value.strip('"')
    if not value.isdigit():
        raise ValidationError({"If-Match": ["must be a product version, e.g. \"3\""]})
    return int(value)
