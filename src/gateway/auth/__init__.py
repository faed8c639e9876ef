"""Session validator abstraction — pluggable identity service integration."""

from shared.config import get_settings

_validator_instance = None


def get_session_validator(settings=None):
    """Return the configured session validator (singleton).

    Uses FakeSessionValidator by default. In production, configure via the
    STOREFRONT_SESSION_VALIDATOR environment variable.
    """
    global _validator_instance
    if _validator_instance is None:
        settings = settings or get_settings()
        adapter = settings.session_validator
        if adapter == "fake":
            from gateway.auth.fake_validator import FakeSessionValidator

            _validator_instance = FakeSessionValidator()
        elif adapter == "remote":
            from gateway.auth.remote_validator import RemoteSessionValidator

            _validator_instance = RemoteSessionValidator(
                base_url=settings.identity_service_url,
                timeout=settings.identity_timeout_seconds,
                cookie_name=settings.session_cookie_name,
            )
        else:
            raise ValueError(f"Unknown session validator: {adapter}")
    return _validator_instance


def reset_session_validator():
    """Reset the session validator singleton (useful for testing)."""
    global _validator_instance
    _validator_instance = None
