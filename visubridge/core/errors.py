"""Domain-specific errors for visubridge."""


class VisuBridgeError(Exception):
    """Base error for visubridge."""


class ConfigError(VisuBridgeError):
    """Raised when settings or mapping sources are malformed."""


class MappingLoadError(ConfigError):
    """Raised when reading the command mapping source fails."""


class MappingValidationError(ConfigError):
    """Raised when a mapping file does not conform to schema or semantics."""


class ControlError(VisuBridgeError):
    """Base error for control requests rejected before dispatch."""


class DeviceNotFoundError(ControlError):
    """Raised when no device is registered under the requested key."""

    def __init__(self, key: str) -> None:
        super().__init__(f"Device not found: {key}")
        self.key = key


class NoCommandMappingError(ControlError):
    """Raised when a device exists but has no actionable command."""

    def __init__(self, key: str, detail: str | None = None) -> None:
        message = f"No command mapping found for device: {key}"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)
        self.key = key


class InvalidPositionError(ControlError):
    """Raised when a cover position is outside 0..100."""


class DispatchError(VisuBridgeError):
    """Base error for failures while talking to the vendor backend."""


class UnauthorizedError(DispatchError):
    """Raised when the backend rejects the current session token."""


class AuthenticationFailedError(DispatchError):
    """Raised when re-authentication fails or the fresh token is rejected too."""


class TransportError(DispatchError):
    """Raised on network-level failures."""


class TransportTimeoutError(TransportError):
    """Raised when a backend request exceeds its timeout."""


class TransportStatusError(TransportError):
    """Raised when the backend answers with an unexpected HTTP status."""

    def __init__(self, message: str, *, status: int) -> None:
        super().__init__(message)
        self.status = status


class AuthError(VisuBridgeError):
    """Base error for login failures reported by an authenticator."""


class LoginPageError(AuthError):
    """Raised when the login form never appears."""


class CredentialsRejectedError(AuthError):
    """Raised when the vendor rejects the configured credentials."""


class LoginTimeoutError(AuthError):
    """Raised when the post-login redirect does not complete in time."""


class DeviceDiscoveryError(VisuBridgeError):
    """Raised when the discovery collaborator fails."""
