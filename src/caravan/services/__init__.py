from .errors import (
    ExternalCommandFailedError,
    IdentityUnresolvedError,
    InfrastructureError,
    NotFoundError,
    RoleNotAllowedError,
    ServiceFailure,
    SessionNotFoundError,
    UnexpectedStateError,
    UnknownSessionPatternError,
    ValidationError,
)

__all__ = [
    "ExternalCommandFailedError",
    "IdentityUnresolvedError",
    "InfrastructureError",
    "NotFoundError",
    "RoleNotAllowedError",
    "ServiceFailure",
    "SessionNotFoundError",
    "UnexpectedStateError",
    "UnknownSessionPatternError",
    "ValidationError",
]
