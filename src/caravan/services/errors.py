"""Service failure contracts.

Services return typed outcomes on success and raise ServiceFailure on expected
domain/policy/runtime failures. Programmer bugs raise normal exceptions.
"""

from __future__ import annotations

from typing import Literal

ServiceFailureCode = Literal[
    "validation_failed",
    "not_found",
    "identity_unresolved",
    "unknown_session_pattern",
    "role_not_allowed",
    "infrastructure",
    "external_command_failed",
    "unexpected_state",
]

INFRASTRUCTURE_MARKER = "storage-layer fault"


class ServiceFailure(Exception):
    """Expected service failure: validation, policy, or runtime error.

    Raised by services instead of returning a failure value. Use ``raise
    ServiceFailure(...) from exc`` to chain a causing exception; it is
    available as ``__cause__``. Callers catch ServiceFailure and handle per
    their interface (the CLI dies with the message).
    """

    def __init__(
        self,
        code: ServiceFailureCode,
        message: str,
        *,
        recovery_hint: str | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.recovery_hint = recovery_hint

    @property
    def message(self) -> str:
        return str(self)


class ValidationError(ServiceFailure):
    """Malformed request (empty title, missing required arguments)."""

    def __init__(self, message: str, *, recovery_hint: str | None = None) -> None:
        super().__init__("validation_failed", message, recovery_hint=recovery_hint)


class NotFoundError(ServiceFailure):
    """A referenced issue, convoy, or session does not exist at call time."""

    def __init__(
        self,
        message: str,
        *,
        identifier: str | None = None,
        recovery_hint: str | None = None,
    ) -> None:
        super().__init__("not_found", message, recovery_hint=recovery_hint)
        self.identifier = identifier


class SessionNotFoundError(NotFoundError):
    """A target session is missing or vanished before it could be restarted."""

    def __init__(self, session: str, *, recovery_hint: str | None = None) -> None:
        super().__init__(
            f"session '{session}' not found - is the agent running?",
            identifier=session,
            recovery_hint=recovery_hint,
        )
        self.session = session


class IdentityUnresolvedError(ServiceFailure):
    """Not enough context to address an agent or session."""

    def __init__(self, message: str, *, recovery_hint: str | None = None) -> None:
        super().__init__("identity_unresolved", message, recovery_hint=recovery_hint)


class UnknownSessionPatternError(ServiceFailure):
    """A session address matches no known restart pattern."""

    def __init__(self, session: str) -> None:
        super().__init__(
            "unknown_session_pattern",
            f"unknown session type: {session} (try specifying role explicitly)",
            recovery_hint="pass a role token such as crew, witness, or refinery",
        )
        self.session = session


class RoleNotAllowedError(ServiceFailure):
    """The calling role may not perform a self-directed hand-off."""

    def __init__(self, message: str, *, recovery_hint: str | None = None) -> None:
        super().__init__("role_not_allowed", message, recovery_hint=recovery_hint)


class InfrastructureError(ServiceFailure):
    """The issue store itself is unhealthy (crash, panic, missing table).

    Distinct from NotFoundError: the data may well exist. Never retried.
    """

    def __init__(self, detail: str, *, identifier: str | None = None) -> None:
        subject = f" ({identifier})" if identifier else ""
        super().__init__(
            "infrastructure",
            f"{INFRASTRUCTURE_MARKER}{subject}: {detail}",
            recovery_hint="verify store health with `bd doctor` before retrying",
        )
        self.detail = detail
        self.identifier = identifier


class ExternalCommandFailedError(ServiceFailure):
    """External command (bd, tmux) failed."""

    def __init__(self, message: str, *, recovery_hint: str | None = None) -> None:
        super().__init__("external_command_failed", message, recovery_hint=recovery_hint)


class UnexpectedStateError(ServiceFailure):
    """Unexpected or inconsistent state."""

    def __init__(self, message: str, *, recovery_hint: str | None = None) -> None:
        super().__init__("unexpected_state", message, recovery_hint=recovery_hint)
