"""Agent identities, identity context, and tmux session addressing.

Session names are decoded once into a tagged ``SessionAddress`` variant; the
rest of the code switches on the variant instead of re-parsing strings.

Example:
    >>> address = decode_session_name("cv-gastown-crew-joe", prefix="cv")
    >>> address
    RigSession(role='crew', rig='gastown', name='joe')
    >>> session_name(address, prefix="cv")
    'cv-gastown-crew-joe'
    >>> AgentIdentity.parse("gastown/crew/joe").hook_key
    'gastown-crew-joe'
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Union

from .services.errors import (
    IdentityUnresolvedError,
    UnknownSessionPatternError,
    ValidationError,
)

MAYOR = "mayor"
DEACON = "deacon"
CREW = "crew"
POLECAT = "polecat"
WITNESS = "witness"
REFINERY = "refinery"

TOWN_ROLES = (MAYOR, DEACON)
RIG_ROLES = (CREW, POLECAT, WITNESS, REFINERY)
NAMED_RIG_ROLES = (CREW, POLECAT)
WORKER_ROLES = frozenset({POLECAT})
RESTARTABLE_ROLES = frozenset({MAYOR, DEACON, CREW, WITNESS, REFINERY})

_ROLE_TOKENS = {
    "mayor": MAYOR,
    "may": MAYOR,
    "deacon": DEACON,
    "dea": DEACON,
    "crew": CREW,
    "witness": WITNESS,
    "wit": WITNESS,
    "refinery": REFINERY,
    "ref": REFINERY,
}
# Address path segment for named rig roles.
_ADDRESS_SEGMENTS = {CREW: "crew", POLECAT: "polecats"}
_SEGMENT_ROLES = {segment: role for role, segment in _ADDRESS_SEGMENTS.items()}


def _escape_key_part(part: str) -> str:
    return part.replace("%", "%25").replace("-", "%2D")


@dataclass(frozen=True)
class AgentIdentity:
    """Addressable agent: ``(role, rig, name)``."""

    role: str
    rig: str | None = None
    name: str | None = None

    def __post_init__(self) -> None:
        if self.role in TOWN_ROLES:
            if self.rig or self.name:
                raise ValueError(f"{self.role} is a town-level role")
            return
        if self.role not in RIG_ROLES:
            raise ValueError(f"unknown agent role: {self.role!r}")
        if not self.rig:
            raise ValueError(f"{self.role} identity requires a rig")
        if self.role in NAMED_RIG_ROLES and not self.name:
            raise ValueError(f"{self.role} identity requires a name")

    @property
    def address(self) -> str:
        if self.role in TOWN_ROLES:
            return self.role
        if self.role in NAMED_RIG_ROLES:
            return f"{self.rig}/{_ADDRESS_SEGMENTS[self.role]}/{self.name}"
        return f"{self.rig}/{self.role}"

    @property
    def hook_key(self) -> str:
        """File-safe slot key; distinct identities never share one.

        Example:
            >>> AgentIdentity.parse("my-rig/crew/joe").hook_key
            'my%2Drig-crew-joe'
        """
        return "-".join(_escape_key_part(part) for part in self.address.split("/"))

    @property
    def is_worker(self) -> bool:
        return self.role in WORKER_ROLES

    def session_name(self, *, prefix: str) -> str:
        return session_name(address_for_identity(self), prefix=prefix)

    def __str__(self) -> str:
        return self.address

    @classmethod
    def parse(cls, address: str) -> AgentIdentity:
        """Parse an address such as ``mayor`` or ``gastown/crew/joe``."""
        parts = [part for part in address.strip().split("/") if part]
        if len(parts) == 1 and parts[0] in TOWN_ROLES:
            return cls(role=parts[0])
        if len(parts) == 2 and parts[1] in (WITNESS, REFINERY):
            return cls(role=parts[1], rig=parts[0])
        if len(parts) == 3 and parts[1] in _SEGMENT_ROLES:
            return cls(role=_SEGMENT_ROLES[parts[1]], rig=parts[0], name=parts[2])
        raise ValueError(f"unrecognized agent address: {address!r}")


@dataclass(frozen=True)
class SingletonSession:
    role: str


@dataclass(frozen=True)
class RigSession:
    role: str
    rig: str
    name: str | None = None


@dataclass(frozen=True)
class LiteralSession:
    name: str


SessionAddress = Union[SingletonSession, RigSession, LiteralSession]


@dataclass(frozen=True)
class IdentityContext:
    """Everything the core knows about who and where the caller is.

    Assembled once at the CLI boundary from environment variables, tmux, and
    the working directory; the services never read process state themselves.
    """

    rig: str | None = None
    crew: str | None = None
    polecat: str | None = None
    current_session: str | None = None
    pane: str | None = None
    workspace_root: Path | None = None


def session_name(address: SessionAddress, *, prefix: str) -> str:
    """Render the tmux session name for an address."""
    if isinstance(address, LiteralSession):
        return address.name
    if isinstance(address, SingletonSession):
        return f"{prefix}-{address.role}"
    if address.name:
        return f"{prefix}-{address.rig}-{address.role}-{address.name}"
    return f"{prefix}-{address.rig}-{address.role}"


def decode_session_name(name: str, *, prefix: str) -> SessionAddress:
    """Decode a tmux session name into a ``SessionAddress``.

    Names that match no known pattern decode to ``LiteralSession``.

    Example:
        >>> decode_session_name("cv-mayor", prefix="cv")
        SingletonSession(role='mayor')
        >>> decode_session_name("cv-my-rig-witness", prefix="cv")
        RigSession(role='witness', rig='my-rig', name=None)
        >>> decode_session_name("scratch", prefix="cv")
        LiteralSession(name='scratch')
    """
    cleaned = name.strip()
    head = f"{prefix}-"
    if not cleaned.startswith(head):
        return LiteralSession(name=cleaned)
    rest = cleaned[len(head) :]
    if rest in TOWN_ROLES:
        return SingletonSession(role=rest)
    for role in NAMED_RIG_ROLES:
        marker = f"-{role}-"
        if marker in rest:
            rig, member = rest.split(marker, 1)
            if rig and member:
                return RigSession(role=role, rig=rig, name=member)
    for role in (WITNESS, REFINERY):
        suffix = f"-{role}"
        if rest.endswith(suffix) and len(rest) > len(suffix):
            return RigSession(role=role, rig=rest[: -len(suffix)])
    return LiteralSession(name=cleaned)


def address_for_identity(identity: AgentIdentity) -> SessionAddress:
    if identity.role in TOWN_ROLES:
        return SingletonSession(role=identity.role)
    assert identity.rig is not None
    return RigSession(role=identity.role, rig=identity.rig, name=identity.name)


def identity_for_address(address: SessionAddress) -> AgentIdentity | None:
    if isinstance(address, SingletonSession):
        return AgentIdentity(role=address.role)
    if isinstance(address, RigSession):
        return AgentIdentity(role=address.role, rig=address.rig, name=address.name)
    return None


def resolve_agent_identity(context: IdentityContext, *, prefix: str) -> AgentIdentity:
    """Work out who the caller is from explicit context.

    Precedence: crew (rig + crew), polecat (rig + polecat), then the current
    session name.
    """
    if context.rig and context.crew:
        return AgentIdentity(role=CREW, rig=context.rig, name=context.crew)
    if context.rig and context.polecat:
        return AgentIdentity(role=POLECAT, rig=context.rig, name=context.polecat)
    if context.current_session:
        identity = identity_for_address(
            decode_session_name(context.current_session, prefix=prefix)
        )
        if identity is not None:
            return identity
    raise IdentityUnresolvedError(
        "cannot determine agent identity",
        recovery_hint="set CARAVAN_RIG/CARAVAN_CREW or run from a crew directory",
    )


def resolve_role_token(token: str, context: IdentityContext, *, prefix: str) -> SessionAddress:
    """Resolve a role token or literal session name into an address.

    Town roles map directly; rig roles need a rig (and crew name) from
    context. Anything else is treated as a literal session name.
    """
    cleaned = token.strip()
    if not cleaned:
        raise ValidationError("role or session name must not be empty")
    role = _ROLE_TOKENS.get(cleaned.lower())
    if role is None:
        return decode_session_name(cleaned, prefix=prefix)
    if role in TOWN_ROLES:
        return SingletonSession(role=role)
    if role == CREW:
        if not context.rig or not context.crew:
            raise IdentityUnresolvedError(
                "cannot determine crew identity",
                recovery_hint="run from a crew directory or set CARAVAN_RIG/CARAVAN_CREW",
            )
        return RigSession(role=CREW, rig=context.rig, name=context.crew)
    if not context.rig:
        raise IdentityUnresolvedError(
            f"cannot determine rig for {role}",
            recovery_hint="set CARAVAN_RIG or run from a rig context",
        )
    return RigSession(role=role, rig=context.rig)


def restart_command(
    address: SessionAddress, commands: Mapping[str, str], *, prefix: str
) -> str:
    """Return the resume command for a session address.

    The command carries no rig or identity arguments; the resumed process
    re-derives them from its own environment and reads its hook.

    Example:
        >>> restart_command(SingletonSession(role="mayor"), {"mayor": "caravan mayor attach"}, prefix="cv")
        'caravan mayor attach'
    """
    if isinstance(address, (SingletonSession, RigSession)) and address.role in RESTARTABLE_ROLES:
        command = commands.get(address.role)
        if command:
            return command
    raise UnknownSessionPatternError(session_name(address, prefix=prefix))
