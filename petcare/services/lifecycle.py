"""
Appointment lifecycle rules.

``status`` moves along::

    pending ──> confirmed ──> completed
       │            │
       └────────────┴──> cancelled

``completed`` and ``cancelled`` are terminal. Each transition names the
parties allowed to perform it; ``confirmed -> completed`` has none here and is
reserved for administrative tooling.
"""

from enum import Enum
from uuid import UUID

from petcare.core.exceptions import InvalidStateException, UnauthorizedException
from petcare.core.identity import ActingUser, Capability
from petcare.schemas.appointments import TERMINAL_STATUSES, AppointmentStatus


class Party(str, Enum):
    """How the acting user relates to an appointment."""

    OWNER = "owner"
    VET = "vet"


ALLOWED_TRANSITIONS: dict[AppointmentStatus, frozenset[AppointmentStatus]] = {
    AppointmentStatus.PENDING: frozenset(
        {AppointmentStatus.CONFIRMED, AppointmentStatus.CANCELLED}
    ),
    AppointmentStatus.CONFIRMED: frozenset(
        {AppointmentStatus.CANCELLED, AppointmentStatus.COMPLETED}
    ),
    AppointmentStatus.COMPLETED: frozenset(),
    AppointmentStatus.CANCELLED: frozenset(),
}

TRANSITION_PARTIES: dict[AppointmentStatus, frozenset[Party]] = {
    AppointmentStatus.CONFIRMED: frozenset({Party.VET}),
    AppointmentStatus.CANCELLED: frozenset({Party.OWNER, Party.VET}),
    AppointmentStatus.COMPLETED: frozenset(),
}

TRANSITION_VERBS: dict[AppointmentStatus, str] = {
    AppointmentStatus.CONFIRMED: "confirm",
    AppointmentStatus.CANCELLED: "cancel",
    AppointmentStatus.COMPLETED: "complete",
}

UNAUTHORIZED_MESSAGES: dict[AppointmentStatus, str] = {
    AppointmentStatus.CONFIRMED: "Only the assigned vet can confirm this appointment",
    AppointmentStatus.CANCELLED: "Unauthorized to cancel this appointment",
    AppointmentStatus.COMPLETED: "Completing appointments is an administrative action",
}


def parties_for(user: ActingUser, owner_id: UUID, vet_id: UUID) -> frozenset[Party]:
    """Return every role the user plays on an appointment."""
    parties = set()
    if user.id == owner_id:
        parties.add(Party.OWNER)
    if user.id == vet_id and user.can(Capability.TREAT):
        parties.add(Party.VET)
    return frozenset(parties)


def is_participant(user: ActingUser, owner_id: UUID, vet_id: UUID) -> bool:
    """Owner or assigned vet, the only users who may see or move an appointment."""
    return user.id == owner_id or user.id == vet_id


def invalid_state(verb: str, current: AppointmentStatus | str) -> InvalidStateException:
    status = AppointmentStatus(current)
    return InvalidStateException(
        f"Cannot {verb} a {status.value} appointment",
        current_status=status.value,
    )


def ensure_transition(current: AppointmentStatus | str, target: AppointmentStatus) -> None:
    """Raise InvalidStateException unless ``current -> target`` is allowed."""
    current = AppointmentStatus(current)
    if target not in ALLOWED_TRANSITIONS[current]:
        raise invalid_state(TRANSITION_VERBS[target], current)


def ensure_not_terminal(verb: str, current: AppointmentStatus | str) -> None:
    if AppointmentStatus(current) in TERMINAL_STATUSES:
        raise invalid_state(verb, current)


def authorize_transition(
    user: ActingUser,
    owner_id: UUID,
    vet_id: UUID,
    target: AppointmentStatus,
) -> None:
    """Raise UnauthorizedException unless the user may drive ``target``."""
    if not parties_for(user, owner_id, vet_id) & TRANSITION_PARTIES[target]:
        raise UnauthorizedException(UNAUTHORIZED_MESSAGES[target])
