from __future__ import annotations


class DomainError(Exception):
    """Base class for every error the usecases raise on purpose."""

    code = "domain_error"


class NotFoundError(DomainError):
    code = "not_found"


class AlreadyExistsError(DomainError):
    code = "already_exists"


class SelfInviteError(DomainError):
    code = "self_invite"


class SlotPassedError(DomainError):
    code = "slot_passed"


class SlotFullyBookedError(DomainError):
    code = "slot_fully_booked"


class UserAlreadyBookedError(DomainError):
    code = "user_already_booked"


class GameInUseError(DomainError):
    code = "game_in_use"


class DbError(DomainError):
    """A store call failed."""

    code = "db_error"


class ServiceError(DomainError):
    """A call into another service failed; the cause is chained."""

    code = "service_error"


def find_cause(exc: BaseException, kind: type[DomainError]) -> DomainError | None:
    """Walk the explicit cause chain and return the first error of `kind`."""
    current: BaseException | None = exc
    while current is not None:
        if isinstance(current, kind):
            return current
        current = current.__cause__
    return None
