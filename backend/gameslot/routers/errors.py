from fastapi import HTTPException, status

from ..domain.errors import (
    AlreadyExistsError,
    DbError,
    DomainError,
    GameInUseError,
    NotFoundError,
    SelfInviteError,
    ServiceError,
    SlotFullyBookedError,
    SlotPassedError,
    UserAlreadyBookedError,
    find_cause,
)

ERROR_STATUS: dict[type[DomainError], int] = {
    NotFoundError: status.HTTP_404_NOT_FOUND,
    AlreadyExistsError: status.HTTP_409_CONFLICT,
    SelfInviteError: status.HTTP_400_BAD_REQUEST,
    SlotPassedError: 422,
    SlotFullyBookedError: status.HTTP_409_CONFLICT,
    UserAlreadyBookedError: status.HTTP_409_CONFLICT,
    GameInUseError: status.HTTP_409_CONFLICT,
    DbError: status.HTTP_500_INTERNAL_SERVER_ERROR,
    ServiceError: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def domain_error_to_http(exc: DomainError) -> HTTPException:
    """Map a domain error to the HTTP error the client sees."""
    reported: DomainError = exc
    if isinstance(exc, ServiceError):
        # a lookup that found nothing is still a 404 after being wrapped
        reported = find_cause(exc, NotFoundError) or exc
    status_code = ERROR_STATUS.get(type(reported), status.HTTP_500_INTERNAL_SERVER_ERROR)
    if status_code >= 500:
        message = "internal error"
    else:
        message = str(reported)
    return HTTPException(status_code=status_code, detail={"error_code": reported.code, "message": message})
