from fastapi import HTTPException, status

from ..services.booking_service import (
    BookingError,
    BookingNotFound,
    ClassNotBookable,
    ClassNotFound,
    DuplicateBooking,
    MemberNotFound,
    StoreError,
)


def http_error(exc: BookingError) -> HTTPException:
    if isinstance(exc, (ClassNotFound, MemberNotFound, BookingNotFound)):
        code = status.HTTP_404_NOT_FOUND
    elif isinstance(exc, (DuplicateBooking, ClassNotBookable)):
        code = status.HTTP_409_CONFLICT
    elif isinstance(exc, StoreError):
        code = status.HTTP_503_SERVICE_UNAVAILABLE
    else:
        code = status.HTTP_400_BAD_REQUEST
    return HTTPException(status_code=code, detail=str(exc))
