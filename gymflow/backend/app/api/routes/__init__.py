from . import (
    bookings,
    classes,
    members,
    misc,
)

__all__ = [
    "bookings",
    "classes",
    "members",
    "misc",
]
