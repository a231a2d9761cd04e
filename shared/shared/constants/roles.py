from enum import Enum


class Role(str, Enum):
    """Roles carried in the ``roles`` claim of a bearer token."""

    USER = "user"
    ADMIN = "admin"
    SUPER_ADMIN = "super_admin"
    # Backend-to-backend calls, e.g. identity pushing profile changes
    SERVICE = "service"


STAFF_ROLES = frozenset({Role.ADMIN, Role.SUPER_ADMIN})
