"""Authorization context: who is calling and what they may do."""

from typing import Protocol

from exam_engine.models.user import User, UserRole

# Permission strings are "<resource>:<action>"
PERM_BYPASS_INVITATION = ("exam", "bypass_invitation")
PERM_READ_ANY_RESULTS = ("results", "read_any")
PERM_CREATE_INVITATION = ("invitation", "create")

ROLE_PERMISSIONS: dict[UserRole, frozenset[tuple[str, str]]] = {
    UserRole.STUDENT: frozenset(),
    UserRole.EXAMINER: frozenset({PERM_CREATE_INVITATION}),
    UserRole.ADMIN: frozenset(
        {PERM_BYPASS_INVITATION, PERM_READ_ANY_RESULTS, PERM_CREATE_INVITATION}
    ),
}


class AuthorizationContext(Protocol):
    """What the engine needs from the identity provider."""

    def current_user(self) -> User: ...

    def has_permission(self, resource: str, action: str) -> bool: ...

    def is_banned(self) -> bool: ...


class UserAuthorizationContext:
    """Role-based context for an authenticated User row."""

    def __init__(self, user: User):
        self._user = user

    def current_user(self) -> User:
        return self._user

    def has_permission(self, resource: str, action: str) -> bool:
        try:
            role = UserRole(self._user.role)
        except ValueError:
            return False
        return (resource, action) in ROLE_PERMISSIONS.get(role, frozenset())

    def is_banned(self) -> bool:
        return bool(self._user.is_banned)
