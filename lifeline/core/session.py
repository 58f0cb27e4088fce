from dataclasses import dataclass
from uuid import UUID


@dataclass(frozen=True)
class SessionContext:
    """The already-authenticated caller, handed to every service at construction.

    Services never look up the current user themselves; the API layer (or a
    test) builds one of these and injects it.
    """

    user_id: UUID
    is_admin: bool = False

    @classmethod
    def for_user(cls, user) -> "SessionContext":
        return cls(user_id=user.id, is_admin=bool(user.is_superuser))
