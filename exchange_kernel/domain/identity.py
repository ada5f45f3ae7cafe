"""
Identity -- the verified caller handed to the kernel by auth middleware.

The kernel never authenticates; it only applies the ownership rule for
destructive operations: admins may delete anything, everyone else only what
they created.
"""

from dataclasses import dataclass
from enum import Enum
from uuid import UUID


class Role(str, Enum):
    ADMIN = "admin"
    USER = "user"


@dataclass(frozen=True)
class Identity:
    id: UUID
    role: Role = Role.USER

    def __post_init__(self) -> None:
        # Middleware hands ids and roles over as plain strings
        if not isinstance(self.id, UUID):
            object.__setattr__(self, "id", UUID(str(self.id)))
        object.__setattr__(self, "role", Role(self.role))

    @property
    def is_admin(self) -> bool:
        return self.role is Role.ADMIN

    def may_delete(self, created_by_id: UUID) -> bool:
        return self.is_admin or self.id == created_by_id
