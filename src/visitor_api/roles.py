"""
Ordered user roles.

visitor < admin < super-admin < developer. Endpoints declare a minimum role
and a user passes when their role meets it.
"""

from enum import Enum
from typing import Optional


# PUBLIC_INTERFACE
class Role(str, Enum):
    VISITOR = "visitor"
    ADMIN = "admin"
    SUPER_ADMIN = "super-admin"
    DEVELOPER = "developer"

    @property
    def rank(self) -> int:
        return _ORDER.index(self)

    def meets(self, minimum: "Role") -> bool:
        """True when this role is at least `minimum`."""
        return self.rank >= minimum.rank

    @classmethod
    def parse(cls, value: Optional[str]) -> Optional["Role"]:
        """Lenient lookup; accepts legacy spellings such as 'super_admin'."""
        if value is None:
            return None
        normalized = str(value).strip().lower().replace("_", "-")
        for role in cls:
            if role.value == normalized:
                return role
        return None


_ORDER = [Role.VISITOR, Role.ADMIN, Role.SUPER_ADMIN, Role.DEVELOPER]

# Roles that super-admin endpoints may not demote or delete.
PROTECTED_ROLES = frozenset({Role.SUPER_ADMIN, Role.DEVELOPER})
