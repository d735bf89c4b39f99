"""Plant roles and their authority levels."""

from __future__ import annotations

from enum import Enum

MANAGER_LEVEL = 4


class UserRole(str, Enum):
    OPERATOR = "operator"
    MATERIAL_HANDLER = "material_handler"
    QC = "qc"
    SETTER = "setter"
    PRODUCTION_MANAGER = "production_manager"
    ADMIN = "admin"

    @property
    def level(self) -> int:
        return _ROLE_LEVELS[self]

    @classmethod
    def lowest(cls) -> "UserRole":
        return min(cls, key=lambda role: role.level)


_ROLE_LEVELS = {
    UserRole.OPERATOR: 1,
    UserRole.MATERIAL_HANDLER: 2,
    UserRole.QC: 2,
    UserRole.SETTER: 3,
    UserRole.PRODUCTION_MANAGER: 4,
    UserRole.ADMIN: 5,
}
